"""Ordered log of finalized transcript fragments for one call."""

import logging
from typing import Any, Optional, get_args

from .models import MessageRole, SavedMessage


__all__ = ["TranscriptAccumulator"]


logger = logging.getLogger(__name__)

_VALID_ROLES = frozenset(get_args(MessageRole))


class TranscriptAccumulator:
    """
    Collects finalized transcript fragments in arrival order.

    Partial (interim) transcripts are ignored. The log is append-only for
    the duration of a call and cleared when a new call starts.

    Example:
        >>> transcript = TranscriptAccumulator()
        >>> transcript.add_fragment({
        ...     "type": "transcript",
        ...     "transcriptType": "final",
        ...     "role": "user",
        ...     "transcript": "I'd like a senior backend interview.",
        ... })
        >>> transcript.last_message
        "I'd like a senior backend interview."
    """

    def __init__(self) -> None:
        self._messages: list[SavedMessage] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[SavedMessage]:
        """Copy of the log, oldest first."""
        return list(self._messages)

    @property
    def last_message(self) -> str:
        """Content of the most recent fragment, or an empty string."""
        return self._messages[-1].content if self._messages else ""

    def add_fragment(self, message: dict[str, Any]) -> Optional[SavedMessage]:
        """
        Append a provider transcript message if it is final.

        Args:
            message: Provider `message` event payload.

        Returns:
            The stored message, or None if the fragment was ignored.
        """
        if message.get("type") != "transcript":
            return None
        if message.get("transcriptType") != "final":
            logger.debug("Ignoring partial transcript fragment")
            return None

        role = message.get("role")
        content = message.get("transcript")
        if (
            not isinstance(role, str)
            or role not in _VALID_ROLES
            or not isinstance(content, str)
            or not content.strip()
        ):
            logger.debug("Ignoring malformed transcript fragment: role=%s", role)
            return None

        return self.append(role, content)

    def append(self, role: MessageRole, content: str) -> SavedMessage:
        saved = SavedMessage(role=role, content=content)
        self._messages.append(saved)
        logger.debug("Transcript [%s] %s", role, content[:80])
        return saved

    def text(self) -> str:
        """All fragments joined by a single space."""
        return " ".join(message.content for message in self._messages)

    def as_dicts(self) -> list[dict[str, str]]:
        return [message.model_dump() for message in self._messages]

    def clear(self) -> None:
        self._messages.clear()
