"""
User-facing toast notifications.

Provides an in-memory pub/sub so the HTTP layer (and any UI polling it)
can show the same transient success/error/loading messages the browser
client used to raise directly.

Example usage:
    notifier = ToastPublisher()
    await notifier.error("Call failed", "Authentication with the voice provider failed.")
    history = await notifier.get_history()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


__all__ = ["ToastKind", "Toast", "ToastPublisher"]


logger = logging.getLogger(__name__)


class ToastKind(str, Enum):
    """
    Kinds of toast published to the stream.

    Attributes:
        SUCCESS: Operation completed.
        ERROR: Operation failed; description carries the cause.
        LOADING: Long-running operation in progress, keyed by toast_id.
        DISMISS: Remove the toast with the same toast_id.
    """

    SUCCESS = "success"
    ERROR = "error"
    LOADING = "loading"
    DISMISS = "dismiss"


def _get_utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Toast:
    """
    A single transient notification.

    Attributes:
        kind: Toast category.
        title: Headline shown to the user.
        description: Optional detail line.
        toast_id: Optional key so a later DISMISS can target this toast.
        timestamp: UTC timestamp when the toast was created.
    """

    kind: ToastKind
    title: str
    description: str | None = None
    toast_id: str | None = None
    timestamp: str = field(default_factory=_get_utc_timestamp)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "toast_id": self.toast_id,
            "timestamp": self.timestamp,
        }


class ToastPublisher:
    """
    Broadcasts toasts to subscriber queues and keeps a bounded history.

    Example:
        publisher = ToastPublisher()
        queue = await publisher.subscribe()
        await publisher.success("Interview generated successfully!")
        toast = await queue.get()
    """

    def __init__(self, max_history: int = 50) -> None:
        self._subscribers: list[asyncio.Queue[Toast]] = []
        self._history: list[Toast] = []
        self._max_history = max_history
        self._lock = asyncio.Lock()

    async def subscribe(self) -> asyncio.Queue[Toast]:
        """
        Subscribe to toasts.

        The returned queue is pre-filled with the current history. Caller
        is responsible for calling unsubscribe when done.
        """
        queue: asyncio.Queue[Toast] = asyncio.Queue()
        async with self._lock:
            self._subscribers.append(queue)
            for toast in self._history:
                await queue.put(toast)
        logger.debug("New toast subscriber. Total: %d", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[Toast]) -> None:
        async with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
        logger.debug("Toast subscriber removed. Total: %d", len(self._subscribers))

    async def publish(self, toast: Toast) -> None:
        """Publish a toast to all subscribers and record it in history."""
        async with self._lock:
            self._history.append(toast)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]
            for queue in self._subscribers:
                await queue.put(toast)

        log = logger.warning if toast.kind is ToastKind.ERROR else logger.info
        log("Toast [%s] %s%s", toast.kind.value, toast.title,
            f": {toast.description}" if toast.description else "")

    async def success(self, title: str, description: str | None = None) -> None:
        await self.publish(Toast(kind=ToastKind.SUCCESS, title=title, description=description))

    async def error(self, title: str, description: str | None = None) -> None:
        await self.publish(Toast(kind=ToastKind.ERROR, title=title, description=description))

    async def loading(self, title: str, toast_id: str) -> None:
        await self.publish(Toast(kind=ToastKind.LOADING, title=title, toast_id=toast_id))

    async def dismiss(self, toast_id: str) -> None:
        await self.publish(Toast(kind=ToastKind.DISMISS, title="", toast_id=toast_id))

    async def get_history(self) -> list[Toast]:
        """Copy of the toast history, oldest first."""
        async with self._lock:
            return list(self._history)

    async def clear_history(self) -> None:
        async with self._lock:
            self._history.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
