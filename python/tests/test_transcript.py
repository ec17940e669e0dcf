"""
Unit tests for TranscriptAccumulator.

Last Grunted: 10/16/2026
"""

from __future__ import annotations

from prepwise_agent.transcript import TranscriptAccumulator
from tests.mock_data import (
    GENERATION_CONVERSATION,
    generate_conversation_messages,
    generate_function_call_result,
    generate_transcript_message,
)


class TestTranscriptAccumulator:
    """Tests for fragment filtering and ordering."""

    def test_final_fragment_appended(self) -> None:
        transcript = TranscriptAccumulator()

        saved = transcript.add_fragment(generate_transcript_message("user", "Hello there."))

        assert saved is not None
        assert saved.role == "user"
        assert saved.content == "Hello there."
        assert len(transcript) == 1
        assert transcript.last_message == "Hello there."

    def test_partial_fragment_ignored(self) -> None:
        """Interim transcripts never reach the log."""
        transcript = TranscriptAccumulator()

        result = transcript.add_fragment(
            generate_transcript_message("user", "Hel", final=False)
        )

        assert result is None
        assert len(transcript) == 0
        assert transcript.last_message == ""

    def test_non_transcript_message_ignored(self) -> None:
        transcript = TranscriptAccumulator()

        assert transcript.add_fragment(generate_function_call_result(True)) is None
        assert len(transcript) == 0

    def test_malformed_fragment_ignored(self) -> None:
        """Unknown roles and blank text are dropped."""
        transcript = TranscriptAccumulator()

        assert transcript.add_fragment(generate_transcript_message("robot", "beep")) is None
        assert transcript.add_fragment(generate_transcript_message("user", "   ")) is None
        non_string_role = generate_transcript_message("user", "Hello there.")
        non_string_role["role"] = ["user"]
        assert transcript.add_fragment(non_string_role) is None
        assert len(transcript) == 0

    def test_conversation_keeps_arrival_order(self) -> None:
        """Only finals are kept, in the order they arrived."""
        transcript = TranscriptAccumulator()

        for message in generate_conversation_messages(GENERATION_CONVERSATION):
            transcript.add_fragment(message)

        assert len(transcript) == len(GENERATION_CONVERSATION)
        assert [(m.role, m.content) for m in transcript.messages] == GENERATION_CONVERSATION
        assert transcript.last_message == GENERATION_CONVERSATION[-1][1]

    def test_text_joins_with_single_space(self) -> None:
        transcript = TranscriptAccumulator()
        transcript.append("assistant", "What role?")
        transcript.append("user", "Backend engineer.")

        assert transcript.text() == "What role? Backend engineer."

    def test_messages_returns_copy(self) -> None:
        transcript = TranscriptAccumulator()
        transcript.append("user", "One")

        snapshot = transcript.messages
        snapshot.clear()

        assert len(transcript) == 1

    def test_as_dicts(self) -> None:
        transcript = TranscriptAccumulator()
        transcript.append("system", "Call connected")

        assert transcript.as_dicts() == [{"role": "system", "content": "Call connected"}]

    def test_clear(self) -> None:
        transcript = TranscriptAccumulator()
        transcript.append("user", "One")
        transcript.clear()

        assert len(transcript) == 0
        assert transcript.text() == ""
