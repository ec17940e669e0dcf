"""
Tests for CompletionRouter.

Covers every branch of interview-mode feedback creation and generate-mode
routing (function-call result, transcript fallback, failures), using the
real generation services over a temporary document store.

Last Grunted: 10/16/2026
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from prepwise_agent.completion import GENERATING_TOAST_ID, CompletionRouter, feedback_path
from prepwise_agent.errors import GenerationError
from prepwise_agent.generation import FeedbackService, InterviewGenerationService
from prepwise_agent.models import (
    CompletionAction,
    FeedbackRecord,
    FunctionCallResult,
    SessionMode,
)
from prepwise_agent.notifications import ToastKind, ToastPublisher
from prepwise_agent.session import CallSession
from prepwise_agent.store import InterviewStore
from tests.mock_data import (
    GENERATION_CONVERSATION,
    INTERVIEW_CONVERSATION,
    SAMPLE_QUESTIONS,
    FakeFeedbackSource,
    FakeQuestionSource,
    FakeVoiceClient,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store(tmp_path: Path) -> InterviewStore:
    return InterviewStore(tmp_path)


@pytest.fixture
def notifier() -> ToastPublisher:
    return ToastPublisher()


def make_router(
    store: InterviewStore,
    notifier: ToastPublisher,
    question_source: Any = None,
    feedback: Any = None,
) -> CompletionRouter:
    return CompletionRouter(
        feedback=feedback or FeedbackService(FakeFeedbackSource(), store),
        generation=InterviewGenerationService(question_source or FakeQuestionSource(), store),
        notifier=notifier,
        settle_seconds=0,
    )


def make_session(
    mode: SessionMode,
    conversation: list[tuple[str, str]] | None = None,
    **kwargs: Any,
) -> CallSession:
    session = CallSession(FakeVoiceClient(), mode=mode, user_name="Sarah Chen", **kwargs)
    for role, text in conversation or []:
        session.transcript.append(role, text)  # type: ignore[arg-type]
    return session


async def toast_kinds(notifier: ToastPublisher) -> list[tuple[str, str]]:
    return [(toast.kind.value, toast.title) for toast in await notifier.get_history()]


# =============================================================================
# Interview Mode Tests
# =============================================================================


class TestInterviewCompletion:
    """Tests for feedback creation after an interview call."""

    @pytest.mark.asyncio
    async def test_feedback_created_and_shown(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        interview = store.add_interview(
            role="Backend Engineer",
            type="Technical",
            level="Senior",
            techstack=["python"],
            questions=SAMPLE_QUESTIONS,
            user_id="user_42",
        )
        feedback_source = FakeFeedbackSource()
        router = make_router(
            store, notifier, feedback=FeedbackService(feedback_source, store)
        )
        session = make_session(
            SessionMode.INTERVIEW,
            INTERVIEW_CONVERSATION,
            interview_id=interview.id,
            user_id="user_42",
        )

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.SHOW_FEEDBACK
        assert outcome.redirect_to == feedback_path(interview.id)
        assert outcome.redirect_to == f"/interview/{interview.id}/feedback"
        assert outcome.feedback_id is not None
        stored = store.get_feedback(outcome.feedback_id)
        assert stored is not None
        assert stored.interview_id == interview.id
        assert stored.user_id == "user_42"
        transcript, questions = feedback_source.calls[0]
        assert len(transcript) == len(INTERVIEW_CONVERSATION)
        assert questions == SAMPLE_QUESTIONS

    @pytest.mark.asyncio
    async def test_existing_feedback_id_overwritten(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        router = make_router(store, notifier)
        session = make_session(
            SessionMode.INTERVIEW,
            INTERVIEW_CONVERSATION,
            interview_id="int_retake",
            feedback_id="fb_existing",
        )

        outcome = await router.complete(session)

        assert outcome.feedback_id == "fb_existing"

    @pytest.mark.asyncio
    async def test_missing_interview_id_goes_home(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        router = make_router(store, notifier)
        session = make_session(SessionMode.INTERVIEW, INTERVIEW_CONVERSATION)

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.redirect_to == "/"

    @pytest.mark.asyncio
    async def test_feedback_failure_goes_home_with_toast(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        feedback = FeedbackService(FakeFeedbackSource(error=RuntimeError("model down")), store)
        router = make_router(store, notifier, feedback=feedback)
        session = make_session(
            SessionMode.INTERVIEW, INTERVIEW_CONVERSATION, interview_id="int_abc"
        )

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert await toast_kinds(notifier) == [("error", "Failed to generate feedback")]

    @pytest.mark.asyncio
    async def test_record_without_id_goes_home(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        class BlankFeedback:
            async def create_feedback(self, **kwargs: Any) -> FeedbackRecord:
                return FeedbackRecord.model_construct(id="")

        router = make_router(store, notifier, feedback=BlankFeedback())
        session = make_session(SessionMode.INTERVIEW, interview_id="int_abc")

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.feedback_id is None


# =============================================================================
# Generate Mode Tests
# =============================================================================


class TestGenerateCompletion:
    """Tests for routing after a generation call."""

    @pytest.mark.asyncio
    async def test_function_result_trusted(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        """A successful provider function call skips local generation."""
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(SessionMode.GENERATE, GENERATION_CONVERSATION)
        session.function_result = FunctionCallResult(success=True)

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.refresh is True
        assert question_source.requests == []
        assert store.list_interviews() == []

    @pytest.mark.asyncio
    async def test_failed_function_result_uses_transcript(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(
            SessionMode.GENERATE, GENERATION_CONVERSATION, user_id="user_42"
        )
        session.function_result = FunctionCallResult(success=False, error="timeout")

        outcome = await router.complete(session)

        assert outcome.refresh is True
        assert len(question_source.requests) == 1

    @pytest.mark.asyncio
    async def test_string_success_flag_uses_transcript(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        """Only a boolean true skips local generation."""
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(
            SessionMode.GENERATE, GENERATION_CONVERSATION, user_id="user_42"
        )
        session.function_result = FunctionCallResult.from_message(
            {"functionCallResult": {"result": {"success": "false"}}}
        )

        outcome = await router.complete(session)

        assert session.function_result.success is None
        assert outcome.refresh is True
        assert len(question_source.requests) == 1
        assert len(store.list_interviews(user_id="user_42")) == 1

    @pytest.mark.asyncio
    async def test_transcript_fallback_generates_interview(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(
            SessionMode.GENERATE, GENERATION_CONVERSATION, user_id="user_42"
        )

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.refresh is True
        request = question_source.requests[0]
        assert request.role == "backend engineer"
        assert request.level == "senior"
        assert request.type == "Technical"
        assert request.amount == 6
        assert request.userid == "user_42"

        interviews = store.list_interviews(user_id="user_42")
        assert len(interviews) == 1
        assert interviews[0].techstack == ["python", "postgresql", "aws"]
        assert interviews[0].questions == SAMPLE_QUESTIONS
        assert outcome.detail == f"interview {interviews[0].id}"

        history = await notifier.get_history()
        assert [(t.kind, t.toast_id) for t in history[:2]] == [
            (ToastKind.LOADING, GENERATING_TOAST_ID),
            (ToastKind.DISMISS, GENERATING_TOAST_ID),
        ]
        assert history[-1].kind is ToastKind.SUCCESS
        assert history[-1].title == "Interview generated successfully!"

    @pytest.mark.asyncio
    async def test_empty_transcript_goes_home(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(SessionMode.GENERATE)

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.refresh is True
        assert question_source.requests == []
        assert await notifier.get_history() == []

    @pytest.mark.asyncio
    async def test_nothing_extracted_goes_home(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        question_source = FakeQuestionSource()
        router = make_router(store, notifier, question_source=question_source)
        session = make_session(
            SessionMode.GENERATE, [("assistant", "Hello?"), ("user", "Sorry, wrong number.")]
        )

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.detail == "nothing extracted"
        assert question_source.requests == []

    @pytest.mark.asyncio
    async def test_unparseable_reply_reports_service_error(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        router = make_router(
            store, notifier, question_source=FakeQuestionSource(reply="Sure! Here you go.")
        )
        session = make_session(SessionMode.GENERATE, GENERATION_CONVERSATION)

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        assert outcome.refresh is False
        assert store.list_interviews() == []
        history = await notifier.get_history()
        assert history[-2].kind is ToastKind.DISMISS
        assert history[-1].kind is ToastKind.ERROR
        assert history[-1].title == "Failed to generate interview"
        assert history[-1].description == "Failed to parse questions from AI response"

    @pytest.mark.asyncio
    async def test_unexpected_failure_reports_generic_error(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        router = make_router(
            store, notifier, question_source=FakeQuestionSource(error=ConnectionError("reset"))
        )
        session = make_session(SessionMode.GENERATE, GENERATION_CONVERSATION)

        outcome = await router.complete(session)

        assert outcome.action is CompletionAction.GO_HOME
        history = await notifier.get_history()
        assert history[-1].title == "Error processing interview"

    @pytest.mark.asyncio
    async def test_generation_error_message_passed_through(
        self, store: InterviewStore, notifier: ToastPublisher
    ) -> None:
        router = make_router(
            store,
            notifier,
            question_source=FakeQuestionSource(error=GenerationError("Rate limited")),
        )
        session = make_session(SessionMode.GENERATE, GENERATION_CONVERSATION)

        outcome = await router.complete(session)

        assert outcome.detail == "Rate limited"
        history = await notifier.get_history()
        assert history[-1].description == "Rate limited"
