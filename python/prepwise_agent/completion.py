"""
Completion Router.

Runs once per call when the session reaches FINISHED and decides what to
do with the result:

    interview mode  -> create feedback, then show it (or go home on failure)
    generate mode   -> trust a successful function-call result, else fall
                       back to extracting parameters from the transcript and
                       generating the interview here, else just go home

Last Grunted: 10/16/2026
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Protocol

from .errors import PrepwiseServiceError
from .extraction import extract_interview_info
from .models import (
    CompletionAction,
    CompletionOutcome,
    FeedbackRecord,
    GenerateInterviewRequest,
    InterviewRecord,
    SavedMessage,
    SessionMode,
)
from .notifications import ToastPublisher

if TYPE_CHECKING:
    from .session import CallSession


__all__ = [
    "HOME_PATH",
    "GENERATING_TOAST_ID",
    "DEFAULT_SETTLE_SECONDS",
    "InterviewGenerator",
    "FeedbackCreator",
    "CompletionRouter",
    "feedback_path",
]


logger = logging.getLogger(__name__)


HOME_PATH = "/"
GENERATING_TOAST_ID = "generating"
DEFAULT_SETTLE_SECONDS = 1.0


def feedback_path(interview_id: str) -> str:
    return f"/interview/{interview_id}/feedback"


class InterviewGenerator(Protocol):
    async def generate(self, request: GenerateInterviewRequest) -> InterviewRecord:
        ...


class FeedbackCreator(Protocol):
    async def create_feedback(
        self,
        *,
        interview_id: str,
        user_id: Optional[str],
        transcript: list[SavedMessage],
        feedback_id: Optional[str] = None,
    ) -> FeedbackRecord:
        ...


class CompletionRouter:
    """
    Routes a finished call to feedback creation or interview generation.

    Args:
        feedback: Creates and stores feedback for interview-mode calls.
        generation: Generates and stores interviews for the transcript fallback.
        notifier: Toast stream for user-visible progress and failures.
        settle_seconds: Pause after a successful provider function call so the
            provider's own write can land before the client refreshes.
    """

    def __init__(
        self,
        *,
        feedback: FeedbackCreator,
        generation: InterviewGenerator,
        notifier: ToastPublisher,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    ) -> None:
        self._feedback = feedback
        self._generation = generation
        self._notifier = notifier
        self._settle_seconds = settle_seconds

    async def complete(self, session: "CallSession") -> CompletionOutcome:
        if session.mode is SessionMode.INTERVIEW:
            return await self._complete_interview(session)
        return await self._complete_generation(session)

    async def _complete_interview(self, session: "CallSession") -> CompletionOutcome:
        if not session.interview_id:
            logger.warning("Interview call %s has no interview id; going home", session.session_id)
            return CompletionOutcome(action=CompletionAction.GO_HOME, detail="missing interview id")

        try:
            record = await self._feedback.create_feedback(
                interview_id=session.interview_id,
                user_id=session.user_id,
                transcript=session.transcript.messages,
                feedback_id=session.feedback_id,
            )
        except Exception as exc:
            logger.error("Error saving feedback for %s: %s", session.interview_id, exc,
                         exc_info=True)
            await self._notifier.error("Failed to generate feedback", "Please try again later.")
            return CompletionOutcome(action=CompletionAction.GO_HOME, detail=str(exc))

        if not record.id:
            return CompletionOutcome(action=CompletionAction.GO_HOME, detail="feedback not saved")

        return CompletionOutcome(
            action=CompletionAction.SHOW_FEEDBACK,
            redirect_to=feedback_path(session.interview_id),
            feedback_id=record.id,
        )

    async def _complete_generation(self, session: "CallSession") -> CompletionOutcome:
        result = session.function_result
        if result is not None and result.success is True:
            logger.info("Provider generated the interview; settling %.1fs", self._settle_seconds)
            await asyncio.sleep(self._settle_seconds)
            return CompletionOutcome(
                action=CompletionAction.GO_HOME,
                refresh=True,
                detail="function-call result",
            )

        text = session.transcript.text()
        if not text:
            return CompletionOutcome(action=CompletionAction.GO_HOME, refresh=True)

        info = extract_interview_info(text)
        if info is None:
            return CompletionOutcome(
                action=CompletionAction.GO_HOME,
                refresh=True,
                detail="nothing extracted",
            )

        await self._notifier.loading("Generating interview questions...", GENERATING_TOAST_ID)
        try:
            record = await self._generation.generate(info.to_generation_request(session.user_id))
        except PrepwiseServiceError as exc:
            await self._notifier.dismiss(GENERATING_TOAST_ID)
            await self._notifier.error("Failed to generate interview", exc.message)
            return CompletionOutcome(action=CompletionAction.GO_HOME, detail=exc.message)
        except Exception as exc:
            logger.error("Error processing workflow completion: %s", exc, exc_info=True)
            await self._notifier.dismiss(GENERATING_TOAST_ID)
            await self._notifier.error(
                "Error processing interview",
                "Please try again or check the server log for details.",
            )
            return CompletionOutcome(action=CompletionAction.GO_HOME, detail=str(exc))

        await self._notifier.dismiss(GENERATING_TOAST_ID)
        await self._notifier.success(
            "Interview generated successfully!",
            "Your interview questions have been created.",
        )
        return CompletionOutcome(
            action=CompletionAction.GO_HOME,
            refresh=True,
            detail=f"interview {record.id}",
        )
