"""
Interview generation and feedback services.

Glue between the LLM agents and the document store. Both the
POST /api/vapi/generate route and the completion router go through
InterviewGenerationService, so a provider function call and the transcript
fallback produce identical records.

Last Grunted: 10/15/2026
"""

import json
import logging
import re
from typing import Optional, Protocol

from .errors import GenerationError
from .models import (
    FeedbackAssessment,
    FeedbackRecord,
    GenerateInterviewRequest,
    InterviewRecord,
    SavedMessage,
)
from .store import InterviewStore


__all__ = [
    "QuestionSource",
    "FeedbackSource",
    "InterviewGenerationService",
    "FeedbackService",
    "parse_questions",
    "split_techstack",
]


logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "Failed to parse questions from AI response"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class QuestionSource(Protocol):
    """Anything that turns a generation request into raw model text."""

    async def generate(self, request: GenerateInterviewRequest) -> str:
        ...


class FeedbackSource(Protocol):
    """Anything that scores a transcript."""

    async def assess(
        self,
        transcript: list[SavedMessage],
        questions: Optional[list[str]] = None,
    ) -> FeedbackAssessment:
        ...


def parse_questions(reply: str) -> list[str]:
    """
    Parse the model reply as a JSON array of question strings.

    A single surrounding ```json fence is tolerated.

    Raises:
        GenerationError: If the reply is not a non-empty JSON array.
    """
    text = (reply or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Error parsing questions: %s (reply starts %r)", e, text[:80])
        raise GenerationError(PARSE_FAILURE_MESSAGE) from e

    if not isinstance(parsed, list):
        logger.error("Questions must be an array, got %s", type(parsed).__name__)
        raise GenerationError(PARSE_FAILURE_MESSAGE)

    questions = [str(item).strip() for item in parsed if str(item).strip()]
    if not questions:
        raise GenerationError(PARSE_FAILURE_MESSAGE)
    return questions


def split_techstack(techstack: str) -> list[str]:
    """Comma-split a tech stack string, dropping blanks."""
    return [item.strip() for item in techstack.split(",") if item.strip()]


class InterviewGenerationService:
    """Generates questions and stores the resulting interview."""

    def __init__(self, source: QuestionSource, store: InterviewStore) -> None:
        self._source = source
        self._store = store

    async def generate(self, request: GenerateInterviewRequest) -> InterviewRecord:
        """
        Generate and persist an interview.

        Returns:
            The stored InterviewRecord.

        Raises:
            GenerationError: If the model reply cannot be parsed.
            StoreWriteError: If persisting fails.
        """
        reply = await self._source.generate(request)
        questions = parse_questions(reply)
        record = self._store.add_interview(
            role=request.role,
            type=request.type,
            level=request.level,
            techstack=split_techstack(request.techstack),
            questions=questions,
            user_id=request.userid,
        )
        logger.info(
            "Interview generated: id=%s role=%s questions=%d",
            record.id,
            record.role,
            len(record.questions),
        )
        return record


class FeedbackService:
    """Scores a finished interview transcript and stores the feedback."""

    def __init__(self, source: FeedbackSource, store: InterviewStore) -> None:
        self._source = source
        self._store = store

    async def create_feedback(
        self,
        *,
        interview_id: str,
        user_id: Optional[str],
        transcript: list[SavedMessage],
        feedback_id: Optional[str] = None,
    ) -> FeedbackRecord:
        """
        Assess the transcript and store feedback.

        The interview's planned questions are included in the prompt when
        the interview is known to the store.
        """
        interview = self._store.get_interview(interview_id)
        questions = interview.questions if interview else None
        assessment = await self._source.assess(transcript, questions)
        return self._store.save_feedback(
            assessment,
            interview_id=interview_id,
            user_id=user_id,
            feedback_id=feedback_id,
        )
