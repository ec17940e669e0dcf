"""
Pydantic models for the PrepWise voice interview service.

Defines call status, transcript messages, interview settings, the records
persisted to the document store, and the outcome of a finished call.

Wire-facing models accept the camelCase keys used by the voice provider and
the web client (`jobRole`, `userId`, ...) and dump them back with
`by_alias=True`.

Last Grunted: 10/15/2026
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


__all__ = [
    "CallStatus",
    "SessionMode",
    "MessageRole",
    "SavedMessage",
    "FunctionCallResult",
    "InterviewSettings",
    "EXPERIENCE_LEVELS",
    "QUESTION_TYPES",
    "ExtractedInterviewInfo",
    "CallStartRequest",
    "GenerateInterviewRequest",
    "InterviewRecord",
    "CategoryScore",
    "FeedbackAssessment",
    "FeedbackRecord",
    "CompletionAction",
    "CompletionOutcome",
]


def _utc_now() -> str:
    """Current UTC time as ISO 8601 with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Call State
# =============================================================================


class CallStatus(str, Enum):
    """
    Lifecycle of one voice call.

    Moves forward only (INACTIVE -> CONNECTING -> ACTIVE -> FINISHED), except
    a failed start returns to INACTIVE and a hard error may move any state
    back to INACTIVE.
    """

    INACTIVE = "INACTIVE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


class SessionMode(str, Enum):
    """What a call is for."""

    GENERATE = "generate"
    INTERVIEW = "interview"


MessageRole = Literal["user", "system", "assistant"]


class SavedMessage(BaseModel):
    """One finalized transcript fragment."""

    role: MessageRole
    content: str


class FunctionCallResult(BaseModel):
    """
    Result of a server-side function the provider invoked mid-call.

    Only `success` and `error` are interpreted. The provider's full payload
    is kept in `raw` for logging.
    """

    name: Optional[str] = None
    success: Optional[bool] = None
    error: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "FunctionCallResult":
        """
        Build from a provider `function-call-result` message.

        The interesting part lives under `functionCallResult.result`, which
        may be a dict or a JSON-ish string.
        """
        payload = message.get("functionCallResult") or {}
        if not isinstance(payload, dict):
            payload = {"result": payload}

        result = payload.get("result")
        success: Optional[bool] = None
        error: Optional[str] = None
        if isinstance(result, dict) and "success" in result:
            flag = result.get("success")
            # Only a real boolean counts; "false" or 1 stay unknown.
            success = flag if isinstance(flag, bool) else None
            raw_error = result.get("error")
            error = str(raw_error) if raw_error else None

        name = payload.get("name")
        return cls(
            name=name if isinstance(name, str) else None,
            success=success,
            error=error,
            raw=payload,
        )


# =============================================================================
# Interview Settings & Extraction
# =============================================================================

EXPERIENCE_LEVELS = ("Junior", "Mid-level", "Senior", "Lead")
QUESTION_TYPES = ("Technical", "Behavioral", "Mixed")


class InterviewSettings(BaseModel):
    """
    Parameters collected by the setup form for a generation-mode call.

    All fields are required. `numberOfQuestions` must lie in [1, 20].
    """

    job_role: str = Field(..., alias="jobRole", min_length=2, description="Target job title")
    experience_level: str = Field(
        ..., alias="experienceLevel", min_length=1, description="e.g. Junior, Senior"
    )
    tech_stack: str = Field(
        ..., alias="techStack", min_length=1, description="Comma separated technologies"
    )
    question_type: str = Field(
        ..., alias="questionType", min_length=1, description="Technical, Behavioral or Mixed"
    )
    number_of_questions: int = Field(
        ..., alias="numberOfQuestions", ge=1, le=20, description="How many questions to prepare"
    )

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    def to_variable_values(self, user_name: str, user_id: Optional[str]) -> dict[str, str]:
        """Provider variables for the generation workflow. All values are strings."""
        return {
            "userName": user_name,
            "userid": user_id or "",
            "jobRole": self.job_role,
            "experienceLevel": self.experience_level,
            "techStack": self.tech_stack,
            "questionType": self.question_type,
            "numberOfQuestions": str(self.number_of_questions),
        }

    def to_input_text(self, user_name: str) -> str:
        """Opening instruction sent to the generation workflow."""
        return (
            f"Generate a {self.question_type} interview for a {self.experience_level} "
            f"{self.job_role} using {self.tech_stack} with {self.number_of_questions} "
            f"questions for {user_name}."
        )


class ExtractedInterviewInfo(BaseModel):
    """Best-effort reconstruction of interview parameters from free text."""

    role: str
    level: str
    techstack: str
    type: str
    amount: int

    def to_generation_request(self, user_id: Optional[str]) -> "GenerateInterviewRequest":
        return GenerateInterviewRequest(
            type=self.type,
            role=self.role,
            level=self.level,
            techstack=self.techstack,
            amount=self.amount,
            userid=user_id,
        )


class CallStartRequest(BaseModel):
    """What a voice client needs to start a call."""

    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")
    input_text: Optional[str] = Field(default=None, alias="input")
    variable_values: dict[str, str] = Field(default_factory=dict, alias="variableValues")

    model_config = {"populate_by_name": True}


# =============================================================================
# Stored Records
# =============================================================================


class GenerateInterviewRequest(BaseModel):
    """Body of POST /api/vapi/generate, as sent by the provider's function call."""

    type: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    level: str = Field(..., min_length=1)
    techstack: str = Field(..., description="Comma separated technologies")
    amount: int = Field(..., ge=1)
    userid: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class InterviewRecord(BaseModel):
    """An interview with generated questions, as stored in `interviews`."""

    id: str
    role: str
    type: str
    level: str
    techstack: list[str]
    questions: list[str]
    user_id: Optional[str] = Field(default=None, alias="userId")
    finalized: bool = True
    cover_image: str = Field(..., alias="coverImage")
    created_at: str = Field(default_factory=_utc_now, alias="createdAt")

    model_config = {"populate_by_name": True}


class CategoryScore(BaseModel):
    """Score for one assessment category."""

    name: str = Field(..., description="Category name, e.g. 'Communication Skills'")
    score: int = Field(..., ge=0, le=100)
    comment: str = Field(..., description="Short justification for the score")


class FeedbackAssessment(BaseModel):
    """Structured output of the feedback model."""

    total_score: int = Field(..., alias="totalScore", ge=0, le=100)
    category_scores: list[CategoryScore] = Field(..., alias="categoryScores")
    strengths: list[str] = Field(..., description="What the candidate did well")
    areas_for_improvement: list[str] = Field(
        ..., alias="areasForImprovement", description="What to work on next"
    )
    final_assessment: str = Field(..., alias="finalAssessment")

    model_config = {"populate_by_name": True}


class FeedbackRecord(FeedbackAssessment):
    """Feedback for one interview attempt, as stored in `feedback`."""

    id: str
    interview_id: str = Field(..., alias="interviewId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: str = Field(default_factory=_utc_now, alias="createdAt")


# =============================================================================
# Completion
# =============================================================================


class CompletionAction(str, Enum):
    """Where the user should land after a call finishes."""

    SHOW_FEEDBACK = "show_feedback"
    GO_HOME = "go_home"


class CompletionOutcome(BaseModel):
    """Result of routing a finished call."""

    action: CompletionAction
    redirect_to: str = "/"
    refresh: bool = False
    feedback_id: Optional[str] = None
    detail: Optional[str] = None
