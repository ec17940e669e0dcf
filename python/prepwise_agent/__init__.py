"""
PrepWise Interview Agent Package.

Core logic for voice-driven mock interviews: credential hygiene, the call
session state machine, transcript accumulation and the completion router
that turns a finished call into a stored interview or feedback.

Components:
    - CallSession: State machine for one voice call
    - TranscriptAccumulator: Ordered log of finalized transcript fragments
    - CompletionRouter: Decides what happens after a call finishes
    - InterviewGenerationService / FeedbackService: LLM + store glue
    - QuestionGenerator / FeedbackGenerator: OpenAI Agents SDK wrappers
    - InterviewStore: JSON document store for interviews and feedback
    - ToastPublisher: Pub/sub stream of user-facing notifications
    - sanitize_token / inspect_credential: Web token cleanup

Example:
    >>> from prepwise_agent import sanitize_token
    >>>
    >>> sanitize_token('  "pk_0b7c2f4e-1a2b-4c3d-9e8f-123456789abc"\\n')
    'pk_0b7c2f4e-1a2b-4c3d-9e8f-123456789abc'

Last Grunted: 10/16/2026
"""

from .credentials import (
    SanitizedCredential,
    TokenFormat,
    classify_token,
    inspect_credential,
    mask_token,
    sanitize_token,
)

from .errors import (
    BadRequestError,
    ConfigurationError,
    ErrorKind,
    GenerationError,
    NetworkFailure,
    PrepwiseServiceError,
    ProviderRejection,
    RejectionReason,
    SessionAlreadyActiveError,
    SessionNotActiveError,
    SessionValidationError,
    describe_error,
    is_room_ended,
)

from .models import (
    CallStartRequest,
    CallStatus,
    CompletionAction,
    CompletionOutcome,
    ExtractedInterviewInfo,
    FeedbackAssessment,
    FeedbackRecord,
    FunctionCallResult,
    GenerateInterviewRequest,
    InterviewRecord,
    InterviewSettings,
    SavedMessage,
    SessionMode,
)

from .transcript import TranscriptAccumulator

from .extraction import extract_interview_info

from .notifications import Toast, ToastKind, ToastPublisher

from .store import InterviewStore, StoreReadError, StoreWriteError

from .generation import (
    FeedbackService,
    InterviewGenerationService,
    parse_questions,
    split_techstack,
)

from .completion import CompletionRouter

from .session import CallSession, VoiceClient


__all__ = [
    # Credentials
    "SanitizedCredential",
    "TokenFormat",
    "classify_token",
    "inspect_credential",
    "mask_token",
    "sanitize_token",
    # Errors
    "BadRequestError",
    "ConfigurationError",
    "ErrorKind",
    "GenerationError",
    "NetworkFailure",
    "PrepwiseServiceError",
    "ProviderRejection",
    "RejectionReason",
    "SessionAlreadyActiveError",
    "SessionNotActiveError",
    "SessionValidationError",
    "describe_error",
    "is_room_ended",
    # Models
    "CallStartRequest",
    "CallStatus",
    "CompletionAction",
    "CompletionOutcome",
    "ExtractedInterviewInfo",
    "FeedbackAssessment",
    "FeedbackRecord",
    "FunctionCallResult",
    "GenerateInterviewRequest",
    "InterviewRecord",
    "InterviewSettings",
    "SavedMessage",
    "SessionMode",
    # Transcript
    "TranscriptAccumulator",
    "extract_interview_info",
    # Notifications
    "Toast",
    "ToastKind",
    "ToastPublisher",
    # Store
    "InterviewStore",
    "StoreReadError",
    "StoreWriteError",
    # Services
    "FeedbackService",
    "InterviewGenerationService",
    "parse_questions",
    "split_techstack",
    "CompletionRouter",
    # Session
    "CallSession",
    "VoiceClient",
]

__version__ = "0.1.0"
