"""
Call Session State Machine.

Tracks one voice call from start to finish: status transitions, the
finalized transcript, the latest provider function-call result, and the
single completion run when the call ends.

The session never talks to the provider directly. It drives an injected
VoiceClient and reacts to the six provider events that client emits:
call-start, call-end, message, speech-start, speech-end and error.

Thread Safety:
    Not thread-safe. All methods must run on the same event loop.

Last Grunted: 10/16/2026
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

from .errors import (
    ConfigurationError,
    SessionAlreadyActiveError,
    SessionValidationError,
    describe_error,
    is_room_ended,
)
from .models import (
    CallStartRequest,
    CallStatus,
    CompletionAction,
    CompletionOutcome,
    FunctionCallResult,
    InterviewSettings,
    SessionMode,
)
from .notifications import ToastPublisher
from .transcript import TranscriptAccumulator


__all__ = [
    "PROVIDER_EVENTS",
    "EventHandler",
    "VoiceClient",
    "CompletionHandler",
    "CallSession",
]


logger = logging.getLogger(__name__)


PROVIDER_EVENTS = ("call-start", "call-end", "message", "speech-start", "speech-end", "error")

EventHandler = Callable[[Any], Awaitable[None]]

_DEFAULT_ERROR_TEXT = "An error occurred during the call. Please try again."


class VoiceClient(Protocol):
    """Provider connection the session drives."""

    async def start(self, request: CallStartRequest) -> Any:
        """Start a call. Raises a tagged service error on failure."""

    async def stop(self) -> None:
        """Release the provider connection."""

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        ...


class CompletionHandler(Protocol):
    """Decides what happens after a call finishes."""

    async def complete(self, session: "CallSession") -> CompletionOutcome:
        ...


def _format_utc_timestamp(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _error_text(error: Any) -> str:
    """Pull a readable message out of a provider error payload."""
    if isinstance(error, BaseException):
        return str(error) or _DEFAULT_ERROR_TEXT
    if isinstance(error, str):
        return error.strip() or _DEFAULT_ERROR_TEXT
    if isinstance(error, dict):
        for source in (error, error.get("error")):
            if isinstance(source, str) and source.strip():
                return source.strip()
            if not isinstance(source, dict):
                continue
            for key in ("message", "msg", "errorMsg"):
                value = source.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
    return _DEFAULT_ERROR_TEXT


class CallSession:
    """
    One voice call between the user and the interview agent.

    Responsibilities:
        - Validate start preconditions before any network call
        - Track CallStatus through provider events
        - Accumulate finalized transcript fragments
        - Keep the latest function-call result
        - Run completion exactly once when the call finishes

    A session object is single use: once it has finished it cannot be
    restarted. Create a new CallSession for the next call.

    Example:
        >>> session = CallSession(
        ...     client,
        ...     mode=SessionMode.INTERVIEW,
        ...     user_name="Sarah Chen",
        ...     user_id="user_42",
        ...     assistant_id="asst_123",
        ...     questions=["Tell me about yourself."],
        ...     interview_id="int_abc",
        ...     completion=router,
        ... )
        >>> await session.start()
        >>> session.status
        <CallStatus.ACTIVE: 'ACTIVE'>
    """

    def __init__(
        self,
        client: VoiceClient,
        *,
        mode: SessionMode,
        user_name: str,
        user_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        assistant_id: Optional[str] = None,
        settings: Optional[InterviewSettings] = None,
        questions: Optional[list[str]] = None,
        interview_id: Optional[str] = None,
        feedback_id: Optional[str] = None,
        notifier: Optional[ToastPublisher] = None,
        completion: Optional[CompletionHandler] = None,
    ) -> None:
        created = datetime.now(timezone.utc)
        self.session_id = f"call_{created.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
        self.mode = mode
        self.user_name = user_name
        self.user_id = user_id
        self.workflow_id = workflow_id
        self.assistant_id = assistant_id
        self.settings = settings
        self.questions = list(questions or [])
        self.interview_id = interview_id
        self.feedback_id = feedback_id
        self.notifier = notifier or ToastPublisher()

        self.transcript = TranscriptAccumulator()
        self.function_result: Optional[FunctionCallResult] = None
        self.is_speaking = False
        self.outcome: Optional[CompletionOutcome] = None
        self.started_at: Optional[str] = None
        self.ended_at: Optional[str] = None

        self._client = client
        self._completion = completion
        self._status = CallStatus.INACTIVE
        self._starting = False
        self._attached = False
        self._completion_task: Optional[asyncio.Task[None]] = None
        self._handlers: dict[str, EventHandler] = {
            "call-start": self._on_call_start,
            "call-end": self._on_call_end,
            "message": self._on_message,
            "speech-start": self._on_speech_start,
            "speech-end": self._on_speech_end,
            "error": self._on_error,
        }

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def status(self) -> CallStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        """True while connecting or in a call."""
        return self._status in (CallStatus.CONNECTING, CallStatus.ACTIVE)

    @property
    def is_busy(self) -> bool:
        """True while a start is outstanding or a call is in progress."""
        return self._starting or self.is_active

    @property
    def has_finished(self) -> bool:
        """True once the call has ended, even if a later error reset the status."""
        return self.ended_at is not None

    def _set_status(self, status: CallStatus) -> None:
        if status is self._status:
            return
        logger.info("Call %s: %s -> %s", self.session_id, self._status.value, status.value)
        self._status = status

    def attach(self) -> None:
        """Register event handlers on the voice client (idempotent)."""
        if self._attached:
            return
        for event, handler in self._handlers.items():
            self._client.on(event, handler)
        self._attached = True

    def detach(self) -> None:
        """Unregister event handlers from the voice client (idempotent)."""
        if not self._attached:
            return
        for event, handler in self._handlers.items():
            self._client.off(event, handler)
        self._attached = False

    # -------------------------------------------------------------------------
    # Start / Disconnect
    # -------------------------------------------------------------------------

    def build_start_request(self) -> CallStartRequest:
        """
        Validate preconditions and build the provider start request.

        Generation calls need a configured workflow id and complete
        interview settings. Interview calls need at least one question and
        a configured assistant id.

        Raises:
            SessionValidationError: Missing participant name, settings or questions.
            ConfigurationError: Missing workflow or assistant id.
        """
        name = (self.user_name or "").strip()
        if not name:
            raise SessionValidationError(
                "Participant name is required to start a call.",
                missing_fields=["userName"],
            )

        if self.mode is SessionMode.GENERATE:
            if not self.workflow_id:
                raise ConfigurationError(
                    "Voice workflow ID is not configured",
                    hint="Set VAPI_WORKFLOW_ID in your .env file and restart the server.",
                    remediation=[
                        "Copy the workflow ID from the Vapi dashboard",
                        "Add VAPI_WORKFLOW_ID=<id> to .env or .env.local",
                        "Restart the server after editing the file",
                    ],
                )
            if self.settings is None:
                raise SessionValidationError(
                    "Interview settings are required for a generation call.",
                    missing_fields=[
                        "jobRole",
                        "experienceLevel",
                        "techStack",
                        "questionType",
                        "numberOfQuestions",
                    ],
                )
            return CallStartRequest(
                workflow_id=self.workflow_id,
                input_text=self.settings.to_input_text(name),
                variable_values=self.settings.to_variable_values(name, self.user_id),
            )

        questions = [q.strip() for q in self.questions if q and q.strip()]
        if not questions:
            raise SessionValidationError(
                "No questions available for this interview.",
                missing_fields=["questions"],
            )
        if not self.assistant_id:
            raise ConfigurationError(
                "Voice assistant ID is not configured",
                hint="Set VAPI_ASSISTANT_ID in your .env file and restart the server.",
            )
        return CallStartRequest(
            assistant_id=self.assistant_id,
            variable_values={
                "questions": "\n".join(f"- {question}" for question in questions),
                "userName": name,
                "userid": self.user_id or "",
            },
        )

    async def start(self) -> None:
        """
        Start the call.

        Validation happens before anything else, so a bad request never
        reaches the provider. A failed start returns the session to
        INACTIVE, publishes a "Call failed" toast and re-raises.

        Raises:
            SessionAlreadyActiveError: A start is outstanding, a call is in
                progress, or this session already finished.
            SessionValidationError: Preconditions not met.
            ConfigurationError: Workflow/assistant id or credential missing.
        """
        if self.is_busy:
            raise SessionAlreadyActiveError()
        if self.has_finished:
            raise SessionAlreadyActiveError("Call already finished. Start a new session.")

        request = self.build_start_request()

        self._starting = True
        try:
            self.attach()
            self.transcript.clear()
            self.function_result = None
            self.is_speaking = False
            self.started_at = _format_utc_timestamp(datetime.now(timezone.utc))
            self._set_status(CallStatus.CONNECTING)

            try:
                await self._client.start(request)
            except Exception as exc:
                logger.error("Failed to start call %s: %s", self.session_id, exc)
                if self._status is CallStatus.CONNECTING:
                    self._set_status(CallStatus.INACTIVE)
                    await self.notifier.error("Call failed", describe_error(exc))
                raise
        finally:
            self._starting = False

        if self._status is CallStatus.CONNECTING:
            self._set_status(CallStatus.ACTIVE)

    async def disconnect(self) -> None:
        """
        End the call from the user's side.

        Forces FINISHED (running completion once) and releases the provider
        connection. A failure to release is logged, not raised.
        """
        await self._finish("user disconnect")
        try:
            await self._client.stop()
        except Exception as exc:
            logger.warning(
                "Failed to release voice connection for call %s: %s",
                self.session_id,
                exc,
            )

    async def wait_for_completion(self) -> Optional[CompletionOutcome]:
        """Wait for the completion run, if one was scheduled."""
        if self._completion_task is not None:
            await self._completion_task
        return self.outcome

    # -------------------------------------------------------------------------
    # Provider Events
    # -------------------------------------------------------------------------

    async def _on_call_start(self, payload: Any = None) -> None:
        if self._status is CallStatus.CONNECTING:
            self._set_status(CallStatus.ACTIVE)
        else:
            logger.debug("call-start ignored in state %s", self._status.value)

    async def _on_call_end(self, payload: Any = None) -> None:
        await self._finish("call-end")

    async def _on_speech_start(self, payload: Any = None) -> None:
        self.is_speaking = True

    async def _on_speech_end(self, payload: Any = None) -> None:
        self.is_speaking = False

    async def _on_message(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.debug("Ignoring non-object message: %r", message)
            return

        message_type = message.get("type")
        if message_type == "transcript":
            self.transcript.add_fragment(message)
        elif message_type == "function-call-result":
            await self._record_function_result(message)
        elif message_type == "function-call":
            logger.info(
                "Function call initiated on call %s: %s",
                self.session_id,
                message.get("functionCall"),
            )

    async def _record_function_result(self, message: dict[str, Any]) -> None:
        result = FunctionCallResult.from_message(message)
        self.function_result = result
        logger.info(
            "Function call result on call %s: name=%s success=%s",
            self.session_id,
            result.name,
            result.success,
        )
        if result.success is True:
            await self.notifier.success(
                "Interview generated successfully!",
                "Your interview questions have been created.",
            )
        elif result.success is False:
            await self.notifier.error(
                "Failed to generate interview",
                result.error or "An error occurred while generating questions.",
            )

    async def _on_error(self, error: Any) -> None:
        if is_room_ended(error):
            logger.info("Room ended normally for call %s", self.session_id)
            await self._finish("room ended")
            return

        text = _error_text(error)
        logger.error("Voice provider error on call %s: %s", self.session_id, text)
        if self._status is CallStatus.INACTIVE:
            return
        self._set_status(CallStatus.INACTIVE)
        self.is_speaking = False
        await self.notifier.error("Call failed", text)

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    async def _finish(self, reason: str) -> None:
        if not self.is_active:
            logger.debug("%s ignored for call %s in state %s", reason, self.session_id,
                         self._status.value)
            return

        self._set_status(CallStatus.FINISHED)
        self.ended_at = _format_utc_timestamp(datetime.now(timezone.utc))
        self.is_speaking = False
        logger.info(
            "Call %s finished (%s, %d messages)",
            self.session_id,
            reason,
            len(self.transcript),
        )

        if self._completion is not None and self._completion_task is None:
            self._completion_task = asyncio.create_task(self._run_completion())

    async def _run_completion(self) -> None:
        try:
            self.outcome = await self._completion.complete(self)
        except Exception as exc:
            logger.error(
                "Completion failed for call %s: %s", self.session_id, exc, exc_info=True
            )
            self.outcome = CompletionOutcome(action=CompletionAction.GO_HOME, detail=str(exc))
        logger.info(
            "Call %s completion: action=%s redirect=%s",
            self.session_id,
            self.outcome.action.value,
            self.outcome.redirect_to,
        )

    def get_session_context(self) -> dict[str, Any]:
        """Snapshot of the session for status endpoints."""
        return {
            "session_id": self.session_id,
            "mode": self.mode.value,
            "status": self._status.value,
            "user_name": self.user_name,
            "user_id": self.user_id,
            "interview_id": self.interview_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "is_speaking": self.is_speaking,
            "last_message": self.transcript.last_message,
            "messages": self.transcript.as_dicts(),
            "function_result": (
                self.function_result.model_dump(exclude={"raw"})
                if self.function_result
                else None
            ),
            "outcome": self.outcome.model_dump() if self.outcome else None,
        }
