"""
PrepWise Voice Interview Service

Starts voice calls through the Vapi web-call API, ingests provider events
for the active call, generates interview questions and feedback, and
serves the stored records.

Endpoints:
    POST    /api/vapi/call            - Web-call passthrough to the provider
    POST    /api/vapi/generate        - Generate and store interview questions
    GET     /api/vapi/generate        - Health check for the provider function
    OPTIONS /api/vapi/generate        - CORS preflight
    GET     /api/vapi/test            - Web token report
    GET     /api/vapi/diagnose        - Configuration readiness report
    POST    /api/vapi/events          - Provider event for the active call
    POST    /session/start            - Start a voice call
    POST    /session/end              - Disconnect the active call
    GET     /session/status           - Current call state
    GET     /notifications/stream     - Toast stream (server-sent events)
    GET     /api/interviews           - List stored interviews
    GET     /api/interviews/{id}      - Stored interview
    GET     /api/interviews/{id}/feedback - Feedback for an interview
    GET     /api/feedback/{id}        - Stored feedback
    GET     /health                   - Health check
    GET     /stats                    - Statistics

Run:
    uvicorn prepwise_server:create_app --factory --port 8000
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, AsyncIterator, Optional, TypedDict

import aiofiles
import httpx
import uvicorn
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from prepwise_agent import __version__
from prepwise_agent.agent import FeedbackGenerator, QuestionGenerator
from prepwise_agent.completion import CompletionRouter
from prepwise_agent.errors import (
    ConfigurationError,
    PrepwiseServiceError,
    ProviderRejection,
    SessionAlreadyActiveError,
    SessionNotActiveError,
    SessionValidationError,
)
from prepwise_agent.generation import (
    FeedbackService,
    FeedbackSource,
    InterviewGenerationService,
    QuestionSource,
)
from prepwise_agent.models import (
    GenerateInterviewRequest,
    InterviewSettings,
    SessionMode,
)
from prepwise_agent.notifications import ToastPublisher
from prepwise_agent.session import CallSession
from prepwise_agent.store import InterviewStore, StoreWriteError
from prepwise_platform import (
    PLATFORM_NAME,
    AppSettings,
    ProviderEventVoiceClient,
    VapiClient,
    load_settings,
)

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


SERVICE_NAME = f"{PLATFORM_NAME} Voice Interview Service"

GENERATE_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Request Models
# =============================================================================


class CallRequest(BaseModel):
    """Body of POST /api/vapi/call."""

    workflow_id: str | None = Field(default=None, alias="workflowId")
    assistant_id: str | None = Field(default=None, alias="assistantId")
    variable_values: dict[str, Any] | None = Field(default=None, alias="variableValues")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class SessionStartRequest(BaseModel):
    """Request to start a voice call."""

    mode: SessionMode = Field(..., description="generate or interview")
    user_name: str = Field(default="", alias="userName", description="Participant name")
    user_id: str | None = Field(default=None, alias="userId")
    settings: dict[str, Any] | None = Field(
        default=None, description="Interview parameters (generate mode), validated on start"
    )
    interview_id: str | None = Field(default=None, alias="interviewId")
    feedback_id: str | None = Field(default=None, alias="feedbackId")
    questions: list[str] | None = Field(
        default=None, description="Explicit questions; defaults to the stored interview's"
    )

    model_config = {"populate_by_name": True}


def parse_interview_settings(raw: dict[str, Any] | None) -> InterviewSettings | None:
    """
    Validate start-form settings.

    Raises:
        SessionValidationError: A field is missing or out of range (400).
    """
    if raw is None:
        return None
    try:
        return InterviewSettings.model_validate(raw)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise SessionValidationError(
            f"Invalid interview settings: {', '.join(fields) or 'settings'}",
            missing_fields=fields,
        ) from e


class ProviderEventRequest(BaseModel):
    """One provider SDK event forwarded by the browser."""

    event: str = Field(..., min_length=1, description="call-start, call-end, message, ...")
    payload: Any = Field(default=None, description="Event payload as emitted by the SDK")


# =============================================================================
# Response Models
# =============================================================================


class BaseResponse(BaseModel):
    """Base response model with common fields."""

    ok: bool = Field(..., description="Whether the operation succeeded")
    message: str | None = Field(default=None, description="Optional status message")


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: bool = Field(default=False)
    error: str = Field(..., description="Error description")
    error_code: str | None = Field(default=None, description="Machine-readable error code")


class SessionStartResponse(BaseResponse):
    """Response for session start."""

    session_id: str = Field(..., description="Unique call session identifier")
    status: str = Field(..., description="Call status after start")
    started_at: str | None = Field(default=None, description="Session start timestamp")
    call: Any = Field(default=None, description="Provider response for the created call")


class SessionStatusResponse(BaseModel):
    """Current call state."""

    active: bool = Field(..., description="Whether a call is connecting or in progress")
    session: dict[str, Any] | None = Field(default=None, description="Session snapshot")
    toasts: list[dict[str, Any]] = Field(default_factory=list, description="Recent toasts")


class SessionEndResponse(BaseResponse):
    """Response for session end."""

    summary: dict[str, Any] = Field(..., description="Final session snapshot")


class EventResponse(BaseResponse):
    """Response for a provider event."""

    event: str
    handled: int = Field(..., description="Number of session handlers that ran")
    status: str = Field(..., description="Call status after the event")
    outcome: dict[str, Any] | None = Field(
        default=None, description="Completion outcome once the call has finished"
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Current server timestamp")
    session_active: bool = Field(..., description="Whether a call is in progress")
    web_token_configured: bool
    workflow_id_configured: bool
    assistant_id_configured: bool


class StatsResponse(BaseModel):
    """Statistics response."""

    stats: dict[str, Any] = Field(..., description="Service statistics")
    session: dict[str, Any] | None = Field(default=None, description="Current session info")
    data_directory: str = Field(..., description="Document store directory")


# =============================================================================
# Application State (Type-safe Lifespan State)
# =============================================================================


class AppStats(TypedDict):
    """Application statistics tracking."""

    events_received: int
    calls_started: int
    calls_failed: int
    calls_finished: int
    interviews_generated: int
    generation_failures: int
    started_at: str


class SessionSlot:
    """Holds the single CallSession this process serves."""

    def __init__(self) -> None:
        self.current: CallSession | None = None

    @property
    def is_busy(self) -> bool:
        return self.current is not None and self.current.is_busy

    def replace(self, session: CallSession) -> None:
        if self.current is not None:
            self.current.detach()
        self.current = session


class AppState(TypedDict):
    """Type-safe application state managed by lifespan."""

    settings: AppSettings
    store: InterviewStore
    notifier: ToastPublisher
    vapi: VapiClient
    voice_client: ProviderEventVoiceClient
    generation_service: InterviewGenerationService
    completion_router: CompletionRouter
    sessions: SessionSlot
    stats: AppStats


def get_initial_stats() -> AppStats:
    """Create initial statistics dictionary."""
    return AppStats(
        events_received=0,
        calls_started=0,
        calls_failed=0,
        calls_finished=0,
        interviews_generated=0,
        generation_failures=0,
        started_at=_utc_now(),
    )


# =============================================================================
# Dependencies
# =============================================================================


def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(
        settings=state.settings,
        store=state.store,
        notifier=state.notifier,
        vapi=state.vapi,
        voice_client=state.voice_client,
        generation_service=state.generation_service,
        completion_router=state.completion_router,
        sessions=state.sessions,
        stats=state.stats,
    )


# Type alias for dependency injection
AppStateDep = Annotated[AppState, Depends(get_app_state)]


def _require_session(state: AppState) -> CallSession:
    session = state["sessions"].current
    if session is None:
        raise SessionNotActiveError()
    return session


# =============================================================================
# File Operations (Async)
# =============================================================================


async def save_call_transcript(session: CallSession, transcripts_dir: Path) -> Path | None:
    """
    Write the finished call's transcript to `{transcripts_dir}/{session_id}.txt`.

    Rewrites the whole file, so saving the same call twice is harmless.
    """
    path = transcripts_dir / f"{session.session_id}.txt"
    try:
        transcripts_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(f"{'=' * 60}\n")
            await f.write(f"CALL {session.session_id} ({session.mode.value})\n")
            await f.write(f"Participant: {session.user_name}\n")
            await f.write(f"Started: {session.started_at}  Ended: {session.ended_at}\n")
            await f.write(f"{'=' * 60}\n\n")
            for message in session.transcript.messages:
                await f.write(f"[{message.role}] {message.content}\n")
        logger.debug("Saved transcript to %s", path)
    except OSError as e:
        logger.error("Failed to save transcript to file: %s", e)
        return None
    return path


async def settle_finished_call(session: CallSession, state: AppState) -> dict[str, Any] | None:
    """Wait for completion of a finished call and persist its transcript."""
    if not session.has_finished:
        return None
    outcome = await session.wait_for_completion()
    await save_call_transcript(session, state["settings"].data_dir / "transcripts")
    return outcome.model_dump() if outcome else None


# =============================================================================
# Exception Handlers
# =============================================================================


async def provider_rejection_handler(request: Request, exc: ProviderRejection) -> JSONResponse:
    """Provider failures keep their status and diagnostic body."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def configuration_error_handler(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    """Configuration failures carry remediation for whoever runs the server."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def service_error_handler(request: Request, exc: PrepwiseServiceError) -> JSONResponse:
    """
    Handle PrepwiseServiceError exceptions.

    Args:
        request: The incoming request.
        exc: The exception that was raised.

    Returns:
        JSONResponse with error details.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            ok=False,
            error=exc.message,
            error_code=exc.error_code,
        ).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            ok=False,
            error="Internal server error",
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    question_source: Optional[QuestionSource] = None,
    feedback_source: Optional[FeedbackSource] = None,
    vapi_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Resolved settings; loaded from the environment when omitted.
        question_source: Question generator; QuestionGenerator when omitted.
        feedback_source: Feedback generator; FeedbackGenerator when omitted.
        vapi_transport: httpx transport for provider calls (tests use MockTransport).
    """
    resolved_settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
        """
        Manage application lifespan with type-safe state.

        Yields:
            Dictionary of application state to be attached to requests.
        """
        logger.info("Starting %s", SERVICE_NAME)
        logger.info(
            "Runtime: endpoint=%s workflow=%s assistant=%s data_dir=%s",
            resolved_settings.call_endpoint,
            "configured" if resolved_settings.workflow_id else "missing",
            "configured" if resolved_settings.assistant_id else "missing",
            resolved_settings.data_dir,
        )

        store = InterviewStore(resolved_settings.data_dir)
        notifier = ToastPublisher()
        vapi = VapiClient(resolved_settings, transport=vapi_transport)
        generation_service = InterviewGenerationService(
            question_source or QuestionGenerator(model=resolved_settings.openai_model),
            store,
        )
        feedback_service = FeedbackService(
            feedback_source or FeedbackGenerator(model=resolved_settings.openai_model),
            store,
        )
        completion_router = CompletionRouter(
            feedback=feedback_service,
            generation=generation_service,
            notifier=notifier,
            settle_seconds=resolved_settings.completion_settle_seconds,
        )

        state = {
            "settings": resolved_settings,
            "store": store,
            "notifier": notifier,
            "vapi": vapi,
            "voice_client": ProviderEventVoiceClient(vapi),
            "generation_service": generation_service,
            "completion_router": completion_router,
            "sessions": SessionSlot(),
            "stats": get_initial_stats(),
        }

        yield state

        # Shutdown
        logger.info("Shutting down...")
        current = state["sessions"].current
        if current is not None and current.is_busy:
            await current.disconnect()
            await current.wait_for_completion()

    app = FastAPI(
        title=SERVICE_NAME,
        version=__version__,
        description="Voice-driven mock interviews on top of the Vapi web-call API",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved_settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=3600,
    )

    app.add_exception_handler(ProviderRejection, provider_rejection_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(PrepwiseServiceError, service_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    register_routes(app)
    return app


# =============================================================================
# Endpoints
# =============================================================================


def register_routes(app: FastAPI) -> None:
    """Attach all endpoints to the application."""

    # -------------------------------------------------------------------------
    # Provider passthrough
    # -------------------------------------------------------------------------

    @app.post("/api/vapi/call")
    async def create_call(request: CallRequest, state: AppStateDep) -> JSONResponse:
        """
        Forward a web-call request to the provider.

        Raises:
            ConfigurationError: Web token missing or malformed (500).
            BadRequestError: Neither or both ids supplied (400).
            ProviderRejection: Provider answered non-2xx (provider status).
            NetworkFailure: Provider unreachable (502).
        """
        data = await state["vapi"].create_web_call(
            workflow_id=request.workflow_id,
            assistant_id=request.assistant_id,
            variable_values=request.variable_values,
        )
        return JSONResponse(content=data)

    @app.post("/api/vapi/generate")
    async def generate_interview(
        request: GenerateInterviewRequest, state: AppStateDep
    ) -> JSONResponse:
        """Generate questions for the requested interview and store it."""
        stats = state["stats"]
        try:
            record = await state["generation_service"].generate(request)
        except (PrepwiseServiceError, StoreWriteError) as e:
            stats["generation_failures"] += 1
            logger.error("Interview generation failed: %s", e)
            message = e.message if isinstance(e, PrepwiseServiceError) else str(e)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": message},
                headers=GENERATE_CORS_HEADERS,
            )
        except Exception as e:
            stats["generation_failures"] += 1
            logger.error("Interview generation failed unexpectedly: %s", e, exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": str(e) or "Failed to generate interview"},
                headers=GENERATE_CORS_HEADERS,
            )

        stats["interviews_generated"] += 1
        return JSONResponse(
            content={
                "success": True,
                "message": "Interview generated successfully",
                "interviewId": record.id,
            },
            headers=GENERATE_CORS_HEADERS,
        )

    @app.get("/api/vapi/generate")
    async def generate_health() -> dict[str, Any]:
        return {"success": True, "data": "Thank you!"}

    @app.options("/api/vapi/generate")
    async def generate_preflight() -> Response:
        return Response(status_code=status.HTTP_200_OK, headers=GENERATE_CORS_HEADERS)

    @app.get("/api/vapi/test")
    async def test_token(state: AppStateDep) -> JSONResponse:
        """Report on the configured web token. 500 when it is missing."""
        report = state["vapi"].token_report()
        status_code = (
            status.HTTP_200_OK if report["configured"] else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(status_code=status_code, content=report)

    @app.get("/api/vapi/diagnose")
    async def diagnose(state: AppStateDep) -> JSONResponse:
        """Report on token and workflow configuration. 500 when either is missing."""
        report = state["vapi"].diagnose()
        configured = report["webTokenConfigured"] and report["workflowIdConfigured"]
        return JSONResponse(
            status_code=status.HTTP_200_OK if configured else status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=report,
        )

    @app.post("/api/vapi/events", response_model=EventResponse)
    async def receive_event(request: ProviderEventRequest, state: AppStateDep) -> EventResponse:
        """
        Deliver one provider event to the active call.

        A terminal event waits for the completion run, so the response
        carries the outcome (where the user should go next).

        Raises:
            SessionNotActiveError: No call has been started.
            BadRequestError: Unknown event name.
        """
        session = _require_session(state)
        stats = state["stats"]
        stats["events_received"] += 1

        was_finished = session.has_finished
        handled = await state["voice_client"].dispatch(request.event, request.payload)

        outcome = None
        if session.has_finished:
            if not was_finished:
                stats["calls_finished"] += 1
            outcome = await settle_finished_call(session, state)

        return EventResponse(
            ok=True,
            event=request.event,
            handled=handled,
            status=session.status.value,
            outcome=outcome,
        )

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    @app.post("/session/start", response_model=SessionStartResponse)
    async def start_session(
        request: SessionStartRequest, state: AppStateDep
    ) -> SessionStartResponse:
        """
        Start a voice call.

        Raises:
            SessionAlreadyActiveError: A call is connecting or in progress.
            SessionValidationError: Missing name, settings or questions.
            PrepwiseServiceError: Interview id unknown (404).
        """
        settings = state["settings"]
        sessions = state["sessions"]
        stats = state["stats"]

        if sessions.is_busy:
            raise SessionAlreadyActiveError()

        interview_settings = parse_interview_settings(request.settings)
        questions = request.questions
        if request.mode is SessionMode.INTERVIEW and request.interview_id:
            interview = state["store"].get_interview(request.interview_id)
            if interview is None:
                raise PrepwiseServiceError(
                    message=f"Interview '{request.interview_id}' not found",
                    status_code=status.HTTP_404_NOT_FOUND,
                    error_code="INTERVIEW_NOT_FOUND",
                )
            questions = questions or interview.questions

        session = CallSession(
            state["voice_client"],
            mode=request.mode,
            user_name=request.user_name,
            user_id=request.user_id,
            workflow_id=settings.workflow_id,
            assistant_id=settings.assistant_id,
            settings=interview_settings,
            questions=questions,
            interview_id=request.interview_id,
            feedback_id=request.feedback_id,
            notifier=state["notifier"],
            completion=state["completion_router"],
        )
        sessions.replace(session)

        try:
            await session.start()
        except PrepwiseServiceError:
            stats["calls_failed"] += 1
            raise

        stats["calls_started"] += 1
        logger.info(
            "Call started for %s (%s, mode=%s)",
            request.user_name,
            session.session_id,
            request.mode.value,
        )
        return SessionStartResponse(
            ok=True,
            message=f"Call started for {request.user_name}",
            session_id=session.session_id,
            status=session.status.value,
            started_at=session.started_at,
            call=state["voice_client"].call,
        )

    @app.get("/session/status", response_model=SessionStatusResponse)
    async def get_session_status(state: AppStateDep) -> SessionStatusResponse:
        session = state["sessions"].current
        toasts = await state["notifier"].get_history()
        return SessionStatusResponse(
            active=state["sessions"].is_busy,
            session=session.get_session_context() if session else None,
            toasts=[toast.to_dict() for toast in toasts],
        )

    @app.post("/session/end", response_model=SessionEndResponse)
    async def end_session(state: AppStateDep) -> SessionEndResponse:
        """
        Disconnect the active call and wait for its completion run.

        Raises:
            SessionNotActiveError: No call is connecting or in progress.
        """
        session = _require_session(state)
        if not session.is_busy:
            raise SessionNotActiveError("No active call to end.")

        await session.disconnect()
        state["stats"]["calls_finished"] += 1
        await settle_finished_call(session, state)

        logger.info("Call ended: %s", session.session_id)
        return SessionEndResponse(
            ok=True,
            message="Call ended",
            summary=session.get_session_context(),
        )

    @app.get("/notifications/stream")
    async def stream_notifications(state: AppStateDep) -> StreamingResponse:
        """Server-sent events, one per toast, starting with recent history."""
        notifier = state["notifier"]
        queue = await notifier.subscribe()

        async def event_source() -> AsyncIterator[str]:
            try:
                while True:
                    toast = await queue.get()
                    yield f"data: {json.dumps(toast.to_dict())}\n\n"
            finally:
                await notifier.unsubscribe(queue)

        return StreamingResponse(event_source(), media_type="text/event-stream")

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    @app.get("/api/interviews")
    async def list_interviews(
        state: AppStateDep,
        user_id: Annotated[str | None, Query(alias="userId")] = None,
    ) -> list[dict[str, Any]]:
        return [
            record.model_dump(by_alias=True)
            for record in state["store"].list_interviews(user_id=user_id)
        ]

    @app.get("/api/interviews/{interview_id}")
    async def get_interview(interview_id: str, state: AppStateDep) -> dict[str, Any]:
        record = state["store"].get_interview(interview_id)
        if record is None:
            raise PrepwiseServiceError(
                message=f"Interview '{interview_id}' not found",
                status_code=status.HTTP_404_NOT_FOUND,
                error_code="INTERVIEW_NOT_FOUND",
            )
        return record.model_dump(by_alias=True)

    @app.get("/api/interviews/{interview_id}/feedback")
    async def get_interview_feedback(
        interview_id: str,
        state: AppStateDep,
        user_id: Annotated[str | None, Query(alias="userId")] = None,
    ) -> dict[str, Any]:
        record = state["store"].get_feedback_by_interview(interview_id, user_id=user_id)
        if record is None:
            raise PrepwiseServiceError(
                message=f"No feedback for interview '{interview_id}'",
                status_code=status.HTTP_404_NOT_FOUND,
                error_code="FEEDBACK_NOT_FOUND",
            )
        return record.model_dump(by_alias=True)

    @app.get("/api/feedback/{feedback_id}")
    async def get_feedback(feedback_id: str, state: AppStateDep) -> dict[str, Any]:
        record = state["store"].get_feedback(feedback_id)
        if record is None:
            raise PrepwiseServiceError(
                message=f"Feedback '{feedback_id}' not found",
                status_code=status.HTTP_404_NOT_FOUND,
                error_code="FEEDBACK_NOT_FOUND",
            )
        return record.model_dump(by_alias=True)

    # -------------------------------------------------------------------------
    # Service
    # -------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    async def health(state: AppStateDep) -> HealthResponse:
        settings = state["settings"]
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=__version__,
            timestamp=_utc_now(),
            session_active=state["sessions"].is_busy,
            web_token_configured=bool(settings.web_token),
            workflow_id_configured=bool(settings.workflow_id),
            assistant_id_configured=bool(settings.assistant_id),
        )

    @app.get("/stats", response_model=StatsResponse)
    async def get_stats(state: AppStateDep) -> StatsResponse:
        session = state["sessions"].current
        return StatsResponse(
            stats=dict(state["stats"]),
            session=(
                {
                    "session_id": session.session_id,
                    "mode": session.mode.value,
                    "status": session.status.value,
                    "messages": len(session.transcript),
                }
                if session
                else None
            ),
            data_directory=str(state["settings"].data_dir),
        )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    runtime_settings = load_settings()

    logger.info("=" * 60)
    logger.info(SERVICE_NAME)
    logger.info("=" * 60)
    logger.info(
        "Binding to: http://%s:%d",
        runtime_settings.server_host,
        runtime_settings.server_port,
    )
    logger.info("Provider endpoint: %s", runtime_settings.call_endpoint)
    logger.info("")
    logger.info("Endpoints:")
    logger.info("  POST /api/vapi/call        - Web-call passthrough")
    logger.info("  POST /api/vapi/generate    - Generate interview questions")
    logger.info("  GET  /api/vapi/test        - Web token report")
    logger.info("  GET  /api/vapi/diagnose    - Configuration report")
    logger.info("  POST /api/vapi/events      - Provider event for the active call")
    logger.info("  POST /session/start        - Start voice call")
    logger.info("  GET  /session/status       - Call state")
    logger.info("  POST /session/end          - Disconnect call")
    logger.info("  GET  /health               - Health check")
    logger.info("")
    logger.info("Data directory: %s", runtime_settings.data_dir)
    logger.info("=" * 60)

    uvicorn.run(
        create_app(runtime_settings),
        host=runtime_settings.server_host,
        port=runtime_settings.server_port,
        log_level="info",
    )
