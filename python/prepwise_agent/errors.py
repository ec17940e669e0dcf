"""
Tagged error variants for the PrepWise voice interview service.

Every error is created where it originates (configuration loading, the
provider HTTP boundary, session validation) and carries a fixed `kind`
tag, so callers switch on the tag instead of probing the error's shape.

Last Grunted: 10/14/2026
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


__all__ = [
    "ErrorKind",
    "RejectionReason",
    "PrepwiseServiceError",
    "ConfigurationError",
    "BadRequestError",
    "SessionValidationError",
    "ProviderRejection",
    "NetworkFailure",
    "GenerationError",
    "SessionAlreadyActiveError",
    "SessionNotActiveError",
    "ROOM_ENDED_ERROR_TYPES",
    "ROOM_ENDED_MESSAGES",
    "is_room_ended",
    "describe_error",
]


class ErrorKind(str, Enum):
    """Tag identifying which boundary produced an error."""

    CONFIGURATION = "configuration"
    PROVIDER_REJECTION = "provider_rejection"
    NETWORK_FAILURE = "network_failure"
    BAD_REQUEST = "bad_request"
    VALIDATION = "validation"
    GENERATION = "generation"
    SESSION = "session"


class RejectionReason(str, Enum):
    """Classification of a non-2xx provider response."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    OTHER = "other"

    @classmethod
    def from_status(cls, status_code: int) -> "RejectionReason":
        if status_code == 401:
            return cls.UNAUTHORIZED
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 400:
            return cls.BAD_REQUEST
        return cls.OTHER


class PrepwiseServiceError(Exception):
    """Base exception for service errors."""

    kind: ErrorKind = ErrorKind.SESSION

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class ConfigurationError(PrepwiseServiceError):
    """A required credential or identifier is missing or malformed."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        remediation: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=500, error_code="CONFIGURATION_ERROR")
        self.hint = hint
        self.remediation = list(remediation or [])
        self.details = dict(details or {})

    def to_body(self) -> dict[str, Any]:
        """
        Response body for configuration failures.

        Errors that carry diagnostic details list their remediation as
        numbered `fixInstructions`; the rest list it as `commonIssues`.
        """
        body: dict[str, Any] = {"error": self.message}
        if self.hint:
            body["message"] = self.hint
        if self.details:
            body["details"] = self.details
            if self.remediation:
                body["fixInstructions"] = {
                    f"step{index}": step for index, step in enumerate(self.remediation, start=1)
                }
        elif self.remediation:
            body["commonIssues"] = self.remediation
        return body


class BadRequestError(PrepwiseServiceError):
    """The caller sent a request the service cannot act on."""

    kind = ErrorKind.BAD_REQUEST

    def __init__(self, message: str, error_code: str = "BAD_REQUEST") -> None:
        super().__init__(message=message, status_code=400, error_code=error_code)


class SessionValidationError(BadRequestError):
    """Session start preconditions failed before any network call."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, missing_fields: Optional[list[str]] = None) -> None:
        super().__init__(message=message, error_code="INVALID_SESSION_REQUEST")
        self.missing_fields = list(missing_fields or [])


class ProviderRejection(PrepwiseServiceError):
    """The voice provider answered with a non-2xx status."""

    kind = ErrorKind.PROVIDER_REJECTION

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        details: Optional[dict[str, Any]] = None,
        debug: Optional[dict[str, Any]] = None,
        troubleshooting: Optional[dict[str, str]] = None,
    ) -> None:
        self.reason = RejectionReason.from_status(status_code)
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=f"PROVIDER_{self.reason.value.upper()}",
        )
        self.details = dict(details or {})
        self.debug = dict(debug or {})
        self.troubleshooting = troubleshooting

    def to_body(self) -> dict[str, Any]:
        """Structured `{error, status, details, debug}` response body."""
        body: dict[str, Any] = {
            "error": self.message,
            "status": self.status_code,
            "details": self.details,
            "debug": self.debug,
        }
        if self.troubleshooting:
            body["troubleshooting"] = self.troubleshooting
        return body


class NetworkFailure(PrepwiseServiceError):
    """Transport-level failure reaching a provider. Not retried."""

    kind = ErrorKind.NETWORK_FAILURE

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message=message, status_code=502, error_code="NETWORK_FAILURE")
        self.cause = cause


class GenerationError(PrepwiseServiceError):
    """The question or feedback model returned something unusable."""

    kind = ErrorKind.GENERATION

    def __init__(self, message: str) -> None:
        super().__init__(message=message, status_code=500, error_code="GENERATION_FAILED")


class SessionAlreadyActiveError(PrepwiseServiceError):
    """Raised when a start is requested while a call is outstanding."""

    def __init__(
        self, message: str = "Session already active. End current session first."
    ) -> None:
        super().__init__(
            message=message,
            status_code=409,
            error_code="SESSION_ALREADY_ACTIVE",
        )


class SessionNotActiveError(PrepwiseServiceError):
    """Raised when an operation requires a session and none exists."""

    def __init__(self, message: str = "No active session. Start a session first.") -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="SESSION_NOT_ACTIVE",
        )


# =============================================================================
# Normal end-of-room classification
# =============================================================================

ROOM_ENDED_ERROR_TYPES = frozenset({"ejected"})

ROOM_ENDED_MESSAGES = frozenset({
    "meeting has ended",
    "meeting ended due to ejection: meeting has ended",
    "room ended",
    "room was deleted",
})

_MESSAGE_KEYS = ("message", "msg", "errorMsg")


def is_room_ended(payload: Any) -> bool:
    """
    Check whether a provider error payload is really a normal end of call.

    Scripted workflows tear down the room when they finish, and the provider
    reports that as an error event. The marker is either an error `type` of
    "ejected" or a message equal to one of the reserved phrases. The payload
    may nest the interesting part under an `error` key.

    Args:
        payload: Error event payload (dict, string, or exception).

    Returns:
        True if the event means the room ended normally.
    """
    candidates: list[Any] = [payload]
    if isinstance(payload, dict) and "error" in payload:
        candidates.append(payload["error"])

    for candidate in candidates:
        if isinstance(candidate, BaseException):
            candidate = str(candidate)
        if isinstance(candidate, str):
            if candidate.strip().lower() in ROOM_ENDED_MESSAGES:
                return True
            continue
        if not isinstance(candidate, dict):
            continue

        error_type = candidate.get("type")
        if isinstance(error_type, str) and error_type.strip().lower() in ROOM_ENDED_ERROR_TYPES:
            return True

        for key in _MESSAGE_KEYS:
            value = candidate.get(key)
            if isinstance(value, str) and value.strip().lower() in ROOM_ENDED_MESSAGES:
                return True

    return False


def describe_error(exc: BaseException) -> str:
    """
    Build the user-facing description for a failure toast.

    Args:
        exc: Any exception. Tagged service errors get tailored text.

    Returns:
        Short human readable cause.
    """
    if not isinstance(exc, PrepwiseServiceError):
        return str(exc) or "An error occurred during the call. Please try again."

    if exc.kind is ErrorKind.CONFIGURATION:
        if isinstance(exc, ConfigurationError) and exc.hint:
            return f"{exc.message}. {exc.hint}"
        return exc.message

    if exc.kind is ErrorKind.PROVIDER_REJECTION and isinstance(exc, ProviderRejection):
        if exc.reason is RejectionReason.UNAUTHORIZED:
            return "Authentication with the voice provider failed. Check the web token."
        if exc.reason is RejectionReason.NOT_FOUND:
            return "Workflow or Assistant not found. Please verify the ID is correct."
        return f"Provider error ({exc.status_code}): {exc.message}"

    if exc.kind is ErrorKind.NETWORK_FAILURE:
        return "Could not reach the voice provider. Check your network connection."

    return exc.message
