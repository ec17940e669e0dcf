"""
Vapi web-call passthrough client.

Forwards a sanitized web token and a normalized request body to the
provider's `/call/web` endpoint, and turns provider failures into tagged
service errors with diagnostic hints.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from prepwise_agent.credentials import SanitizedCredential, TokenFormat, inspect_credential
from prepwise_agent.errors import (
    BadRequestError,
    ConfigurationError,
    NetworkFailure,
    ProviderRejection,
)
from prepwise_platform.config import AppSettings


logger = logging.getLogger(__name__)


EXAMPLE_TOKEN = "24d2848f-2887-4b7d-a555-99235377ac4e"
UUID_TOKEN_LENGTH = 36

DEFAULT_FAILURE_MESSAGE = "Failed to start call"
NOT_FOUND_MESSAGE = "Workflow or Assistant not found - Please verify the ID is correct"
BAD_REQUEST_FALLBACK = "Bad Request - Verify workflow ID and variable values"
MISSING_ID_MESSAGE = "Either workflowId or assistantId must be provided"
BOTH_IDS_MESSAGE = "Provide either workflowId or assistantId, not both"
PRIVATE_KEY_MARKER = "private key"

TOKEN_TYPE_HINT = (
    "\n\nTOKEN TYPE ISSUE DETECTED:"
    "\n  - Vapi says: 'you may be using the private key instead of the public key'"
    "\n  - Make sure you're using the WEB TOKEN (not Private Key)"
    "\n  - Get it from: Vapi Dashboard → Settings → API Keys → Web Token"
    "\n  - The /call/web endpoint requires the Web Token"
)

TOKEN_OK_HINT = (
    "\n\nToken format looks correct after cleaning. Possible issues:"
    "\n  - Token might be incorrect or revoked in the Vapi Dashboard"
    "\n  - Token might not have permission for this workflow"
    "\n  - Check: Vapi Dashboard → Settings → API Keys → Web Token"
    "\n  - Verify the token matches exactly what's in the dashboard"
)


def _token_length_hint(credential: SanitizedCredential, env_name: str) -> str:
    return (
        "\n\nTOKEN LENGTH ISSUE:"
        f"\n  - Original token length: {len(credential.original)} characters"
        f"\n  - Cleaned token length: {len(credential.cleaned)} characters"
        f"\n  - Expected: {UUID_TOKEN_LENGTH} characters (UUID format)"
        "\n  - The token was automatically cleaned, but still has wrong length"
        "\n  - Fix your .env file:"
        f"\n    Correct: {env_name}={EXAMPLE_TOKEN}"
        f'\n    Wrong: {env_name}="{EXAMPLE_TOKEN}" (quotes)'
        f"\n    Wrong: {env_name}= {EXAMPLE_TOKEN} (spaces)"
        f"\n    Wrong: {env_name}=={EXAMPLE_TOKEN} (double =)"
        "\n  - After fixing, restart the server"
    )


def normalize_variable_values(values: dict[str, Any]) -> dict[str, Any]:
    """
    Copy a variable bag, filling legacy key names the provider templates use.

    `userId` is mirrored to `userid` and `userName` to `name` unless the
    target key is already set.
    """
    normalized = dict(values)
    if normalized.get("userId") and not normalized.get("userid"):
        normalized["userid"] = normalized["userId"]
    if normalized.get("userName") and not normalized.get("name"):
        normalized["name"] = normalized["userName"]
    return normalized


def build_request_body(
    workflow_id: Optional[str] = None,
    assistant_id: Optional[str] = None,
    variable_values: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Build the provider request body for a web call.

    Exactly one of `workflow_id` / `assistant_id` must be given. A non-empty
    variable bag is normalized and nested under the matching overrides key.

    Raises:
        BadRequestError: Neither or both ids supplied.

    Example:
        >>> build_request_body(assistant_id="asst_1", variable_values={"userName": "Ana"})
        {'assistantId': 'asst_1', 'assistantOverrides': {'variableValues': {'userName': 'Ana', 'name': 'Ana'}}}
    """
    if workflow_id and assistant_id:
        raise BadRequestError(BOTH_IDS_MESSAGE, error_code="AMBIGUOUS_CALL_TARGET")
    if not workflow_id and not assistant_id:
        raise BadRequestError(MISSING_ID_MESSAGE, error_code="MISSING_CALL_TARGET")

    if workflow_id:
        body: dict[str, Any] = {"workflowId": workflow_id}
        overrides_key = "workflowOverrides"
    else:
        body = {"assistantId": assistant_id}
        overrides_key = "assistantOverrides"

    if variable_values:
        body[overrides_key] = {"variableValues": normalize_variable_values(variable_values)}
    return body


def _parse_response_body(response: httpx.Response) -> Any:
    text = response.text
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"error": "Non-JSON response received", "raw": text}


def _text_field(data: Any, key: str) -> Optional[str]:
    if isinstance(data, dict):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class VapiClient:
    """
    Passthrough to the Vapi web-call API.

    Args:
        settings: Resolved application settings.
        transport: Optional httpx transport (tests pass httpx.MockTransport).

    Example:
        >>> client = VapiClient(load_settings())
        >>> call = await client.create_web_call(workflow_id="wf_123")
    """

    def __init__(
        self,
        settings: AppSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._settings.call_endpoint

    # -------------------------------------------------------------------------
    # Credential
    # -------------------------------------------------------------------------

    def resolve_credential(self) -> SanitizedCredential:
        """
        Sanitize the configured web token and require a valid shape.

        Raises:
            ConfigurationError: Token missing, or still malformed after cleaning.
        """
        env_name = self._settings.web_token_env
        credential = inspect_credential(self._settings.web_token)
        if credential is None:
            logger.error("%s is not configured in environment variables", env_name)
            raise ConfigurationError(
                f"{env_name} is not configured",
                hint=f"Please add {env_name} to your .env.local or .env file",
                remediation=[
                    "Double equals (==) instead of single (=)",
                    "Quotes around the value",
                    "File not in the server's working directory",
                    "Server not restarted after adding token",
                ],
            )

        if not credential.is_valid:
            raise ConfigurationError(
                "Invalid Web Token Format",
                hint=(
                    "Token validation failed. Expected UUID (36 chars) or Public Key "
                    f"(39 chars). Got: {len(credential.cleaned)} chars."
                ),
                remediation=[
                    "Open your .env.local or .env file",
                    f"Find the line: {env_name}=...",
                    "Remove ALL quotes, spaces, and extra characters",
                    f"Format should be: {env_name}=pk_{EXAMPLE_TOKEN}",
                    "Restart the server after fixing",
                    "Verify token in Vapi Dashboard → Settings → API Keys → Web Token",
                ],
                details={
                    "originalLength": len(credential.original),
                    "cleanedLength": len(credential.cleaned),
                    "isValidFormat": False,
                    "originalPreview": credential.original_preview,
                    "cleanedPreview": credential.cleaned_preview,
                },
            )
        return credential

    # -------------------------------------------------------------------------
    # Web Call
    # -------------------------------------------------------------------------

    async def create_web_call(
        self,
        *,
        workflow_id: Optional[str] = None,
        assistant_id: Optional[str] = None,
        variable_values: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Start a web call through the provider.

        Returns:
            The provider's JSON body, unchanged.

        Raises:
            ConfigurationError: Web token missing or malformed.
            BadRequestError: Neither or both ids supplied.
            NetworkFailure: The provider could not be reached.
            ProviderRejection: The provider answered with a non-2xx status.
        """
        credential = self.resolve_credential()
        body = build_request_body(workflow_id, assistant_id, variable_values)

        logger.info(
            "Calling voice provider: endpoint=%s body_keys=%s variable_keys=%s "
            "token_length=%d token_format=%s",
            self.endpoint,
            list(body),
            sorted(variable_values or {}),
            len(credential.cleaned),
            credential.token_format.label,
        )

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.vapi_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.endpoint,
                    headers={
                        "Authorization": f"Bearer {credential.cleaned}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
        except httpx.RequestError as exc:
            logger.error("Voice provider unreachable at %s: %s", self.endpoint, exc)
            raise NetworkFailure(f"Failed to reach the voice provider: {exc}", cause=exc) from exc

        data = _parse_response_body(response)
        if response.is_success:
            logger.info("Voice provider accepted call (status %d)", response.status_code)
            return data

        raise self._rejection(response.status_code, data, credential, body)

    def _rejection(
        self,
        status_code: int,
        data: Any,
        credential: SanitizedCredential,
        body: dict[str, Any],
    ) -> ProviderRejection:
        env_name = self._settings.web_token_env

        if status_code == 401:
            message = "Unauthorized - Authentication failed"
            provider_message = _text_field(data, "message") or _text_field(data, "error")
            if provider_message:
                message += f": {provider_message}"
            mentions = " ".join(
                filter(None, (_text_field(data, "message"), _text_field(data, "error")))
            )
            if PRIVATE_KEY_MARKER in mentions.lower():
                message += TOKEN_TYPE_HINT
            if len(credential.cleaned) != UUID_TOKEN_LENGTH:
                message += _token_length_hint(credential, env_name)
            else:
                message += TOKEN_OK_HINT
        elif status_code == 404:
            message = NOT_FOUND_MESSAGE
        elif status_code == 400:
            message = (
                _text_field(data, "message") or _text_field(data, "error") or BAD_REQUEST_FALLBACK
            )
        else:
            message = (
                _text_field(data, "error") or _text_field(data, "message") or DEFAULT_FAILURE_MESSAGE
            )

        troubleshooting = None
        if status_code == 401:
            troubleshooting = {
                "step1": "Visit /api/vapi/test to verify the token",
                "step2": "Check the SERVER log (not the browser) for detailed output",
                "step3": f"Verify {env_name} matches the Vapi Dashboard exactly",
                "step4": "Restart the server after editing .env or .env.local",
                "step5": "Check Vapi Dashboard → Settings → API Keys → Web Token → Permissions",
            }

        logger.error(
            "Voice provider rejected call: status=%d body_keys=%s token_length=%d",
            status_code,
            list(body),
            len(credential.cleaned),
        )

        return ProviderRejection(
            message,
            status_code=status_code,
            details=data if isinstance(data, dict) else {"raw": data},
            debug={
                "endpoint": self.endpoint,
                "requestBodyKeys": list(body),
                "webTokenConfigured": True,
                "webTokenLength": len(credential.cleaned),
                "webTokenFormat": (
                    "UUID format"
                    if credential.token_format is TokenFormat.UUID
                    else "Non-UUID format"
                ),
            },
            troubleshooting=troubleshooting,
        )

    # -------------------------------------------------------------------------
    # Read-only Reports
    # -------------------------------------------------------------------------

    def token_report(self) -> dict[str, Any]:
        """Describe the configured web token without contacting the provider."""
        env_name = self._settings.web_token_env
        credential = inspect_credential(self._settings.web_token)
        if credential is None:
            return {
                "configured": False,
                "error": f"{env_name} is not set in environment variables",
                "help": [
                    f"1. Add {env_name} to your .env.local or .env file",
                    "2. Get it from Vapi Dashboard: Settings → API Keys → Web Token",
                    f"3. Format: {env_name}={EXAMPLE_TOKEN}",
                    "4. NO double equals (==), use single (=)",
                    "5. NO quotes around the value",
                    "6. NO spaces around the = sign",
                    "7. Restart the server after adding it",
                ],
                "correctFormat": f"{env_name}={EXAMPLE_TOKEN}",
            }

        issues: list[str] = []
        if not credential.is_valid:
            issues.append(
                f"Key length is {len(credential.cleaned)} (expected 36, or 39 with pk_ prefix)"
            )
            issues.append("Key doesn't match UUID or Public Key format")
        if credential.was_cleaned:
            issues.append("Token had extra whitespace/quotes (now cleaned)")

        report: dict[str, Any] = {
            "configured": True,
            "envVar": env_name,
            "keyLength": len(credential.cleaned),
            "originalLength": len(credential.original),
            "keyFormat": credential.token_format.label,
            "hasIssues": bool(issues),
            "issues": issues,
            "keyPreview": credential.cleaned_preview,
            "wasCleaned": credential.was_cleaned,
            "message": (
                "Key has format issues. See 'issues'."
                if issues
                else f"{env_name} is configured correctly."
            ),
            "nextSteps": [
                "1. Check the server log when making a call",
                "2. Look for 'Calling voice provider' with the token length",
                "3. Verify the token matches what's in the Vapi Dashboard",
            ],
        }
        if issues:
            report["fixInstructions"] = {
                "step1": f"Remove any quotes around the token in {env_name}",
                "step2": "Remove any spaces before/after the token",
                "step3": "Ensure the token is a 36 character UUID or pk_ + UUID",
                "step4": f"Format should be: {env_name}={EXAMPLE_TOKEN}",
                "step5": "Restart the server after fixing",
            }
        return report

    def diagnose(self) -> dict[str, Any]:
        """Readiness report for token and workflow configuration. Never calls the provider."""
        credential = inspect_credential(self._settings.web_token)
        workflow_id = self._settings.workflow_id
        assistant_id = self._settings.assistant_id

        issues: list[str] = []
        if credential is None:
            issues.append(f"{self._settings.web_token_env} not found")
        elif not credential.is_valid:
            issues.append("Web token format is invalid after cleaning")
        if not workflow_id:
            issues.append("VAPI_WORKFLOW_ID not found")

        ready = not issues
        return {
            "test": "Vapi configuration check",
            "ready": ready,
            "endpoint": self.endpoint,
            "webTokenConfigured": credential is not None,
            "token": credential.describe() if credential else None,
            "workflowIdConfigured": bool(workflow_id),
            "workflowIdPrefix": f"{workflow_id[:20]}..." if workflow_id else None,
            "assistantIdConfigured": bool(assistant_id),
            "issues": issues,
            "message": (
                "Configuration looks correct."
                if ready
                else "Configuration is incomplete. See 'issues'."
            ),
        }
