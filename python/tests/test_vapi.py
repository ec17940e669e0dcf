"""
Tests for the Vapi web-call passthrough client and provider-event voice client.

Provider responses are served by httpx.MockTransport, so every status
branch runs without network access.

Last Grunted: 10/16/2026
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from prepwise_agent.errors import (
    BadRequestError,
    ConfigurationError,
    NetworkFailure,
    ProviderRejection,
    RejectionReason,
)
from prepwise_agent.models import CallStartRequest
from prepwise_platform.config import AppSettings
from prepwise_platform.vapi import (
    BAD_REQUEST_FALLBACK,
    NOT_FOUND_MESSAGE,
    TOKEN_OK_HINT,
    VapiClient,
    build_request_body,
    normalize_variable_values,
)
from prepwise_platform.voice_client import ProviderEventVoiceClient
from tests.mock_data import VALID_PUBLIC_KEY, VALID_UUID_TOKEN, WORKFLOW_ID


# =============================================================================
# Helpers
# =============================================================================


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    web_token: str | None = VALID_UUID_TOKEN,
) -> VapiClient:
    settings = AppSettings(web_token=web_token, workflow_id=WORKFLOW_ID)
    return VapiClient(settings, transport=httpx.MockTransport(handler))


def respond(status_code: int, body: Any = None, text: str | None = None):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=body if body is not None else {})

    handler.seen = seen  # type: ignore[attr-defined]
    return handler


# =============================================================================
# Request Body Tests
# =============================================================================


class TestBuildRequestBody:
    """Tests for build_request_body and variable normalization."""

    def test_workflow_body(self) -> None:
        body = build_request_body(
            workflow_id=WORKFLOW_ID,
            variable_values={"userName": "Ana", "userId": "u1"},
        )

        assert body == {
            "workflowId": WORKFLOW_ID,
            "workflowOverrides": {
                "variableValues": {
                    "userName": "Ana",
                    "userId": "u1",
                    "userid": "u1",
                    "name": "Ana",
                }
            },
        }

    def test_assistant_body_without_variables(self) -> None:
        assert build_request_body(assistant_id="asst_1") == {"assistantId": "asst_1"}

    def test_neither_id_rejected(self) -> None:
        with pytest.raises(BadRequestError) as exc_info:
            build_request_body(variable_values={"userName": "Ana"})

        assert exc_info.value.message == "Either workflowId or assistantId must be provided"
        assert exc_info.value.status_code == 400

    def test_both_ids_rejected(self) -> None:
        with pytest.raises(BadRequestError) as exc_info:
            build_request_body(workflow_id="wf", assistant_id="asst")

        assert exc_info.value.error_code == "AMBIGUOUS_CALL_TARGET"

    def test_normalize_keeps_existing_keys(self) -> None:
        values = {"userId": "u1", "userid": "kept", "userName": "Ana", "name": "Anna"}

        assert normalize_variable_values(values) == values

    def test_normalize_does_not_mutate_input(self) -> None:
        values = {"userId": "u1"}

        normalize_variable_values(values)

        assert values == {"userId": "u1"}


# =============================================================================
# create_web_call Tests
# =============================================================================


class TestCreateWebCall:
    """Tests for VapiClient.create_web_call."""

    @pytest.mark.asyncio
    async def test_success_returns_provider_body(self) -> None:
        handler = respond(201, {"id": "call_123", "webCallUrl": "https://example.daily.co/x"})
        client = make_client(handler, web_token=f'=="{VALID_UUID_TOKEN}"')

        data = await client.create_web_call(workflow_id=WORKFLOW_ID, variable_values={"a": "b"})

        assert data == {"id": "call_123", "webCallUrl": "https://example.daily.co/x"}
        request = handler.seen[0]
        assert request.url == "https://api.vapi.ai/call/web"
        assert request.headers["Authorization"] == f"Bearer {VALID_UUID_TOKEN}"
        assert json.loads(request.content) == {
            "workflowId": WORKFLOW_ID,
            "workflowOverrides": {"variableValues": {"a": "b"}},
        }

    @pytest.mark.asyncio
    async def test_empty_success_body(self) -> None:
        client = make_client(respond(200, text=""))

        assert await client.create_web_call(assistant_id="asst_1") == {}

    @pytest.mark.asyncio
    async def test_non_json_success_body(self) -> None:
        client = make_client(respond(200, text="<html>ok</html>"))

        data = await client.create_web_call(assistant_id="asst_1")

        assert data == {"error": "Non-JSON response received", "raw": "<html>ok</html>"}

    @pytest.mark.asyncio
    async def test_missing_token_checked_before_ids(self) -> None:
        handler = respond(200, {})
        client = make_client(handler, web_token=None)

        with pytest.raises(ConfigurationError) as exc_info:
            await client.create_web_call()

        assert exc_info.value.message == "VAPI_WEB_TOKEN is not configured"
        body = exc_info.value.to_body()
        assert body["message"] == "Please add VAPI_WEB_TOKEN to your .env.local or .env file"
        assert len(body["commonIssues"]) == 4
        assert handler.seen == []

    @pytest.mark.asyncio
    async def test_invalid_token_format(self) -> None:
        handler = respond(200, {})
        client = make_client(handler, web_token="sk_live_abc123")

        with pytest.raises(ConfigurationError) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        body = exc_info.value.to_body()
        assert body["error"] == "Invalid Web Token Format"
        assert "Got: 14 chars." in body["message"]
        assert body["details"]["isValidFormat"] is False
        assert body["details"]["cleanedLength"] == 14
        assert list(body["fixInstructions"]) == [f"step{i}" for i in range(1, 7)]
        assert handler.seen == []

    @pytest.mark.asyncio
    async def test_unauthorized_with_private_key_hint(self) -> None:
        client = make_client(
            respond(
                401,
                {
                    "message": "Invalid Key. Hot tip, you may be using the private key "
                    "instead of the public key, or vice versa."
                },
            )
        )

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        rejection = exc_info.value
        assert rejection.reason is RejectionReason.UNAUTHORIZED
        assert rejection.status_code == 401
        assert rejection.message.startswith("Unauthorized - Authentication failed: Invalid Key.")
        assert "TOKEN TYPE ISSUE DETECTED" in rejection.message
        assert rejection.message.endswith(TOKEN_OK_HINT)
        body = rejection.to_body()
        assert body["status"] == 401
        assert body["debug"]["webTokenFormat"] == "UUID format"
        assert body["debug"]["webTokenLength"] == 36
        assert list(body["troubleshooting"]) == [f"step{i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_private_key_mention_in_error_field(self) -> None:
        client = make_client(respond(401, {"error": "Private Key used for a web call"}))

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        assert "TOKEN TYPE ISSUE DETECTED" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unauthorized_with_public_key_gets_length_hint(self) -> None:
        client = make_client(respond(401, {"error": "Unauthorized"}), web_token=VALID_PUBLIC_KEY)

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        message = exc_info.value.message
        assert message.startswith("Unauthorized - Authentication failed: Unauthorized")
        assert "TOKEN LENGTH ISSUE" in message
        assert "Cleaned token length: 39 characters" in message
        assert "TOKEN TYPE ISSUE" not in message
        assert exc_info.value.debug["webTokenFormat"] == "Non-UUID format"

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        client = make_client(respond(404, {"message": "Not Found"}))

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        assert exc_info.value.message == NOT_FOUND_MESSAGE
        assert exc_info.value.details == {"message": "Not Found"}
        assert exc_info.value.troubleshooting is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body, expected",
        [
            ({"message": "variableValues.questions must be a string"},
             "variableValues.questions must be a string"),
            ({"error": "Bad Request"}, "Bad Request"),
            ({}, BAD_REQUEST_FALLBACK),
        ],
    )
    async def test_bad_request_message(self, body: dict[str, Any], expected: str) -> None:
        client = make_client(respond(400, body))

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        assert exc_info.value.message == expected
        assert exc_info.value.reason is RejectionReason.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_other_status_with_non_json_body(self) -> None:
        client = make_client(respond(503, text="upstream unavailable"))

        with pytest.raises(ProviderRejection) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Non-JSON response received"
        assert exc_info.value.details["raw"] == "upstream unavailable"

    @pytest.mark.asyncio
    async def test_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(NetworkFailure) as exc_info:
            await client.create_web_call(workflow_id=WORKFLOW_ID)

        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value.cause, httpx.ConnectError)


# =============================================================================
# Report Tests
# =============================================================================


class TestReports:
    """Tests for token_report and diagnose."""

    def test_token_report_not_configured(self) -> None:
        report = make_client(respond(200), web_token=None).token_report()

        assert report["configured"] is False
        assert report["correctFormat"].startswith("VAPI_WEB_TOKEN=")

    def test_token_report_clean(self) -> None:
        report = make_client(respond(200)).token_report()

        assert report["configured"] is True
        assert report["keyLength"] == 36
        assert report["keyFormat"] == "UUID format"
        assert report["hasIssues"] is False
        assert "fixInstructions" not in report
        assert VALID_UUID_TOKEN not in json.dumps(report)

    def test_token_report_cleaned_token_has_issues(self) -> None:
        report = make_client(respond(200), web_token=f' "{VALID_UUID_TOKEN}" ').token_report()

        assert report["wasCleaned"] is True
        assert report["hasIssues"] is True
        assert report["issues"] == ["Token had extra whitespace/quotes (now cleaned)"]
        assert "fixInstructions" in report

    def test_diagnose_ready(self) -> None:
        report = make_client(respond(200)).diagnose()

        assert report["ready"] is True
        assert report["issues"] == []
        assert report["token"]["format"] == "uuid"
        assert report["workflowIdPrefix"] == f"{WORKFLOW_ID[:20]}..."

    def test_diagnose_missing_everything(self) -> None:
        client = VapiClient(AppSettings(), transport=httpx.MockTransport(respond(200)))

        report = client.diagnose()

        assert report["ready"] is False
        assert report["webTokenConfigured"] is False
        assert report["token"] is None
        assert report["issues"] == ["VAPI_WEB_TOKEN not found", "VAPI_WORKFLOW_ID not found"]


# =============================================================================
# ProviderEventVoiceClient Tests
# =============================================================================


class TestProviderEventVoiceClient:
    """Tests for the HTTP-fed voice client."""

    @pytest.mark.asyncio
    async def test_start_passes_input_as_variable(self) -> None:
        handler = respond(201, {"id": "call_9"})
        voice = ProviderEventVoiceClient(make_client(handler))

        call = await voice.start(
            CallStartRequest(
                workflow_id=WORKFLOW_ID,
                input_text="Generate a Technical interview",
                variable_values={"userName": "Ana"},
            )
        )

        assert call == {"id": "call_9"}
        assert voice.connected is True
        sent = json.loads(handler.seen[0].content)
        assert sent["workflowOverrides"]["variableValues"]["input"] == (
            "Generate a Technical interview"
        )

    @pytest.mark.asyncio
    async def test_dispatch_runs_handlers_in_order(self) -> None:
        voice = ProviderEventVoiceClient(make_client(respond(200)))
        seen: list[str] = []

        async def first(payload: Any) -> None:
            seen.append(f"first:{payload}")

        async def second(payload: Any) -> None:
            seen.append(f"second:{payload}")

        voice.on("message", first)
        voice.on("message", second)
        voice.on("message", first)

        handled = await voice.dispatch("message", "hi")

        assert handled == 2
        assert seen == ["first:hi", "second:hi"]

        voice.off("message", first)
        assert voice.handler_count("message") == 1

    @pytest.mark.asyncio
    async def test_dispatch_unknown_event(self) -> None:
        voice = ProviderEventVoiceClient(make_client(respond(200)))

        with pytest.raises(BadRequestError) as exc_info:
            await voice.dispatch("volume-level", 0.4)

        assert exc_info.value.error_code == "UNKNOWN_EVENT"

    def test_on_unknown_event(self) -> None:
        voice = ProviderEventVoiceClient(make_client(respond(200)))

        async def handler(payload: Any) -> None:
            return None

        with pytest.raises(ValueError):
            voice.on("volume-level", handler)

    @pytest.mark.asyncio
    async def test_call_end_disconnects(self) -> None:
        voice = ProviderEventVoiceClient(make_client(respond(201, {"id": "call_1"})))
        await voice.start(CallStartRequest(assistant_id="asst_1"))

        await voice.dispatch("call-end")

        assert voice.connected is False
