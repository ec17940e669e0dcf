"""Voice client whose provider events are delivered over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Optional

from prepwise_agent.errors import BadRequestError
from prepwise_agent.models import CallStartRequest
from prepwise_agent.session import PROVIDER_EVENTS, EventHandler
from prepwise_platform.vapi import VapiClient


logger = logging.getLogger(__name__)


class ProviderEventVoiceClient:
    """
    VoiceClient backed by the web-call passthrough.

    `start` creates the call through VapiClient. The browser (or a provider
    webhook) then posts each SDK event to the server, which hands it to
    `dispatch` so registered session handlers run in order.
    """

    def __init__(self, vapi: VapiClient) -> None:
        self._vapi = vapi
        self._handlers: dict[str, list[EventHandler]] = {event: [] for event in PROVIDER_EVENTS}
        self.call: Optional[Any] = None
        self.connected = False

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown provider event '{event}'")
        if handler not in self._handlers[event]:
            self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    async def start(self, request: CallStartRequest) -> Any:
        variable_values: dict[str, Any] = dict(request.variable_values)
        if request.input_text and "input" not in variable_values:
            variable_values["input"] = request.input_text

        self.call = await self._vapi.create_web_call(
            workflow_id=request.workflow_id,
            assistant_id=request.assistant_id,
            variable_values=variable_values,
        )
        self.connected = True
        call_id = self.call.get("id") if isinstance(self.call, dict) else None
        logger.info("Web call created: id=%s", call_id)
        return self.call

    async def stop(self) -> None:
        if self.connected:
            logger.info("Releasing voice connection")
        self.connected = False

    async def dispatch(self, event: str, payload: Any = None) -> int:
        """
        Deliver one provider event to every registered handler.

        Returns:
            Number of handlers that ran.

        Raises:
            BadRequestError: Unknown event name.
        """
        if event not in self._handlers:
            raise BadRequestError(f"Unknown provider event '{event}'", error_code="UNKNOWN_EVENT")

        handlers = list(self._handlers[event])
        for handler in handlers:
            await handler(payload)
        if event == "call-end":
            self.connected = False
        return len(handlers)
