"""Agent router: platform gateway first, direct agent on fallback.

Per call the router walks a small state machine:

    START -> GATEWAY_ATTEMPT  (gateway configured)
          -> DIRECT_SELECT    (no gateway, or the gateway attempt failed)
    DIRECT_SELECT -> FAILURE        (no endpoint for the category, no HTTP)
                  -> DIRECT_ATTEMPT
    DIRECT_ATTEMPT -> SUCCESS | FAILURE

At most two outbound calls are made, sequentially, each bounded by the
configured timeout. Downstream failures never escape ``route``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from src.config import AgentCategory, Settings
from src.models import AgentRequest, AgentResponse, AuditEvent, AuditEventType, RiskLevel
from src.routing.classifier import classify

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger

logger = logging.getLogger(__name__)

NO_AGENT_MESSAGE = "No suitable agent found for this request"
AGENT_ERROR_MESSAGE = "Error processing request. Please try again later."


class RouteState(str, Enum):
    START = "start"
    GATEWAY_ATTEMPT = "gateway_attempt"
    DIRECT_SELECT = "direct_select"
    DIRECT_ATTEMPT = "direct_attempt"
    SUCCESS = "success"
    FAILURE = "failure"


class AgentCallError(Exception):
    """A downstream agent call did not produce a usable response."""


class AgentRouter:
    """Selects a downstream agent for a message and returns its answer."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._audit = audit_logger

    def select(self, message: str) -> tuple[AgentCategory, str | None]:
        """Classify ``message`` and look up that category's endpoint."""
        category = classify(message)
        return category, self._settings.endpoint_for(category)

    async def route(self, request: AgentRequest) -> AgentResponse:
        state = RouteState.START
        gateway_url = self._settings.gateway_url
        category: AgentCategory | None = None
        agent_url = ""
        response = AgentResponse(success=False, message=AGENT_ERROR_MESSAGE)
        path = "direct"

        while state not in (RouteState.SUCCESS, RouteState.FAILURE):
            if state is RouteState.START:
                state = RouteState.GATEWAY_ATTEMPT if gateway_url else RouteState.DIRECT_SELECT

            elif state is RouteState.GATEWAY_ATTEMPT:
                logger.info(
                    "Routing request via platform gateway %s (message length %d)",
                    gateway_url, len(request.message),
                )
                try:
                    response = await self._call(f"{gateway_url}/api/chat", request)
                    path = "gateway"
                    state = RouteState.SUCCESS
                except AgentCallError as exc:
                    logger.error("Error routing via platform gateway: %s", exc)
                    logger.info("Falling back to direct agent routing")
                    state = RouteState.DIRECT_SELECT

            elif state is RouteState.DIRECT_SELECT:
                category, endpoint = self.select(request.message)
                if endpoint is None:
                    logger.warning("No endpoint configured for category %s", category.value)
                    response = AgentResponse(success=False, message=NO_AGENT_MESSAGE)
                    state = RouteState.FAILURE
                else:
                    agent_url = endpoint
                    state = RouteState.DIRECT_ATTEMPT

            elif state is RouteState.DIRECT_ATTEMPT:
                logger.info(
                    "Routing request directly to %s agent at %s (message length %d)",
                    category.value if category else "unknown", agent_url,
                    len(request.message),
                )
                try:
                    response = await self._call(f"{agent_url}/query", request)
                    state = RouteState.SUCCESS
                except AgentCallError as exc:
                    logger.error("Error routing to agent: %s", exc)
                    response = AgentResponse(success=False, message=AGENT_ERROR_MESSAGE)
                    state = RouteState.FAILURE

        self._log_route(request, category, path, state, response)
        return response

    async def _call(self, url: str, request: AgentRequest) -> AgentResponse:
        """POST the request to one agent endpoint; raise AgentCallError on any failure."""
        body: dict[str, Any] = {
            "message": request.message,
            "user_id": request.user_id,
            "context": request.context,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    url, json=body, timeout=self._settings.request_timeout,
                )
        except httpx.TimeoutException as exc:
            raise AgentCallError(f"timeout calling {url}") from exc
        except httpx.HTTPError as exc:
            raise AgentCallError(f"{type(exc).__name__} calling {url}") from exc

        if not resp.is_success:
            raise AgentCallError(f"{url} returned HTTP {resp.status_code}")
        try:
            return AgentResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise AgentCallError(f"{url} returned a malformed body") from exc

    def _log_route(
        self,
        request: AgentRequest,
        category: AgentCategory | None,
        path: str,
        state: RouteState,
        response: AgentResponse,
    ) -> None:
        if not self._audit:
            return
        try:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.AGENT_ROUTE,
                user_id=request.user_id,
                action="route",
                result="success" if state is RouteState.SUCCESS else "failure",
                risk_level=RiskLevel.INFO,
                details={
                    "path": path,
                    "category": category.value if category else None,
                    "agent": response.agent,
                },
            ))
        except OSError:
            # Audit failures never discard the agent answer.
            logger.exception("Failed to write route audit event")
