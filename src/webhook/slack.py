"""Slack Events API, slash command and Ask F8 handlers.

Each handler extracts a question from its payload, short-circuits when there
is nothing to ask, and hands the question to the agent router. Handlers
return typed results; turning them into HTTP responses is the app's job.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from src.models import (
    AgentRequest,
    AgentResponse,
    AskF8Request,
    AuditEvent,
    AuditEventType,
    RiskLevel,
    SlackAttachment,
    SlackCommandResponse,
    Usage,
)
from src.routing.router import AGENT_ERROR_MESSAGE

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.routing.router import AgentRouter

logger = logging.getLogger(__name__)

_MENTION_RE = re.compile(r"<@[^>]+>")
_HANDLED_EVENT_TYPES = frozenset({"app_mention", "message"})
_LOG_PREVIEW_CHARS = 100

USAGE_MESSAGE = "Please provide a question or command. Usage: /f8 [question]"

_SLACK_API_BASE = "https://slack.com/api"
_MAX_RETRIES = 3
_BACKOFF_CAP_SECONDS = 30


def extract_question(text: str | None) -> str:
    """Strip ``<@U123>`` mention markup and surrounding whitespace."""
    if not text:
        return ""
    return _MENTION_RE.sub("", text).strip()


# --- Posting back to Slack ---


@dataclass
class PostResult:
    success: bool
    ts: str | None = None
    error: str | None = None


class SlackPoster:
    """Posts agent answers to a channel through the Slack Web API."""

    def __init__(
        self,
        bot_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._transport = transport
        self._audit = audit_logger

    async def post_message(
        self, channel: str, text: str, thread_ts: str | None = None,
    ) -> PostResult:
        """Send ``text`` to ``channel``, threaded under ``thread_ts`` when given.

        Retries on 429 and 5xx with exponential backoff capped at 30s.
        """
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        headers = {"Authorization": f"Bearer {self._bot_token}"}
        url = f"{_SLACK_API_BASE}/chat.postMessage"

        result = PostResult(success=False, error="not sent")
        try:
            async with httpx.AsyncClient(transport=self._transport, verify=True) as client:
                for attempt in range(_MAX_RETRIES + 1):
                    resp = await client.post(url, json=payload, headers=headers)
                    if resp.status_code < 400:
                        result = self._parse(resp)
                        break
                    result = PostResult(success=False, error=f"HTTP {resp.status_code}")
                    if not self._should_retry(resp.status_code):
                        break
                    if attempt < _MAX_RETRIES:
                        await asyncio.sleep(min(2 ** attempt, _BACKOFF_CAP_SECONDS))
        except httpx.HTTPError as exc:
            result = PostResult(success=False, error=type(exc).__name__)

        if result.success:
            logger.info("Message posted to Slack channel %s (ts=%s)", channel, result.ts)
        else:
            logger.error("Failed to post message to Slack channel %s: %s", channel, result.error)
        if self._audit:
            try:
                self._audit.log(AuditEvent(
                    event_type=AuditEventType.SLACK_POST,
                    action="chat.postMessage",
                    result="success" if result.success else "failure",
                    risk_level=RiskLevel.INFO,
                    details={"channel": channel, "error": result.error},
                ))
            except OSError:
                logger.exception("Failed to write Slack post audit event")
        return result

    @staticmethod
    def _parse(resp: httpx.Response) -> PostResult:
        try:
            data = resp.json()
        except ValueError:
            return PostResult(success=False, error="invalid_response")
        if not isinstance(data, dict):
            return PostResult(success=False, error="invalid_response")
        if not data.get("ok"):
            return PostResult(success=False, error=data.get("error", "unknown_error"))
        return PostResult(success=True, ts=data.get("ts"))

    @staticmethod
    def _should_retry(status_code: int) -> bool:
        return status_code == 429 or status_code >= 500


# --- Events API ---


@dataclass
class EventOutcome:
    success: bool
    message: str | None = None


class SlackEventHandler:
    """Handles ``event_callback`` payloads (mentions and messages)."""

    def __init__(self, router: AgentRouter, poster: SlackPoster | None = None) -> None:
        self._router = router
        self._poster = poster

    async def process(self, event: dict[str, Any]) -> EventOutcome:
        event_type = event.get("type")
        if event_type not in _HANDLED_EVENT_TYPES:
            logger.info("Ignoring event type %s", event_type)
            return EventOutcome(success=True)

        # Never answer bots, including ourselves.
        if event.get("subtype") == "bot_message" or event.get("bot_id"):
            logger.info("Skipping bot message")
            return EventOutcome(success=True)

        question = extract_question(event.get("text"))
        if not question:
            logger.info("No question found in event")
            return EventOutcome(success=True)

        channel = event.get("channel")
        user = event.get("user") or "unknown"
        logger.info(
            "Processing Slack %s in channel %s from %s (question length %d)",
            event_type, channel, user, len(question),
        )

        response = await self._router.route(AgentRequest(
            message=question,
            user_id=user,
            context={
                "channel": channel,
                "thread_ts": event.get("ts"),
                "event_type": event_type,
            },
        ))

        if not response.success:
            logger.warning(
                "Failed to process Slack event in channel %s: %s",
                channel, response.message,
            )
            return EventOutcome(success=False, message=response.message)

        logger.info(
            "Slack event processed by agent %s (response length %d)",
            response.agent, len(response.message),
        )
        if self._poster and channel:
            await self._poster.post_message(
                channel,
                response.message,
                thread_ts=event.get("thread_ts") or event.get("ts"),
            )
        return EventOutcome(success=True, message=response.message)


# --- Slash commands ---


def _usage_footer(agent: str | None, usage: Usage) -> str:
    return (
        f"F8 AI Platform • {agent} • {usage.total_tokens} tokens"
        f" • ${usage.cost:.4f} • {usage.model}"
    )


class SlackCommandHandler:
    """Handles ``/f8 [question]`` slash commands."""

    def __init__(self, router: AgentRouter) -> None:
        self._router = router

    async def process(
        self, text: str | None, channel_id: str | None, user_id: str | None,
    ) -> SlackCommandResponse:
        question = (text or "").strip()
        if not question:
            return SlackCommandResponse(response_type="ephemeral", text=USAGE_MESSAGE)

        logger.info(
            "Processing Slack command %r in channel %s from %s",
            question[:_LOG_PREVIEW_CHARS], channel_id, user_id,
        )
        try:
            response = await self._router.route(AgentRequest(
                message=question,
                user_id=user_id or "unknown",
                context={"channel": channel_id, "command": True},
            ))
        except Exception:
            logger.exception("Error processing Slack command")
            return SlackCommandResponse(
                response_type="ephemeral", text=f"Error: {AGENT_ERROR_MESSAGE}",
            )

        if not response.success:
            return SlackCommandResponse(
                response_type="ephemeral", text=f"Error: {response.message}",
            )
        attachments = (
            [SlackAttachment(color="good", footer=_usage_footer(response.agent, response.usage))]
            if response.usage
            else []
        )
        return SlackCommandResponse(
            response_type="in_channel", text=response.message, attachments=attachments,
        )


# --- Ask F8 direct API ---


class AskF8Handler:
    """Handles direct ``{question, channel, user}`` API requests."""

    def __init__(self, router: AgentRouter) -> None:
        self._router = router

    async def process(self, request: AskF8Request) -> AgentResponse:
        question = (request.question or "").strip()
        logger.info(
            "Processing Ask F8 request %r in channel %s from %s",
            question[:_LOG_PREVIEW_CHARS], request.channel, request.user,
        )
        try:
            response = await self._router.route(AgentRequest(
                message=question,
                user_id=request.user or "unknown",
                context={"channel": request.channel, "ask_f8": True},
            ))
        except Exception:
            logger.exception("Error processing Ask F8 request")
            return AgentResponse(success=False, message=AGENT_ERROR_MESSAGE)

        return AgentResponse(
            success=response.success,
            message=response.message,
            agent=response.agent,
            usage=response.usage,
            timestamp=response.timestamp,
        )
