"""FastAPI application exposing the Slack webhook and Ask F8 endpoints."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qs

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.audit.logger import AuditLogger
from src.config import Settings, configure_logging
from src.models import AskF8Request, AuditEvent, AuditEventType, RiskLevel
from src.routing.router import AgentRouter
from src.webhook.models import InboundWebhookRequest, WebhookKind
from src.webhook.signature import SlackSignatureVerifier
from src.webhook.slack import (
    AskF8Handler,
    SlackCommandHandler,
    SlackEventHandler,
    SlackPoster,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "F8 Slackbot Microservice"
VERSION = "1.0.0"

_SIGNATURE_HEADER = "x-slack-signature"
_TIMESTAMP_HEADER = "x-slack-request-timestamp"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    if not settings.signing_secret:
        logger.error("SLACK_SIGNING_SECRET not set; all signed webhooks will be rejected")
    return create_app(settings, audit_logger=audit_logger)


def create_app(
    settings: Settings,
    router: AgentRouter | None = None,
    poster: SlackPoster | None = None,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the relay app. ``router`` and ``poster`` default from ``settings``."""
    app = FastAPI(docs_url=None, redoc_url=None)
    started = time.monotonic()

    verifier = SlackSignatureVerifier(
        settings.signing_secret, window_seconds=settings.replay_window_seconds,
    )
    if router is None:
        router = AgentRouter(settings, audit_logger=audit_logger)
    if poster is None and settings.bot_token:
        poster = SlackPoster(settings.bot_token, audit_logger=audit_logger)
    event_handler = SlackEventHandler(router, poster)
    command_handler = SlackCommandHandler(router)
    ask_handler = AskF8Handler(router)

    async def read_signed(request: Request, kind: WebhookKind) -> InboundWebhookRequest | Response:
        """Read the raw body and gate it on the Slack signature headers."""
        signature = request.headers.get(_SIGNATURE_HEADER)
        timestamp = request.headers.get(_TIMESTAMP_HEADER)
        if not signature or not timestamp:
            logger.warning("Missing Slack signature or timestamp on %s", request.url.path)
            return JSONResponse({"error": "Missing required headers"}, status_code=400)

        inbound = InboundWebhookRequest(
            body=await request.body(),
            signature=signature,
            timestamp=timestamp,
            kind=kind,
        )
        result = verifier.check_request(inbound)
        _audit_signature(audit_logger, request, kind, result.reason.value if result.reason else None)
        if not result.valid:
            logger.warning("Invalid Slack signature on %s", request.url.path)
            return JSONResponse({"error": "Invalid signature"}, status_code=401)
        return inbound

    async def process_event(event: dict[str, Any]) -> None:
        try:
            outcome = await event_handler.process(event)
        except Exception:
            logger.exception("Error processing Slack event")
            return
        if outcome.success:
            logger.info(
                "Slack event %s in channel %s processed",
                event.get("type"), event.get("channel"),
            )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": VERSION,
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
        }

    @app.post("/api/slack/events")
    async def slack_events(request: Request, background: BackgroundTasks) -> Response:
        signed = await read_signed(request, WebhookKind.EVENTS)
        if isinstance(signed, Response):
            return signed

        try:
            payload = json.loads(signed.body)
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        if not isinstance(payload, dict):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        if payload.get("type") == "url_verification":
            logger.info("Slack URL verification request")
            return JSONResponse({"challenge": payload.get("challenge")})

        event = payload.get("event")
        if payload.get("type") == "event_callback" and isinstance(event, dict):
            logger.info("Queued Slack event %s", event.get("type"))
            # Slack expects a fast 200; the answer is posted back separately.
            background.add_task(process_event, event)

        return PlainTextResponse("OK")

    @app.post("/api/slack/commands")
    async def slack_commands(request: Request) -> Response:
        signed = await read_signed(request, WebhookKind.COMMANDS)
        if isinstance(signed, Response):
            return signed

        form = parse_qs(signed.body.decode("utf-8", errors="replace"))
        text = form.get("text", [""])[0]
        channel_id = form.get("channel_id", [None])[0]
        user_id = form.get("user_id", [None])[0]

        response = await command_handler.process(text, channel_id, user_id)
        return JSONResponse(response.to_payload())

    @app.post("/api/slack/ask-f8")
    async def ask_f8(request: Request) -> Response:
        try:
            ask = AskF8Request.model_validate(await request.json())
        except (ValueError, ValidationError):
            ask = AskF8Request()
        if not (ask.question or "").strip():
            return JSONResponse(
                {"success": False, "message": "Question is required"}, status_code=400,
            )
        try:
            result = await ask_handler.process(ask)
        except Exception:
            logger.exception("Error in Ask F8 endpoint")
            return JSONResponse(
                {"success": False, "message": "Internal server error"}, status_code=500,
            )
        return JSONResponse(result.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                {"success": False, "message": "Endpoint not found", "path": request.url.path},
                status_code=404,
            )
        return JSONResponse(
            {"success": False, "message": str(exc.detail)}, status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"success": False, "message": "Internal server error"}, status_code=500,
        )

    return app


def _audit_signature(
    audit_logger: AuditLogger | None,
    request: Request,
    kind: WebhookKind,
    reason: str | None,
) -> None:
    if not audit_logger:
        return
    try:
        audit_logger.log(AuditEvent(
            event_type=(
                AuditEventType.SIGNATURE_VALID if reason is None
                else AuditEventType.SIGNATURE_INVALID
            ),
            source_ip=request.client.host if request.client else None,
            action=f"{request.method} {request.url.path}",
            result="success" if reason is None else "failure",
            risk_level=RiskLevel.INFO if reason is None else RiskLevel.HIGH,
            details={"kind": kind.value, "reason": reason},
        ))
    except OSError:
        logger.exception("Failed to write signature audit event")
