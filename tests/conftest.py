"""Shared test fixtures for the F8 Slackbot relay."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from src.audit.logger import AuditLogger
from src.config import AgentCategory, Settings
from src.models import AuditEvent, AuditEventType, RiskLevel

SIGNING_SECRET = "test_secret"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> Settings:
    """Factory for Settings with a signing secret and no agents configured."""
    defaults: dict[str, Any] = {
        "signing_secret": SIGNING_SECRET,
        "gateway_url": None,
        "agent_urls": {},
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def make_agent_urls(*categories: AgentCategory) -> dict[AgentCategory, str]:
    return {c: f"http://{c.value.replace('_', '-')}.agents.test" for c in categories}


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.SIGNATURE_INVALID,
        "action": "test_action",
        "result": "failure",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def agent_body(**kwargs: Any) -> dict[str, Any]:
    """A well-formed downstream agent response body."""
    body: dict[str, Any] = {
        "success": True,
        "message": "Here is your answer",
        "agent": "compliance-agent",
        "timestamp": "2026-01-01T00:00:00+00:00",
    }
    body.update(kwargs)
    return body


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records requests and answers from a URL -> response map.

    Values may be an ``httpx.Response`` or an exception instance to raise.
    Unmapped URLs answer 404.
    """

    def __init__(self, responses: dict[str, httpx.Response | Exception] | None = None) -> None:
        self.responses = responses or {}
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.get(str(request.url))
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return httpx.Response(404, json={"error": "not found"})
        return outcome

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def json_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()
