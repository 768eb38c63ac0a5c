"""Tests for the f8-slackbot CLI."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from src.cli import cli
from src.config import AgentCategory
from src.webhook.signature import SlackSignatureVerifier


def test_sign_outputs_headers() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["sign", "{}", "--secret", "s", "--timestamp", "1700000000"])
    assert result.exit_code == 0
    expected = SlackSignatureVerifier("s").sign("{}", "1700000000")
    assert "X-Slack-Request-Timestamp: 1700000000" in result.output
    assert f"X-Slack-Signature: {expected}" in result.output


def test_sign_requires_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SLACK_SIGNING_SECRET", raising=False)
    result = CliRunner().invoke(cli, ["sign", "{}"])
    assert result.exit_code != 0


def test_classify_shows_category_and_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    for category in AgentCategory:
        monkeypatch.delenv(category.env_var, raising=False)
    monkeypatch.delenv("PLATFORM_GATEWAY_URL", raising=False)
    monkeypatch.setenv("MARKETING_AGENT_URL", "http://marketing.test")

    result = CliRunner().invoke(cli, ["classify", "new brand campaign"])

    assert result.exit_code == 0
    assert json.loads(result.output) == {
        "category": "marketing",
        "endpoint": "http://marketing.test",
        "gateway": None,
    }


def _smoke_transport(healthy: bool = True) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/health":
            status = "healthy" if healthy else "degraded"
            return httpx.Response(200, json={"status": status, "service": "svc", "version": "1"})
        if path == "/api/slack/ask-f8":
            if not json.loads(request.content).get("question"):
                return httpx.Response(400, json={"success": False})
            return httpx.Response(200, json={"success": True, "message": "ok"})
        if path == "/api/slack/events":
            if "x-slack-signature" not in request.headers:
                return httpx.Response(400, json={"error": "Missing required headers"})
            return httpx.Response(200, json=json.loads(request.content))
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _patched_client(transport: httpx.MockTransport) -> MagicMock:
    real_client = httpx.Client

    def factory(*args: object, **kwargs: object) -> httpx.Client:
        return real_client(*args, transport=transport, **kwargs)  # type: ignore[arg-type]

    return MagicMock(side_effect=factory)


def test_smoke_passes_against_healthy_service() -> None:
    with patch("src.cli.httpx.Client", _patched_client(_smoke_transport())):
        result = CliRunner().invoke(cli, ["smoke", "--url", "http://svc.test", "--secret", "s"])
    assert result.exit_code == 0, result.output
    assert "5/5 checks passed" in result.output


def test_smoke_fails_on_unhealthy_service() -> None:
    with patch("src.cli.httpx.Client", _patched_client(_smoke_transport(healthy=False))):
        result = CliRunner().invoke(cli, ["smoke", "--url", "http://svc.test"])
    assert result.exit_code == 1
    assert "[FAIL] health" in result.output
