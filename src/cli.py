"""Click CLI for signing test payloads, checking routing and smoke-testing a deployment."""

from __future__ import annotations

import json
import sys
import time

import click
import httpx

from src.config import Settings
from src.routing.router import AgentRouter
from src.webhook.signature import SlackSignatureVerifier


@click.group()
def cli() -> None:
    """F8 Slackbot relay tools."""


@cli.command()
@click.argument("body")
@click.option("--secret", envvar="SLACK_SIGNING_SECRET", required=True, help="Slack signing secret.")
@click.option("--timestamp", default=None, help="Unix seconds (defaults to now).")
def sign(body: str, secret: str, timestamp: str | None) -> None:
    """Print the Slack signature headers for BODY."""
    ts = timestamp or str(int(time.time()))
    signature = SlackSignatureVerifier(secret).sign(body, ts)
    click.echo(f"X-Slack-Request-Timestamp: {ts}")
    click.echo(f"X-Slack-Signature: {signature}")


@cli.command()
@click.argument("message")
def classify(message: str) -> None:
    """Show which agent MESSAGE would be routed to without a gateway."""
    settings = Settings.from_env()
    category, url = AgentRouter(settings).select(message)
    click.echo(json.dumps({
        "category": category.value,
        "endpoint": url,
        "gateway": settings.gateway_url,
    }, indent=2))


def _check(name: str, ok: bool, detail: str = "") -> bool:
    mark = "PASS" if ok else "FAIL"
    click.echo(f"[{mark}] {name}" + (f": {detail}" if detail else ""))
    return ok


@cli.command()
@click.option("--url", envvar="SLACKBOT_URL", default="http://localhost:3000", help="Service base URL.")
@click.option("--secret", envvar="SLACK_SIGNING_SECRET", default=None, help="Signing secret for the events check.")
@click.option("--question", default="What are FDA regulations for supplements?", help="Question for Ask F8.")
@click.option("--timeout", default=60.0, show_default=True, help="Per-request timeout in seconds.")
def smoke(url: str, secret: str | None, question: str, timeout: float) -> None:
    """Exercise a running deployment's endpoints."""
    results: list[bool] = []
    with httpx.Client(base_url=url.rstrip("/"), timeout=timeout) as client:
        try:
            resp = client.get("/health")
            body = resp.json()
            results.append(_check(
                "health", resp.status_code == 200 and body.get("status") == "healthy",
                f"{body.get('service')} {body.get('version')}",
            ))

            resp = client.post("/api/slack/ask-f8", json={})
            results.append(_check("ask-f8 rejects missing question", resp.status_code == 400))

            resp = client.post("/api/slack/ask-f8", json={
                "question": question, "channel": "smoke-test", "user": "smoke-test",
            })
            body = resp.json()
            results.append(_check(
                "ask-f8", resp.status_code == 200 and "success" in body,
                f"success={body.get('success')} agent={body.get('agent')}",
            ))

            resp = client.post("/api/slack/events", json={"type": "url_verification"})
            results.append(_check("events rejects unsigned", resp.status_code == 400))

            if secret:
                payload = json.dumps({"type": "url_verification", "challenge": "smoke"})
                ts = str(int(time.time()))
                resp = client.post("/api/slack/events", content=payload, headers={
                    "Content-Type": "application/json",
                    "X-Slack-Request-Timestamp": ts,
                    "X-Slack-Signature": SlackSignatureVerifier(secret).sign(payload, ts),
                })
                results.append(_check(
                    "events url_verification",
                    resp.status_code == 200 and resp.json().get("challenge") == "smoke",
                ))
        except (httpx.HTTPError, ValueError) as exc:
            results.append(_check("request", False, str(exc)))

    passed = sum(results)
    click.echo(f"{passed}/{len(results)} checks passed")
    if passed != len(results):
        sys.exit(1)
