"""Data models for inbound Slack webhook handling."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class WebhookKind(str, Enum):
    EVENTS = "events"
    COMMANDS = "commands"


class VerificationFailure(str, Enum):
    MISSING_SECRET = "missing_secret"
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    STALE_TIMESTAMP = "stale_timestamp"
    FUTURE_TIMESTAMP = "future_timestamp"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class InboundWebhookRequest:
    """Raw signed request exactly as received; lives for one HTTP request."""

    body: bytes
    signature: str
    timestamp: str
    kind: WebhookKind


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: VerificationFailure | None = None

    def __bool__(self) -> bool:
        return self.valid
