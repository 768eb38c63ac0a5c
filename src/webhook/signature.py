"""Slack request signature verification.

Slack signs every Events API and slash command callback with
``v0=hex(HMAC-SHA256(signing_secret, "v0:{timestamp}:{raw_body}"))``.
Requests are accepted only when the signature matches and the timestamp is
within the replay window (default 300 seconds, inclusive) of the local clock,
in either direction.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from collections.abc import Callable

from src.webhook.models import (
    InboundWebhookRequest,
    VerificationFailure,
    VerificationResult,
)

logger = logging.getLogger(__name__)

VERSION = "v0"
_DEFAULT_WINDOW_SECONDS = 300


def _as_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


class SlackSignatureVerifier:
    """Validates Slack's ``X-Slack-Signature`` / ``X-Slack-Request-Timestamp`` pair."""

    def __init__(
        self,
        signing_secret: str | None,
        window_seconds: int = _DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = signing_secret
        self._window_seconds = window_seconds
        self._clock = clock

    def sign(self, body: bytes | str, timestamp: str) -> str:
        """Return the signature header value Slack would send for ``body``."""
        if not self._secret:
            raise ValueError("signing secret is not configured")
        base = b":".join((VERSION.encode(), timestamp.encode(), _as_bytes(body)))
        digest = hmac.new(self._secret.encode(), base, hashlib.sha256).hexdigest()
        return f"{VERSION}={digest}"

    def check(
        self, body: bytes | str, signature: str, timestamp: str,
    ) -> VerificationResult:
        """Verify a request, reporting why it failed.

        Never raises: malformed input of any kind is a failed verification.
        """
        if not self._secret:
            logger.error("SLACK_SIGNING_SECRET not configured; rejecting request")
            return VerificationResult(False, VerificationFailure.MISSING_SECRET)

        try:
            request_time = int(timestamp)
        except (TypeError, ValueError):
            return VerificationResult(False, VerificationFailure.MALFORMED_TIMESTAMP)

        age = int(self._clock()) - request_time
        if age > self._window_seconds:
            logger.warning("Slack request timestamp too old (%ss)", age)
            return VerificationResult(False, VerificationFailure.STALE_TIMESTAMP)
        if -age > self._window_seconds:
            logger.warning("Slack request timestamp in the future (%ss)", -age)
            return VerificationResult(False, VerificationFailure.FUTURE_TIMESTAMP)

        try:
            expected = self.sign(body, timestamp).encode()
            provided = _as_bytes(signature)
        except (TypeError, ValueError, UnicodeError):
            return VerificationResult(False, VerificationFailure.SIGNATURE_MISMATCH)

        if not hmac.compare_digest(provided, expected):
            return VerificationResult(False, VerificationFailure.SIGNATURE_MISMATCH)
        return VerificationResult(True)

    def verify(self, body: bytes | str, signature: str, timestamp: str) -> bool:
        return self.check(body, signature, timestamp).valid

    def check_request(self, request: InboundWebhookRequest) -> VerificationResult:
        return self.check(request.body, request.signature, request.timestamp)
