"""Process configuration, read once from the environment at startup."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AgentCategory(str, Enum):
    COMPLIANCE = "compliance"
    FORMULATION = "formulation"
    SCIENCE = "science"
    MARKETING = "marketing"
    OPERATIONS = "operations"
    SOURCING = "sourcing"
    PATENT = "patent"
    SPECTRA = "spectra"  # lab analysis
    CUSTOMER_SUCCESS = "customer_success"

    @property
    def env_var(self) -> str:
        return f"{self.value.upper()}_AGENT_URL"


def _optional(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key, "").strip()
    return value or None


def _url(environ: Mapping[str, str], key: str) -> str | None:
    value = _optional(environ, key)
    return value.rstrip("/") if value else None


class Settings(BaseModel):
    """Immutable configuration shared read-only by every request."""

    model_config = ConfigDict(frozen=True)

    signing_secret: str | None = None
    bot_token: str | None = None
    gateway_url: str | None = None
    agent_urls: dict[AgentCategory, str] = Field(default_factory=dict)
    request_timeout: float = Field(default=30.0, gt=0)
    replay_window_seconds: int = Field(default=300, ge=0)
    audit_log_path: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        agent_urls = {
            category: url
            for category in AgentCategory
            if (url := _url(env, category.env_var))
        }
        timeout = _optional(env, "AGENT_TIMEOUT_SECONDS")
        return cls(
            signing_secret=_optional(env, "SLACK_SIGNING_SECRET"),
            bot_token=_optional(env, "SLACK_BOT_TOKEN"),
            gateway_url=_url(env, "PLATFORM_GATEWAY_URL"),
            agent_urls=agent_urls,
            request_timeout=float(timeout) if timeout else 30.0,
            audit_log_path=_optional(env, "AUDIT_LOG_PATH"),
            log_level=(_optional(env, "LOG_LEVEL") or "INFO").upper(),
        )

    def endpoint_for(self, category: AgentCategory) -> str | None:
        return self.agent_urls.get(category)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
