"""Shared Pydantic data models for the F8 Slackbot relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# --- Agent Models ---


class AgentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user_id: str
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be empty")
        return value


class Usage(BaseModel):
    total_tokens: int
    cost: float
    model: str


class AgentResponse(BaseModel):
    success: bool
    message: str
    agent: str | None = None
    usage: Usage | None = None
    timestamp: str = Field(default_factory=_now_iso)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _default_timestamp(cls, value: object) -> object:
        return value or _now_iso()

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# --- Slack Models ---


class SlackAttachment(BaseModel):
    color: str
    footer: str


class SlackCommandResponse(BaseModel):
    response_type: Literal["in_channel", "ephemeral"]
    text: str
    attachments: list[SlackAttachment] | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AskF8Request(BaseModel):
    question: str | None = None
    channel: str | None = None
    user: str | None = None


# --- Audit Models ---


class AuditEventType(str, Enum):
    SIGNATURE_VALID = "signature_valid"
    SIGNATURE_INVALID = "signature_invalid"
    AGENT_ROUTE = "agent_route"
    SLACK_POST = "slack_post"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    user_id: str | None = None
    action: str
    result: str  # "success" | "failure"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
