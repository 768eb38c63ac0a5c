"""Agent routing: keyword classification and gateway/direct dispatch."""

from src.routing.classifier import DEFAULT_CATEGORY, ROUTING_TABLE, classify
from src.routing.router import AgentRouter, RouteState

__all__ = [
    "AgentRouter",
    "DEFAULT_CATEGORY",
    "ROUTING_TABLE",
    "RouteState",
    "classify",
]
