"""Keyword routing table mapping free text to an agent category.

Categories share vocabulary ("testing" and "analysis" appear under both
science and spectra), so evaluation order is part of the contract: the first
category with a substring hit wins and later ones are never consulted.
"""

from __future__ import annotations

from src.config import AgentCategory

ROUTING_TABLE: tuple[tuple[AgentCategory, tuple[str, ...]], ...] = (
    (AgentCategory.COMPLIANCE, ("compliance", "regulation", "fda", "legal", "sop")),
    (AgentCategory.FORMULATION, ("formulation", "recipe", "ingredient", "dosage", "concentration")),
    (AgentCategory.SCIENCE, ("science", "research", "study", "analysis", "testing")),
    (AgentCategory.MARKETING, ("marketing", "brand", "promotion", "advertising", "social media")),
    (AgentCategory.OPERATIONS, ("operation", "process", "workflow", "efficiency", "management")),
    (AgentCategory.SOURCING, ("sourcing", "supplier", "vendor", "procurement", "supply chain")),
    (AgentCategory.PATENT, ("patent", "intellectual property", " ip ", "trademark", "copyright")),
    (AgentCategory.SPECTRA, ("spectra", "gcms", "coa", "testing", "analysis")),
    (AgentCategory.CUSTOMER_SUCCESS, ("customer", "support", "help", "issue", "problem")),
)

# Unmatched messages go to compliance rather than an "unclassified" bucket;
# downstream consumers rely on this.
DEFAULT_CATEGORY = AgentCategory.COMPLIANCE


def matches(message: str, keywords: tuple[str, ...]) -> bool:
    """Case-insensitive substring match against the raw (untokenized) message."""
    lowered = message.lower()
    return any(keyword in lowered for keyword in keywords)


def classify(message: str) -> AgentCategory:
    for category, keywords in ROUTING_TABLE:
        if matches(message, keywords):
            return category
    return DEFAULT_CATEGORY
