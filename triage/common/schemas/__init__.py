"""
Triage Schemas

Conversation and scoring models shared across the triage pipeline.
"""

from .conversation import (
    Conversation,
    ConversationStatus,
    Customer,
    Thread,
    ThreadKind,
    ThreadState,
    analysis_text,
    has_draft_reply,
    latest_customer_thread,
    strip_html,
)
from .scoring import (
    ANGRY_THRESHOLD,
    HIGH_URGENCY_THRESHOLD,
    Confidence,
    IndicatorBreakdown,
    ReferencedDoc,
    ScoreSource,
    ScoringResult,
    TokenUsage,
)

__all__ = [
    "Conversation",
    "ConversationStatus",
    "Customer",
    "Thread",
    "ThreadKind",
    "ThreadState",
    "analysis_text",
    "has_draft_reply",
    "latest_customer_thread",
    "strip_html",
    "ANGRY_THRESHOLD",
    "HIGH_URGENCY_THRESHOLD",
    "Confidence",
    "IndicatorBreakdown",
    "ReferencedDoc",
    "ScoreSource",
    "ScoringResult",
    "TokenUsage",
]
