"""
Triage Analysis

Scoring, escalation state tracking and the triage decision.
"""

from .crawler import BoundedConversationCrawler, Page, crawl
from .decision import TriageAction, TriageDecision, TriageOutcome, effective_force
from .marker_codec import EscalationMarker, EscalationStateCodec, MalformedMarkerError
from .scorer import BaseScorer, ScoringContext, build_scorer
from .sentiment import LexicalSentimentScorer

__all__ = [
    "BoundedConversationCrawler",
    "Page",
    "crawl",
    "TriageAction",
    "TriageDecision",
    "TriageOutcome",
    "effective_force",
    "EscalationMarker",
    "EscalationStateCodec",
    "MalformedMarkerError",
    "BaseScorer",
    "ScoringContext",
    "build_scorer",
    "LexicalSentimentScorer",
]
