"""
Scoring Schema

Result of scoring one piece of customer text, including the indicator
breakdown used for rendering and provenance fields that mark degraded or
failed analyses.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


ANGRY_THRESHOLD = 40
HIGH_URGENCY_THRESHOLD = 60


class Confidence(str, Enum):
    """Confidence bucket attached to a score"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScoreSource(str, Enum):
    """Which scorer produced a result"""
    LEXICAL = "lexical"
    AI = "ai"
    FALLBACK = "fallback"  # neutral result after a failed analysis


class IndicatorBreakdown(BaseModel):
    """Matched terms and signals behind a lexical score"""
    model_config = ConfigDict(frozen=True)

    profanity: List[str] = Field(default_factory=list)
    negative_words: List[str] = Field(default_factory=list)
    context_phrases: List[str] = Field(default_factory=list)
    urgency_keywords: List[str] = Field(default_factory=list)
    insults: List[str] = Field(default_factory=list)
    refund_phrases: List[str] = Field(default_factory=list)
    # Context snippets around matches, one list per lexicon
    profanity_windows: List[str] = Field(default_factory=list)
    negative_windows: List[str] = Field(default_factory=list)
    context_windows: List[str] = Field(default_factory=list)
    caps_ratio: float = 0.0
    exclamation_count: int = 0
    components: Dict[str, int] = Field(default_factory=dict)

    @property
    def windows(self) -> List[str]:
        """All captured windows: profanity first, then negative words, then context phrases"""
        return self.profanity_windows + self.negative_windows + self.context_windows

    @property
    def has_profanity(self) -> bool:
        return bool(self.profanity)

    @property
    def profanity_count(self) -> int:
        return len(self.profanity)

    @property
    def negative_word_count(self) -> int:
        return len(self.negative_words)

    @property
    def context_phrase_count(self) -> int:
        return len(self.context_phrases)

    @property
    def is_empty(self) -> bool:
        return not any(v for v in self.components.values())


class ReferencedDoc(BaseModel):
    """Knowledge base article cited by an AI analysis"""
    title: str
    url: str = ""


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ScoringResult(BaseModel):
    """Anger and urgency scores for one conversation snapshot"""
    model_config = ConfigDict(frozen=True)

    anger_score: int = Field(0, ge=0, le=100)
    urgency_score: int = Field(0, ge=0, le=100)
    confidence: Confidence = Confidence.LOW
    indicators: IndicatorBreakdown = Field(default_factory=IndicatorBreakdown)

    source: ScoreSource = ScoreSource.LEXICAL
    degraded: bool = False
    error: Optional[str] = None

    # AI extras
    is_spam: bool = False
    issue_category: Optional[str] = None
    topic_tag: Optional[str] = None
    reasoning: str = ""
    anger_triggers: List[str] = Field(default_factory=list)
    urgency_triggers: List[str] = Field(default_factory=list)
    suggested_response: Optional[str] = None
    notes_for_agent: Optional[str] = None
    referenced_docs: List[ReferencedDoc] = Field(default_factory=list)
    ai_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    usage: Optional[TokenUsage] = None

    @property
    def score(self) -> int:
        return self.anger_score

    @property
    def is_angry(self) -> bool:
        return self.anger_score >= ANGRY_THRESHOLD

    @property
    def is_high_urgency(self) -> bool:
        return self.urgency_score >= HIGH_URGENCY_THRESHOLD

    @property
    def failed(self) -> bool:
        return self.source == ScoreSource.FALLBACK

    @classmethod
    def neutral(cls, error: str) -> "ScoringResult":
        """Zero-score placeholder used when no scorer could run."""
        return cls(
            source=ScoreSource.FALLBACK,
            degraded=True,
            error=error,
        )
