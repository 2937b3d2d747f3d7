"""
Scorer Interface

Common interface for the lexical and AI scorers, plus a factory that picks
one from configuration.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from ..common.schemas import ScoringResult

if TYPE_CHECKING:
    from ..common.config import TriageConfig
    from ..common.docs_client import DocsClient
    from ..common.llm_client import LLMClient

logger = logging.getLogger("triage.analysis.scorer")


@dataclass
class ScoringContext:
    """Conversation details available to a scorer beyond the raw text"""
    conversation_id: Optional[int] = None
    subject: str = ""
    customer_name: str = ""
    customer_email: str = ""
    history: List[str] = field(default_factory=list)  # earlier customer messages, oldest first
    prior_anger: Optional[int] = None
    prior_urgency: Optional[int] = None

    @property
    def is_follow_up(self) -> bool:
        return self.prior_anger is not None


class BaseScorer(ABC):
    """
    Abstract base class for scorers.

    Implementations must always return a ScoringResult. Failures are
    reported through the result's ``degraded``/``error`` fields rather than
    raised.
    """

    name = "base"

    @abstractmethod
    def analyze(self, text: str, context: Optional[ScoringContext] = None) -> ScoringResult:
        """
        Score a piece of customer text.

        Args:
            text: Plain text to score
            context: Optional conversation details

        Returns:
            ScoringResult with anger and urgency scores
        """
        pass


def build_scorer(
    config: "TriageConfig",
    llm_client: Optional["LLMClient"] = None,
    docs_client: Optional["DocsClient"] = None,
) -> BaseScorer:
    """Create the scorer named by ``config.scanner.scorer``.

    The AI scorer always wraps a lexical scorer as its fallback. An AI
    scorer without a usable LLM client degrades to lexical scoring.
    """
    from .sentiment import LexicalSentimentScorer

    lexical = LexicalSentimentScorer(weights=config.scoring)
    kind = (config.scanner.scorer or "lexical").lower()

    if kind == "lexical":
        return lexical

    if kind == "ai":
        from .ai_scorer import AIScorer

        if llm_client is None or not llm_client.is_available:
            logger.warning("AI scorer requested but LLM client is unavailable, using lexical scorer")
            return lexical
        return AIScorer(
            llm_client,
            fallback=lexical,
            docs_client=docs_client,
            max_tokens=config.llm.max_tokens,
            timeout=config.llm.timeout,
        )

    raise ValueError(f"Unknown scorer: {config.scanner.scorer!r} (expected 'lexical' or 'ai')")
