"""
AI Scorer

LLM-based anger/urgency scoring with knowledge base context. Also drafts a
suggested reply and internal notes for the agent.

Any failure (no client, provider error, unparseable response) falls back to
the lexical scorer with confidence forced to low, or to a neutral zero
result when no fallback is configured. The fallback result is marked
``degraded`` so notes and tags can flag it.
"""

import logging
from typing import List, Optional

from ..common.docs_client import Article, DocsClient
from ..common.errors import ScoringUnavailable
from ..common.llm_client import LLMClient
from ..common.llm_utils import as_fraction, as_optional_str, as_score, as_str_list, parse_llm_json
from ..common.schemas import (
    Confidence,
    IndicatorBreakdown,
    ReferencedDoc,
    ScoreSource,
    ScoringResult,
    TokenUsage,
)
from .scorer import BaseScorer, ScoringContext

logger = logging.getLogger("triage.analysis.ai_scorer")

MAX_MESSAGE_CHARS = 6000
MAX_ARTICLE_CHARS = 1500
MAX_HISTORY_MESSAGES = 5

SCORING_SYSTEM_PROMPT = """You are a customer support triage assistant. You read a customer's latest message and rate how angry and how urgent it is, then draft a helpful reply grounded in the documentation provided.

Scoring guide (0-100):
- angerScore: profanity, insults, shouting, threats to leave, sarcasm. 0 = calm, 40+ = angry, 80+ = extremely angry.
- urgencyScore: billing problems, refunds, cancellations, outages, repeated follow-ups, deadlines. 0 = no rush, 60+ = needs attention today.
- isSpam: true for guest-post offers, SEO/link-building pitches, and other unsolicited marketing.

Rules:
- Base scores on the customer's words, not on the topic alone.
- Only cite documentation that appears in the DOCUMENTATION section.
- If unsure about an answer, say so in notesForAgent instead of guessing in suggestedResponse.

Respond with JSON only:
{"angerScore": 0, "urgencyScore": 0, "isSpam": false,
 "angerTriggers": ["..."], "urgencyTriggers": ["..."],
 "sentimentReasoning": "two or three sentences",
 "issueCategory": "short description of the issue",
 "topicTag": "one lowercase-hyphenated tag or null",
 "suggestedResponse": "reply to the customer or null",
 "confidence": 0.0,
 "referencedDocs": ["article title"],
 "notesForAgent": "internal notes or null"}"""


def _confidence_bucket(value: Optional[float]) -> Confidence:
    if value is None:
        return Confidence.MEDIUM
    if value >= 0.8:
        return Confidence.HIGH
    if value >= 0.5:
        return Confidence.MEDIUM
    return Confidence.LOW


def build_prompt(text: str, context: Optional[ScoringContext], articles: List[Article]) -> str:
    """User prompt for one conversation"""
    sections = []
    if context is not None:
        customer = context.customer_name or context.customer_email or "Unknown"
        sections.append(f"CUSTOMER: {customer}\nSUBJECT: {context.subject or 'No subject'}")
        if context.history:
            history = "\n---\n".join(context.history[-MAX_HISTORY_MESSAGES:])
            sections.append(f"EARLIER CUSTOMER MESSAGES (oldest first):\n{history}")
        if context.is_follow_up:
            sections.append(
                f"PREVIOUS ANALYSIS: anger {context.prior_anger}/100, "
                f"urgency {context.prior_urgency}/100"
            )

    if articles:
        docs = "\n---\n".join(
            f"**{a.title}**\n{a.text[:MAX_ARTICLE_CHARS]}\nURL: {a.url}" for a in articles
        )
        sections.append(f"DOCUMENTATION:\n{docs}")
    else:
        sections.append("DOCUMENTATION:\n(none available)")

    sections.append(f"CUSTOMER'S LATEST MESSAGE:\n{text[:MAX_MESSAGE_CHARS]}")
    return "\n\n".join(sections)


class AIScorer(BaseScorer):
    """
    Scores conversations with an LLM.

    Usage:
        scorer = AIScorer(LLMClient.from_config(config.llm), fallback=LexicalSentimentScorer())
        result = scorer.analyze(text, ScoringContext(subject="Billing"))
    """

    name = "ai"

    def __init__(
        self,
        llm_client: LLMClient,
        fallback: Optional[BaseScorer] = None,
        docs_client: Optional[DocsClient] = None,
        max_tokens: int = 2000,
        timeout: float = 60.0,
    ):
        self._llm = llm_client
        self._fallback = fallback
        self._docs = docs_client
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def analyze(self, text: str, context: Optional[ScoringContext] = None) -> ScoringResult:
        try:
            return self._score(text, context)
        except ScoringUnavailable as e:
            logger.warning("AI scoring unavailable, falling back: %s", e)
            return self._fallback_result(text, context, str(e))

    def _score(self, text: str, context: Optional[ScoringContext]) -> ScoringResult:
        if not self.is_available:
            raise ScoringUnavailable("LLM client is not available")

        articles: List[Article] = []
        if self._docs is not None:
            articles = self._docs.find_relevant_articles(text)

        prompt = build_prompt(text, context, articles)
        try:
            response = self._llm.generate(
                prompt,
                system=SCORING_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
            )
        except Exception as e:
            # Provider SDKs raise their own exception hierarchies
            raise ScoringUnavailable(f"{self._llm.provider} API error: {e}") from e

        data = parse_llm_json(response.text)
        anger = as_score(data.get("angerScore"))
        urgency = as_score(data.get("urgencyScore"))
        if anger is None or urgency is None:
            raise ScoringUnavailable("AI response did not contain anger and urgency scores")

        ai_confidence = as_fraction(data.get("confidence"))
        indicators = IndicatorBreakdown()
        if self._fallback is not None:
            indicators = self._fallback.analyze(text, context).indicators

        return ScoringResult(
            anger_score=anger,
            urgency_score=urgency,
            confidence=_confidence_bucket(ai_confidence),
            indicators=indicators,
            source=ScoreSource.AI,
            is_spam=bool(data.get("isSpam", False)),
            issue_category=as_optional_str(data.get("issueCategory")),
            topic_tag=self._clean_tag(data.get("topicTag")),
            reasoning=as_optional_str(data.get("sentimentReasoning")) or "",
            anger_triggers=as_str_list(data.get("angerTriggers")),
            urgency_triggers=as_str_list(data.get("urgencyTriggers")),
            suggested_response=as_optional_str(data.get("suggestedResponse")),
            notes_for_agent=as_optional_str(data.get("notesForAgent")),
            referenced_docs=self._referenced_docs(data.get("referencedDocs"), articles),
            ai_confidence=ai_confidence,
            usage=TokenUsage(
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
            ),
        )

    def _fallback_result(
        self, text: str, context: Optional[ScoringContext], error: str
    ) -> ScoringResult:
        if self._fallback is None:
            return ScoringResult.neutral(error)
        result = self._fallback.analyze(text, context)
        return result.model_copy(update={
            "confidence": Confidence.LOW,
            "degraded": True,
            "error": error,
        })

    @staticmethod
    def _clean_tag(value) -> Optional[str]:
        tag = as_optional_str(value)
        if not tag or tag.lower() in ("null", "none"):
            return None
        return "-".join(tag.lower().split())

    @staticmethod
    def _referenced_docs(value, articles: List[Article]) -> List[ReferencedDoc]:
        if isinstance(value, (str, dict)):
            value = [value]
        by_title = {a.title.lower(): a for a in articles}
        docs = []
        for item in value or []:
            if isinstance(item, dict):
                title = str(item.get("title", "")).strip()
                url = str(item.get("url", "")).strip()
            else:
                title, url = str(item).strip(), ""
            if not title:
                continue
            if not url and title.lower() in by_title:
                url = by_title[title.lower()].url
            docs.append(ReferencedDoc(title=title, url=url))
        return docs
