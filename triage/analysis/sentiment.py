"""
Lexical Sentiment Scorer

Deterministic anger/urgency scoring from fixed word lists. Pure and total:
any input string, including an empty one, yields a ScoringResult.

Algorithm:
1. Lower-case the text and find distinct lexicon matches on letter boundaries
2. Capture short context windows around profanity and negative matches
3. Add fixed weights per matched term and per shouting signal
4. Clamp to 0-100 and bucket the confidence
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from ..common.config import ScoringWeights
from ..common.schemas import Confidence, IndicatorBreakdown, ScoreSource, ScoringResult
from .scorer import BaseScorer, ScoringContext

logger = logging.getLogger("triage.analysis.sentiment")


PROFANITY = (
    "fuck", "shit", "ass", "bitch", "cunt", "piss", "damn", "hell", "bastard",
    "dick", "pussy", "cock", "bullshit", "asshole", "fucking", "shitty",
    "fucked", "dammit", "goddamn",
)

NEGATIVE_WORDS = (
    "terrible", "awful", "horrible", "disgusting", "pathetic", "useless",
    "worthless", "garbage", "trash", "ridiculous", "bad", "poor", "worst",
    "sucks", "crap", "stupid", "dumb", "idiotic", "incompetent",
    "unprofessional", "unacceptable", "disappointed", "frustrating",
    "annoying", "irritating", "sick of", "tired of", "fed up", "enough",
    "done with",
)

NEGATIVE_CONTEXT_PHRASES = (
    "bad service", "terrible service", "awful service", "poor service",
    "bad customer service", "terrible customer service", "poor customer service",
    "bad app", "terrible app", "awful app", "broken app",
    "bad company", "terrible company", "worst company",
    "bad support", "terrible support", "no support",
    "bad experience", "terrible experience", "awful experience",
)

URGENCY_KEYWORDS = (
    "immediately", "now", "asap", "urgent", "emergency", "right away", "today",
    "unacceptable", "outrageous", "ridiculous", "frustrated", "angry",
    "furious", "livid", "pissed", "disappointed", "disgusted", "right now",
    "hurry", "quickly", "fast", "need help", "help me", "still waiting",
    "been waiting", "no response", "ignored",
)

INSULT_PHRASES = (
    "don't know how to do", "dont know how to do", "incompetent",
    "you're stupid", "youre stupid", "this is ridiculous", "this is absurd",
    "waste of time", "waste of money", "scam", "fraud", "joke",
    "worst service", "terrible service", "horrible service", "pathetic service",
    "you people", "you guys are", "no idea what",
)

REFUND_PHRASES = (
    "refund", "money back", "charge back", "chargeback", "reimburse",
    "reimbursement", "cancel subscription", "cancel", "cancellation",
    "unsubscribe", "stop subscription", "end subscription", "terminate",
    "want to cancel", "cancel my account", "stop billing", "stop charging",
    "close account", "delete account", "billing issue", "payment problem",
    "charged", "subscription", "membership",
)

SPAM_INDICATORS = (
    "guest post", "sponsored post", "article contribution", "posting an article",
    "post my article", "dofollow", "backlink", "link building", "seo",
    "editorial team", "advertising cost", "article proposal", "tell me the price",
    "what is the cost", "interested in posting", "accept guest post",
    "quality content", "engaging articles", "trusted source",
)

BUG_PHRASES = (
    "not working", "broken", "bug", "error", "issue", "problem",
    "doesn't work", "can't", "cant",
)

PROFANITY_WINDOW = 30
NEGATIVE_WINDOW = 20
CONTEXT_WINDOW = 10


# Continuations that turn a term into an unrelated word ("hello", "assist")
SUFFIX_EXCLUSIONS = {
    "hell": ("o",),
    "ass": ("ist", "ign", "ess", "et", "ert", "oc", "um", "ur", "emb", "ort", "ault"),
    "bad": ("ge", "minton"),
    "cock": ("pit", "roach", "tail"),
    "dick": ("ens",),
    "now": ("here", "adays"),
    "fast": ("en",),
    "seo": ("ul",),
}


def _term_pattern(term: str) -> "re.Pattern":
    # Leading letter boundary only, so inflections ("refunds", "cancelled")
    # match but a term never matches in the middle of a word ("shell")
    body = r"\s+".join(re.escape(part) for part in term.split())
    pattern = r"(?<![a-z])" + body
    exclusions = SUFFIX_EXCLUSIONS.get(term)
    if exclusions:
        pattern += "(?!" + "|".join(re.escape(e) for e in exclusions) + ")"
    return re.compile(pattern)


def _compile(terms: Sequence[str]) -> List[Tuple[str, "re.Pattern"]]:
    return [(term, _term_pattern(term)) for term in terms]


_PROFANITY = _compile(PROFANITY)
_NEGATIVE = _compile(NEGATIVE_WORDS)
_CONTEXT = _compile(NEGATIVE_CONTEXT_PHRASES)
_URGENCY = _compile(URGENCY_KEYWORDS)
_INSULTS = _compile(INSULT_PHRASES)
_REFUND = _compile(REFUND_PHRASES)
_SPAM = _compile(SPAM_INDICATORS)
_BUG = _compile(BUG_PHRASES)


def find_terms(
    lowered: str,
    lexicon: List[Tuple[str, "re.Pattern"]],
    original: Optional[str] = None,
    window: int = 0,
    windows: Optional[List[str]] = None,
    captured: Sequence[str] = (),
) -> List[str]:
    """Return distinct matched terms in lexicon order.

    When ``windows`` is given, the text around the first occurrence of each
    term is appended to it unless it is already contained in a window from
    ``windows`` or ``captured`` (windows taken by earlier lexicons).
    """
    matched = []
    for term, pattern in lexicon:
        m = pattern.search(lowered)
        if not m:
            continue
        matched.append(term)
        if windows is not None and original is not None:
            start = max(0, m.start() - window)
            end = min(len(original), m.end() + window)
            snippet = original[start:end].strip()
            if snippet and not any(snippet in existing for existing in [*captured, *windows]):
                windows.append(snippet)
    return matched


def caps_ratio(text: str) -> float:
    """Uppercase letters over all letters; 0.0 when there are no letters"""
    letters = [c for c in text if c.isalpha()]
    if not letters:
        return 0.0
    upper = sum(1 for c in letters if c.isupper())
    return upper / len(letters)


def _clamp(value: int) -> int:
    return max(0, min(100, value))


class LexicalSentimentScorer(BaseScorer):
    """
    Word-list scorer for anger and urgency.

    Anger is the sum of every component. Urgency reuses the urgency-bearing
    components (urgency keywords, refund/cancellation phrases, exclamation
    bonus).
    """

    name = "lexical"

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self._weights = weights or ScoringWeights()

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def analyze(self, text: str, context: Optional[ScoringContext] = None) -> ScoringResult:
        text = text or ""
        lowered = text.lower()
        w = self._weights

        profanity_windows: List[str] = []
        negative_windows: List[str] = []
        context_windows: List[str] = []
        profanity = find_terms(lowered, _PROFANITY, text, PROFANITY_WINDOW, profanity_windows)
        negative = find_terms(
            lowered, _NEGATIVE, text, NEGATIVE_WINDOW, negative_windows,
            captured=profanity_windows,
        )
        context_phrases = find_terms(
            lowered, _CONTEXT, text, CONTEXT_WINDOW, context_windows,
            captured=profanity_windows + negative_windows,
        )
        urgency = find_terms(lowered, _URGENCY)
        insults = find_terms(lowered, _INSULTS)
        refund = find_terms(lowered, _REFUND)

        ratio = caps_ratio(text)
        exclamations = text.count("!")

        components: Dict[str, int] = {
            "profanity": (w.profanity_base + w.profanity_per_term * len(profanity)) if profanity else 0,
            "negative_words": w.negative_word * len(negative),
            "context_phrases": w.context_phrase * len(context_phrases),
            "caps": self._caps_points(ratio),
            "urgency_keywords": w.urgency_keyword * len(urgency),
            "insults": w.insult * len(insults),
            "refund_phrases": w.refund_phrase * len(refund),
            "exclamations": w.exclamation if exclamations > w.exclamation_min_count else 0,
        }

        anger = _clamp(sum(components.values()))
        urgency_score = _clamp(
            components["urgency_keywords"]
            + components["refund_phrases"]
            + components["exclamations"]
        )

        indicators = IndicatorBreakdown(
            profanity=profanity,
            negative_words=negative,
            context_phrases=context_phrases,
            urgency_keywords=urgency,
            insults=insults,
            refund_phrases=refund,
            profanity_windows=profanity_windows,
            negative_windows=negative_windows,
            context_windows=context_windows,
            caps_ratio=ratio,
            exclamation_count=exclamations,
            components=components,
        )

        is_spam = self._is_spam(lowered)
        result = ScoringResult(
            anger_score=anger,
            urgency_score=urgency_score,
            confidence=self._confidence(anger, bool(refund), bool(profanity)),
            indicators=indicators,
            source=ScoreSource.LEXICAL,
            is_spam=is_spam,
            issue_category=self._issue_category(lowered, is_spam, bool(refund)),
        )
        logger.debug(
            "Lexical score anger=%d urgency=%d confidence=%s",
            result.anger_score, result.urgency_score, result.confidence.value,
        )
        return result

    def _caps_points(self, ratio: float) -> int:
        w = self._weights
        if ratio > w.caps_high_ratio:
            return w.caps_high
        if ratio > w.caps_medium_ratio:
            return w.caps_medium
        return 0

    def _confidence(self, score: int, has_refund: bool, has_profanity: bool) -> Confidence:
        w = self._weights
        if score > w.high_confidence_score or (has_refund and has_profanity):
            return Confidence.HIGH
        if score >= w.medium_confidence_score:
            return Confidence.MEDIUM
        return Confidence.LOW

    @staticmethod
    def _is_spam(lowered: str) -> bool:
        hits = find_terms(lowered, _SPAM)
        return len(hits) >= 2 or "guest post" in hits or "sponsored post" in hits

    @staticmethod
    def _issue_category(lowered: str, is_spam: bool, has_refund: bool) -> str:
        if is_spam:
            return "spam"
        if has_refund or "billing" in lowered:
            return "refund-cancellation"
        if find_terms(lowered, _BUG):
            return "bug-broken"
        return "other"

    def explain(self, result: ScoringResult) -> str:
        """Human-readable breakdown of a lexical score"""
        ind = result.indicators
        lines = [f"Anger: {result.anger_score}/100 ({result.confidence.value} confidence)"]
        if ind.profanity:
            lines.append(f"  Profanity: {', '.join(ind.profanity)}")
        if ind.negative_words:
            lines.append(f"  Negative words: {', '.join(ind.negative_words)}")
        if ind.context_phrases:
            lines.append(f"  Negative context: {', '.join(ind.context_phrases)}")
        if ind.insults:
            lines.append(f"  Insults: {', '.join(ind.insults)}")
        if ind.urgency_keywords:
            lines.append(f"  Urgency: {', '.join(ind.urgency_keywords)}")
        if ind.refund_phrases:
            lines.append(f"  Refund/cancel: {', '.join(ind.refund_phrases)}")
        if ind.components.get("caps"):
            lines.append(f"  Caps ratio: {ind.caps_ratio:.0%}")
        if ind.components.get("exclamations"):
            lines.append(f"  Exclamation marks: {ind.exclamation_count}")
        return "\n".join(lines)
