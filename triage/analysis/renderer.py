"""
Note Renderer

Turns a scoring result and triage outcome into the internal note text posted
to HelpScout. Every successful analysis note ends with the escalation marker
so the next pass can recover the scores.
"""

import re
from typing import List, Optional

from .. import __version__
from ..common.schemas import ScoreSource, ScoringResult
from .decision import TriageAction, TriageOutcome
from .marker_codec import EscalationStateCodec

EXTREMELY_ANGRY_SCORE = 80
VERY_ANGRY_SCORE = 60

FOOTER = f"✍️ Note written by helpdesk-triage v{__version__}"

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def issue_summary(result: ScoringResult, subject: str) -> str:
    """Short category line. AI category first, else the subject's first words."""
    if result.source == ScoreSource.AI and result.issue_category:
        category = result.issue_category
    else:
        clean = (subject or "").strip()
        if clean.lower().startswith("re:"):
            clean = clean[3:].strip()
        if clean:
            words = " ".join(clean.split(" ")[:5])
            category = words[:30] + "..." if len(words) > 30 else words
        else:
            category = "General inquiry"
    return f"🗃️ {category}"


def classification(result: ScoringResult) -> str:
    if result.is_spam:
        return "🗑️ SPAM DETECTED"
    if result.is_angry:
        if result.anger_score >= EXTREMELY_ANGRY_SCORE:
            return "😡 EXTREMELY ANGRY"
        if result.anger_score >= VERY_ANGRY_SCORE:
            return "😡 VERY ANGRY"
        return "😡 ANGRY"
    if result.is_high_urgency:
        return "❗ HIGH URGENCY"
    return "💬 STANDARD"


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


class NoteRenderer:
    """Renders triage notes."""

    def __init__(self, codec: Optional[EscalationStateCodec] = None):
        self._codec = codec or EscalationStateCodec()

    def render(
        self,
        result: ScoringResult,
        outcome: TriageOutcome,
        subject: str = "",
        usage_line: Optional[str] = None,
    ) -> Optional[str]:
        """
        Build note text for an outcome.

        Returns:
            Note text, or None when the outcome does not produce a note
        """
        if result.failed:
            return self.render_failure(result, subject)
        if not outcome.renders_note:
            return None

        parts: List[str] = [issue_summary(result, subject)]

        if outcome.action == TriageAction.INCREMENTAL_ESCALATED and outcome.score_delta:
            delta = outcome.score_delta
            parts.append(
                f"🔺 ESCALATION - Anger: {_signed(delta.anger_delta)}, "
                f"Urgency: {_signed(delta.urgency_delta)}"
            )

        parts.append(
            f"{classification(result)} (A{result.anger_score}, U{result.urgency_score}, "
            f"{result.confidence.value} confidence)"
        )

        if result.degraded:
            parts.append(
                f"⚠️ Low-confidence analysis: AI scoring unavailable ({result.error}). "
                "Scores come from keyword matching only."
            )

        if result.is_spam:
            if result.reasoning:
                parts.append(f"\n📝 Reasoning: {result.reasoning}")
        else:
            parts.extend(self._lexical_section(result))
            parts.extend(self._ai_sections(result))

        if usage_line:
            parts.append(f"\n{usage_line}")

        parts.append(f"\n{FOOTER}")
        parts.append(self._codec.encode(result))
        return "\n".join(parts)

    def render_failure(self, result: ScoringResult, subject: str = "") -> str:
        """Failure note. Carries no marker so the next pass retries."""
        return "\n".join([
            issue_summary(result, subject),
            f"❌ Sentiment analysis failed: {result.error or 'unknown error'}",
            f"\n{FOOTER}",
        ])

    @staticmethod
    def _lexical_section(result: ScoringResult) -> List[str]:
        ind = result.indicators
        if result.source == ScoreSource.AI or ind.is_empty:
            return []
        lines = ["\n🔎 Indicators:"]
        for window in ind.windows:
            lines.append(f'- "...{window}..."')
        if ind.insults:
            lines.append(f"- Insults: {', '.join(ind.insults)}")
        if ind.urgency_keywords:
            lines.append(f"- Urgency keywords: {', '.join(ind.urgency_keywords)}")
        if ind.refund_phrases:
            lines.append(f"- Refund/cancellation: {', '.join(ind.refund_phrases)}")
        if ind.components.get("caps"):
            lines.append(f"- Shouting: {ind.caps_ratio:.0%} capital letters")
        if ind.components.get("exclamations"):
            lines.append(f"- {ind.exclamation_count} exclamation marks")
        return lines

    @staticmethod
    def _ai_sections(result: ScoringResult) -> List[str]:
        if result.source != ScoreSource.AI:
            return []
        lines: List[str] = []

        if result.reasoning:
            lines.append("\n🤖 AI Sentiment Analysis:")
            for sentence in _SENTENCE_SPLIT.split(result.reasoning):
                if sentence.strip():
                    lines.append(f"- {sentence.strip()}")

        if result.anger_triggers or result.urgency_triggers:
            lines.append("\n🔍 Triggers Detected:")
            if result.anger_triggers:
                lines.append(f"- Anger: {', '.join(result.anger_triggers)}")
            if result.urgency_triggers:
                lines.append(f"- Urgency: {', '.join(result.urgency_triggers)}")

        if result.ai_confidence is not None:
            lines.append(f"\n📊 AI Response Confidence: {round(result.ai_confidence * 100)}%")

        lines.append("\n📚 Referenced Documentation:")
        external = [d for d in result.referenced_docs if not d.url.startswith("internal://")]
        if external:
            for doc in external:
                lines.append(f"- {doc.title}: {doc.url}" if doc.url else f"- {doc.title}")
        else:
            lines.append("- No documentation referenced")

        if result.notes_for_agent:
            lines.append("\n📝 Notes for Agent:")
            for line in result.notes_for_agent.splitlines():
                if line.strip():
                    lines.append(line.strip())

        return lines
