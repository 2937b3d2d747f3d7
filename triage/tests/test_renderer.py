"""Tests for note rendering."""

from datetime import datetime, timezone

import pytest

from triage.analysis.decision import ScoreDelta, TriageAction, TriageOutcome
from triage.analysis.marker_codec import EscalationMarker, EscalationStateCodec
from triage.analysis.renderer import NoteRenderer, classification, issue_summary
from triage.analysis.sentiment import LexicalSentimentScorer
from triage.common.schemas import (
    ReferencedDoc,
    ScoreSource,
    ScoringResult,
    Thread,
    ThreadKind,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
INITIAL = TriageOutcome(action=TriageAction.INITIAL)


@pytest.fixture
def renderer():
    return NoteRenderer()


class TestClassification:
    @pytest.mark.parametrize("anger,urgency,expected", [
        (85, 0, "EXTREMELY ANGRY"),
        (80, 0, "EXTREMELY ANGRY"),
        (65, 0, "VERY ANGRY"),
        (40, 0, "😡 ANGRY"),
        (10, 70, "HIGH URGENCY"),
        (10, 10, "STANDARD"),
    ])
    def test_levels(self, anger, urgency, expected):
        assert expected in classification(ScoringResult(anger_score=anger, urgency_score=urgency))

    def test_spam_wins(self):
        assert "SPAM" in classification(ScoringResult(anger_score=90, is_spam=True))


class TestIssueSummary:
    def test_subject_fallback_strips_reply_prefix(self):
        line = issue_summary(ScoringResult(), "Re: Cannot log in to my account today please")
        assert line == "🗃️ Cannot log in to my"

    def test_long_words_truncated(self):
        line = issue_summary(ScoringResult(), "Supercalifragilistic expialidocious subscription")
        assert line.endswith("...")

    def test_empty_subject(self):
        assert issue_summary(ScoringResult(), "") == "🗃️ General inquiry"

    def test_ai_category(self):
        result = ScoringResult(source=ScoreSource.AI, issue_category="Billing dispute")
        assert issue_summary(result, "whatever") == "🗃️ Billing dispute"


class TestRender:
    def test_initial_note_ends_with_marker(self, renderer):
        result = LexicalSentimentScorer().analyze("I want a refund now!!!!")
        note = renderer.render(result, INITIAL, subject="Refund")
        assert note.splitlines()[-1] == "<!-- [SENTIMENT_DATA: U40_A40] -->"
        assert "😡 ANGRY (A40, U40, medium confidence)" in note
        assert "Refund/cancellation: refund" in note

    def test_rendered_note_decodes(self, renderer):
        result = ScoringResult(anger_score=72, urgency_score=15)
        note = renderer.render(result, INITIAL, subject="Help")
        marker = EscalationStateCodec().decode([Thread(kind=ThreadKind.NOTE, body=note, created_at=T0)])
        assert (marker.anger_score, marker.urgency_score) == (72, 15)

    def test_stable_outcome_has_no_note(self, renderer):
        outcome = TriageOutcome(action=TriageAction.INCREMENTAL_STABLE, score_delta=ScoreDelta(5, 5))
        assert renderer.render(ScoringResult(anger_score=10), outcome) is None

    def test_skip_outcome_has_no_note(self, renderer):
        assert renderer.render(ScoringResult(), TriageOutcome(action=TriageAction.SKIP)) is None

    def test_escalation_line(self, renderer):
        outcome = TriageOutcome(
            action=TriageAction.INCREMENTAL_ESCALATED,
            prior=EscalationMarker(10, 50, T0),
            score_delta=ScoreDelta(anger_delta=35, urgency_delta=-5),
        )
        note = renderer.render(ScoringResult(anger_score=45, urgency_score=45), outcome)
        assert "🔺 ESCALATION - Anger: +35, Urgency: -5" in note

    def test_failed_analysis_note_has_no_marker(self, renderer):
        result = ScoringResult.neutral("anthropic API error: timeout")
        note = renderer.render(result, INITIAL, subject="Hi")
        assert "Sentiment analysis failed: anthropic API error: timeout" in note
        assert "SENTIMENT_DATA" not in note

    def test_degraded_warning(self, renderer):
        result = ScoringResult(anger_score=30, degraded=True, error="LLM client is not available")
        note = renderer.render(result, INITIAL)
        assert "Low-confidence analysis" in note
        assert "SENTIMENT_DATA" in note

    def test_spam_note_is_minimal(self, renderer):
        result = ScoringResult(
            source=ScoreSource.AI,
            is_spam=True,
            reasoning="Link building pitch.",
            suggested_response="Thanks!",
        )
        note = renderer.render(result, INITIAL)
        assert "SPAM DETECTED" in note
        assert "Reasoning: Link building pitch." in note
        assert "Referenced Documentation" not in note

    def test_ai_sections(self, renderer):
        result = ScoringResult(
            anger_score=20,
            urgency_score=65,
            source=ScoreSource.AI,
            reasoning="Customer was charged twice. They want it fixed today.",
            anger_triggers=["charged twice"],
            urgency_triggers=["today"],
            ai_confidence=0.87,
            referenced_docs=[
                ReferencedDoc(title="Billing FAQ", url="https://docs.example.com/billing"),
                ReferencedDoc(title="Known issues", url="internal://known-issues"),
            ],
            notes_for_agent="- Check the payment processor\nEscalate if unresolved",
        )
        note = renderer.render(result, INITIAL, usage_line="💰 AI Usage: $0.0123 for this request")
        assert "- Customer was charged twice." in note
        assert "- They want it fixed today." in note
        assert "- Anger: charged twice" in note
        assert "📊 AI Response Confidence: 87%" in note
        assert "- Billing FAQ: https://docs.example.com/billing" in note
        assert "internal://" not in note
        assert "- Check the payment processor" in note
        assert "💰 AI Usage: $0.0123" in note

    def test_no_docs_referenced(self, renderer):
        result = ScoringResult(source=ScoreSource.AI)
        note = renderer.render(result, INITIAL)
        assert "- No documentation referenced" in note
