"""Tests for the triage decision state machine."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from triage.analysis.decision import TriageAction, TriageDecision, effective_force
from triage.analysis.marker_codec import EscalationMarker
from triage.common.schemas import ScoringResult, Thread, ThreadKind

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def thread(kind, minutes, body="x"):
    return Thread(kind=kind, body=body, created_at=T0 + timedelta(minutes=minutes))


def marker_at(minutes, anger=30, urgency=30):
    return EscalationMarker(
        anger_score=anger,
        urgency_score=urgency,
        note_created_at=T0 + timedelta(minutes=minutes),
    )


@pytest.fixture
def decision():
    return TriageDecision()


class TestInitial:
    @pytest.mark.parametrize("count", [0, 1, 5, 50])
    def test_no_marker_is_initial(self, decision, count):
        threads = [thread(ThreadKind.CUSTOMER, i) for i in range(count)]
        outcome = decision.decide(threads, None)
        assert outcome.action == TriageAction.INITIAL
        assert outcome.renders_note

    def test_no_marker_needs_scoring(self, decision):
        assert decision.needs_scoring([], None) is True


class TestSkip:
    def test_no_customer_message_after_marker(self, decision):
        threads = [
            thread(ThreadKind.CUSTOMER, 0),
            thread(ThreadKind.NOTE, 5),
            thread(ThreadKind.REPLY, 10),
        ]
        marker = marker_at(5)
        assert decision.needs_scoring(threads, marker) is False
        outcome = decision.decide(threads, marker)
        assert outcome.action == TriageAction.SKIP
        assert not outcome.renders_note
        assert not outcome.is_scored

    def test_customer_message_at_same_instant_is_not_new(self, decision):
        threads = [thread(ThreadKind.CUSTOMER, 5)]
        assert decision.decide(threads, marker_at(5)).action == TriageAction.SKIP

    def test_force_overrides_skip(self, decision):
        threads = [thread(ThreadKind.CUSTOMER, 0)]
        marker = marker_at(5, anger=10, urgency=10)
        assert decision.needs_scoring(threads, marker, force=True) is True
        result = ScoringResult(anger_score=10, urgency_score=10)
        outcome = decision.decide(threads, marker, result, force=True)
        assert outcome.action == TriageAction.INCREMENTAL_STABLE
        assert outcome.forced


class TestIncremental:
    @pytest.fixture
    def threads(self):
        return [thread(ThreadKind.CUSTOMER, 0), thread(ThreadKind.NOTE, 5), thread(ThreadKind.CUSTOMER, 10)]

    def test_deltas_of_nineteen_are_stable(self, decision, threads):
        marker = marker_at(5, anger=30, urgency=30)
        result = ScoringResult(anger_score=49, urgency_score=49)
        outcome = decision.decide(threads, marker, result)
        assert outcome.action == TriageAction.INCREMENTAL_STABLE
        assert outcome.score_delta.anger_delta == 19
        assert outcome.score_delta.urgency_delta == 19
        assert not outcome.renders_note

    def test_anger_delta_of_twenty_escalates(self, decision, threads):
        marker = marker_at(5, anger=30, urgency=30)
        result = ScoringResult(anger_score=50, urgency_score=30)
        assert decision.decide(threads, marker, result).action == TriageAction.INCREMENTAL_ESCALATED

    def test_urgency_delta_of_twenty_escalates(self, decision, threads):
        marker = marker_at(5, anger=30, urgency=30)
        result = ScoringResult(anger_score=0, urgency_score=50)
        outcome = decision.decide(threads, marker, result)
        assert outcome.action == TriageAction.INCREMENTAL_ESCALATED
        assert outcome.score_delta.anger_delta == -30
        assert outcome.renders_note

    def test_decreasing_scores_are_stable(self, decision, threads):
        marker = marker_at(5, anger=90, urgency=90)
        result = ScoringResult(anger_score=10, urgency_score=10)
        assert decision.decide(threads, marker, result).action == TriageAction.INCREMENTAL_STABLE

    def test_missing_result_raises(self, decision, threads):
        with pytest.raises(ValueError, match="scoring result"):
            decision.decide(threads, marker_at(5))

    def test_custom_threshold(self, threads):
        decision = TriageDecision(escalation_threshold=10)
        marker = marker_at(5, anger=30, urgency=30)
        result = ScoringResult(anger_score=40, urgency_score=30)
        assert decision.decide(threads, marker, result).action == TriageAction.INCREMENTAL_ESCALATED


class TestEffectiveForce:
    def test_honoured_for_dry_run_closed(self):
        assert effective_force(True, closed_only=True, dry_run=True) is True

    @pytest.mark.parametrize("closed_only,dry_run", [(True, False), (False, True), (False, False)])
    def test_disabled_otherwise(self, closed_only, dry_run, caplog):
        with caplog.at_level(logging.WARNING, logger="triage.analysis.decision"):
            assert effective_force(True, closed_only=closed_only, dry_run=dry_run) is False
        assert "Force reprocess ignored" in caplog.text

    def test_not_requested(self):
        assert effective_force(False, closed_only=True, dry_run=True) is False
