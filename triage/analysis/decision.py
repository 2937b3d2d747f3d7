"""
Triage Decision

Decides, per conversation, whether to analyse at all and whether a fresh
analysis is worth a new note.

States:
- no prior marker  -> INITIAL (always analyse and post)
- prior marker     -> SKIP when no customer message arrived after it,
                      otherwise INCREMENTAL_STABLE or INCREMENTAL_ESCALATED
                      depending on how far the scores moved
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ..common.schemas import ScoringResult, Thread
from .marker_codec import EscalationMarker

logger = logging.getLogger("triage.analysis.decision")

DEFAULT_ESCALATION_THRESHOLD = 20


class TriageAction(str, Enum):
    """Outcome of the triage decision"""
    INITIAL = "initial"
    INCREMENTAL_ESCALATED = "incremental_escalated"
    INCREMENTAL_STABLE = "incremental_stable"
    SKIP = "skip"


@dataclass(frozen=True)
class ScoreDelta:
    anger_delta: int
    urgency_delta: int


@dataclass(frozen=True)
class TriageOutcome:
    """Result of a triage decision"""
    action: TriageAction
    prior: Optional[EscalationMarker] = None
    score_delta: Optional[ScoreDelta] = None
    forced: bool = False

    @property
    def renders_note(self) -> bool:
        return self.action in (TriageAction.INITIAL, TriageAction.INCREMENTAL_ESCALATED)

    @property
    def is_scored(self) -> bool:
        return self.action != TriageAction.SKIP


def effective_force(force: bool, closed_only: bool, dry_run: bool) -> bool:
    """Force reprocessing is honoured only for dry-run scans of closed conversations."""
    if not force:
        return False
    if closed_only and dry_run:
        return True
    logger.warning(
        "Force reprocess ignored: requires a dry run over closed conversations "
        "(closed_only=%s, dry_run=%s)",
        closed_only, dry_run,
    )
    return False


def has_new_customer_message(threads: Sequence[Thread], marker: EscalationMarker) -> bool:
    """True if any customer thread was created strictly after the marker note"""
    return any(
        t.is_customer_message and t.created_at > marker.note_created_at
        for t in threads
    )


class TriageDecision:
    """
    State machine gating analysis and note rendering.

    Usage:
        decision = TriageDecision()
        if decision.needs_scoring(threads, marker, force):
            result = scorer.analyze(text)
        outcome = decision.decide(threads, marker, result, force)
    """

    def __init__(self, escalation_threshold: int = DEFAULT_ESCALATION_THRESHOLD):
        self._threshold = escalation_threshold

    @property
    def escalation_threshold(self) -> int:
        return self._threshold

    def needs_scoring(
        self,
        threads: Sequence[Thread],
        marker: Optional[EscalationMarker],
        force: bool = False,
    ) -> bool:
        if marker is None or force:
            return True
        return has_new_customer_message(threads, marker)

    def decide(
        self,
        threads: Sequence[Thread],
        marker: Optional[EscalationMarker],
        result: Optional[ScoringResult] = None,
        force: bool = False,
    ) -> TriageOutcome:
        """
        Classify a conversation.

        Args:
            threads: Full thread history
            marker: Decoded prior marker, or None
            result: Fresh scoring result (required unless the outcome is
                INITIAL or SKIP)
            force: Effective force override (see ``effective_force``)

        Returns:
            TriageOutcome

        Raises:
            ValueError: an incremental comparison is needed but no result was given
        """
        if marker is None:
            return TriageOutcome(action=TriageAction.INITIAL, forced=force)

        if not force and not has_new_customer_message(threads, marker):
            return TriageOutcome(action=TriageAction.SKIP, prior=marker)

        if result is None:
            raise ValueError("A scoring result is required for an incremental decision")

        delta = ScoreDelta(
            anger_delta=result.anger_score - marker.anger_score,
            urgency_delta=result.urgency_score - marker.urgency_score,
        )
        if delta.anger_delta < self._threshold and delta.urgency_delta < self._threshold:
            action = TriageAction.INCREMENTAL_STABLE
        else:
            action = TriageAction.INCREMENTAL_ESCALATED

        logger.debug(
            "Incremental decision %s (anger %+d, urgency %+d)",
            action.value, delta.anger_delta, delta.urgency_delta,
        )
        return TriageOutcome(action=action, prior=marker, score_delta=delta, forced=force)
