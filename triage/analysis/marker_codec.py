"""
Escalation State Codec

Persists the last analysis of a conversation inside the internal notes the
triage pipeline writes. The note history is treated as an append-only log:
the authoritative marker is the one in the most recently created note.

Two layouts are recognised:

- current: ``[SENTIMENT_DATA: U{urgency}_A{anger}]``, written inside an HTML
  comment so HelpScout does not display it
- legacy:  ``Anger: {anger}/100`` and ``Urgency: {urgency}/100`` anywhere in
  the body, in either order and with any separator between them
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from ..common.schemas import ScoringResult, Thread

logger = logging.getLogger("triage.analysis.marker_codec")

MARKER_VERSION = "SENTIMENT_DATA"

_CURRENT_RE = re.compile(r"\[SENTIMENT_DATA:\s*U([^_\]\s]*)_A([^\]\s]*)\]")
_LEGACY_ANGER_RE = re.compile(r"Anger:\s*(\S+?)/100")
_LEGACY_URGENCY_RE = re.compile(r"Urgency:\s*(\S+?)/100")


class MalformedMarkerError(ValueError):
    """A marker token was recognised but its scores could not be parsed."""


@dataclass(frozen=True)
class EscalationMarker:
    """Scores recovered from a prior analysis note"""
    anger_score: int
    urgency_score: int
    note_created_at: datetime


def _parse_score(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise MalformedMarkerError(f"Score is not an integer: {raw!r}")
    if not 0 <= value <= 100:
        raise MalformedMarkerError(f"Score out of range: {value}")
    return value


def _legacy_fields(body: str) -> Optional[Tuple[str, str]]:
    # Both fields must be present; older notes put them on separate lines
    anger = _LEGACY_ANGER_RE.search(body)
    urgency = _LEGACY_URGENCY_RE.search(body)
    if anger and urgency:
        return anger.group(1), urgency.group(1)
    return None


class EscalationStateCodec:
    """Encodes scores into note text and recovers them from thread history."""

    def encode(self, result: ScoringResult, created_at: Optional[datetime] = None) -> str:
        """
        Build the marker token for a result.

        ``created_at`` is accepted for symmetry with decode; the timestamp of
        the note that carries the token is what decode reports.
        """
        return f"<!-- [{MARKER_VERSION}: U{result.urgency_score}_A{result.anger_score}] -->"

    def parse_body(self, body: str) -> Optional[Tuple[int, int]]:
        """
        Extract ``(anger, urgency)`` from a note body.

        Returns:
            Scores, or None if no token is present

        Raises:
            MalformedMarkerError: a token is present but unparseable
        """
        if not body:
            return None

        match = _CURRENT_RE.search(body)
        if match:
            urgency_raw, anger_raw = match.group(1), match.group(2)
            return _parse_score(anger_raw), _parse_score(urgency_raw)

        legacy = _legacy_fields(body)
        if legacy:
            anger_raw, urgency_raw = legacy
            return _parse_score(anger_raw), _parse_score(urgency_raw)

        return None

    def contains_marker(self, body: str) -> bool:
        return bool(body) and bool(_CURRENT_RE.search(body) or _legacy_fields(body))

    def decode(self, threads: Sequence[Thread]) -> Optional[EscalationMarker]:
        """
        Recover the authoritative marker from a thread history.

        Only internal notes are considered. The latest note (by creation
        time, not list position) carrying a token wins. A malformed token in
        that note is treated as no marker.
        """
        candidates = [t for t in threads if t.is_note and self.contains_marker(t.body)]
        if not candidates:
            return None

        latest = max(candidates, key=lambda t: t.created_at)
        try:
            parsed = self.parse_body(latest.body)
        except MalformedMarkerError as e:
            logger.warning("Ignoring malformed marker in note %s: %s", latest.id, e)
            return None

        if parsed is None:
            return None
        anger, urgency = parsed
        return EscalationMarker(
            anger_score=anger,
            urgency_score=urgency,
            note_created_at=latest.created_at,
        )
