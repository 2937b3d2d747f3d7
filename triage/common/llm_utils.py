"""Helpers for turning LLM output into typed values."""

from __future__ import annotations

import json
import math
from typing import Any, List, Optional


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Handles markdown code fences and prose around the object. Returns an
    empty dict when nothing parses.
    """
    if not raw:
        return {}

    text = raw.strip()
    if text.startswith("```"):
        text = "\n".join(l for l in text.split("\n") if not l.strip().startswith("```"))

    candidates = [text]
    start, end = text.find("{"), text.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(text[start:end])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return {}


def as_score(value: Any) -> Optional[int]:
    """Coerce a 0-100 score; None if the value is not numeric"""
    if isinstance(value, bool):
        return None
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None
    return max(0, min(100, number))


def as_fraction(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return max(0.0, min(1.0, number))


def as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
