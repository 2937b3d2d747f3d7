"""
Usage Tracker

Token and cost accounting for AI scoring calls. Keeps per-run totals in
memory and, when given a path, monthly and all-time totals on disk.
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger("triage.common.usage_tracker")


@dataclass
class UsageTotals:
    """Persisted usage counters"""
    month: str = ""
    month_input_tokens: int = 0
    month_output_tokens: int = 0
    month_cost: float = 0.0
    all_time_input_tokens: int = 0
    all_time_output_tokens: int = 0
    all_time_cost: float = 0.0


def _current_month() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m")


class UsageTracker:
    """
    Accumulates token usage and dollar cost.

    Prices are per million tokens.
    """

    def __init__(
        self,
        input_cost_per_million: float = 3.0,
        output_cost_per_million: float = 15.0,
        usage_path: Optional[Path] = None,
    ):
        self._input_price = input_cost_per_million
        self._output_price = output_cost_per_million
        self._usage_path = usage_path
        self.calls = 0
        self.input_tokens = 0
        self.output_tokens = 0
        self.cost = 0.0

    def cost_of(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens / 1_000_000 * self._input_price
            + output_tokens / 1_000_000 * self._output_price
        )

    def track(self, input_tokens: int, output_tokens: int) -> float:
        """Record one call and return its cost"""
        cost = self.cost_of(input_tokens, output_tokens)
        self.calls += 1
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost += cost
        if self._usage_path is not None:
            self._persist(input_tokens, output_tokens, cost)
        return cost

    @staticmethod
    def usage_line(cost: float) -> str:
        return f"💰 AI Usage: ${cost:.4f} for this request"

    def summary(self) -> dict:
        return {
            "calls": self.calls,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": round(self.cost, 6),
        }

    def load_totals(self) -> UsageTotals:
        """Read persisted totals, resetting monthly counters on a new month"""
        month = _current_month()
        if self._usage_path is None or not self._usage_path.exists():
            return UsageTotals(month=month)
        try:
            with open(self._usage_path) as f:
                totals = UsageTotals(**json.load(f))
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Failed to read usage file %s: %s", self._usage_path, e)
            return UsageTotals(month=month)

        if totals.month != month:
            totals.month = month
            totals.month_input_tokens = 0
            totals.month_output_tokens = 0
            totals.month_cost = 0.0
        return totals

    def _persist(self, input_tokens: int, output_tokens: int, cost: float) -> None:
        totals = self.load_totals()
        totals.month_input_tokens += input_tokens
        totals.month_output_tokens += output_tokens
        totals.month_cost += cost
        totals.all_time_input_tokens += input_tokens
        totals.all_time_output_tokens += output_tokens
        totals.all_time_cost += cost
        try:
            self._usage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._usage_path, "w") as f:
                json.dump(asdict(totals), f, indent=2)
        except IOError as e:
            logger.info("Usage tracking not persisted (%s)", e)
