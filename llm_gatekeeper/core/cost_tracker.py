"""
Cost tracking for billed completions.
"""

from typing import Union

import structlog

from .guardrails import RequestGate
from .pricing import PRICING_TABLE, ModelTier, PricingTable, calculate_cost
from .token_counter import TokenUsage

logger = structlog.get_logger(__name__)


class CostTracker:
    """Prices token usage and accumulates spend into the gate's daily budget."""

    def __init__(self, gate: RequestGate, table: PricingTable = PRICING_TABLE):
        self.gate = gate
        self.table = table

    def estimate_cost(self, usage: TokenUsage, model: Union[ModelTier, str]) -> float:
        """Cost of a completion: per-1K rates applied to prompt and completion tokens."""
        return calculate_cost(model, usage, self.table)

    def record(self, cost: float) -> None:
        """Add the cost of a billable (non-cache-hit) completion to today's spend.

        Raises:
            ValueError: If cost is negative
        """
        self.gate.record_spend(cost)
        logger.debug(
            "cost_recorded",
            cost=cost,
            daily_spent=round(self.gate.budget.daily_spent, 6)
        )

    @property
    def daily_spent(self) -> float:
        return self.gate.budget.daily_spent
