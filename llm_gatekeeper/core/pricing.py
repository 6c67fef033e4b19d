"""
Pricing calculations and rate management.

Maps each semantic model tier to its per-1K token rates and computes the
cost of a completion from its token usage.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Union

from .token_counter import TokenUsage


class ModelTier(str, Enum):
    """Cost tier: FAST for routine tasks, SMART for complex reasoning."""
    FAST = "fast"
    SMART = "smart"

    @classmethod
    def parse(cls, value: Union["ModelTier", str]) -> "ModelTier":
        """Coerce a tier name into a ModelTier.

        Raises:
            ValueError: If the value is not a known tier
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unsupported model tier: {value}")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model tier."""
    prompt_cost_per_1k: Decimal  # Cost per 1K prompt tokens
    completion_cost_per_1k: Decimal  # Cost per 1K completion tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported model tiers."""
    prices: Dict[ModelTier, ModelPricing]

    def get_pricing(self, model: Union[ModelTier, str]) -> ModelPricing:
        """Get pricing for a specific model tier.

        Args:
            model: Model tier or tier name

        Returns:
            ModelPricing for the tier

        Raises:
            ValueError: If the tier is not supported
        """
        tier = ModelTier.parse(model)
        if tier not in self.prices:
            raise ValueError(f"Unsupported model tier: {model}")
        return self.prices[tier]


# Fixed pricing table, immutable for the process lifetime
PRICING_TABLE = PricingTable({
    ModelTier.FAST: ModelPricing(
        prompt_cost_per_1k=Decimal("0.0005"),
        completion_cost_per_1k=Decimal("0.0015")
    ),
    ModelTier.SMART: ModelPricing(
        prompt_cost_per_1k=Decimal("0.01"),
        completion_cost_per_1k=Decimal("0.03")
    ),
})


def calculate_cost(
    model: Union[ModelTier, str],
    usage: TokenUsage,
    table: PricingTable = PRICING_TABLE
) -> float:
    """Calculate total cost for model usage.

    Args:
        model: Model tier
        usage: Token usage data
        table: Pricing table to read rates from

    Returns:
        Total cost, unrounded

    Raises:
        ValueError: If the tier is not supported
    """
    pricing = table.get_pricing(model)

    # Calculate prompt cost: (tokens / 1000) * cost_per_1k
    prompt_cost = (Decimal(usage.prompt_tokens) / Decimal("1000")) * pricing.prompt_cost_per_1k

    # Calculate completion cost: (tokens / 1000) * cost_per_1k
    completion_cost = (Decimal(usage.completion_tokens) / Decimal("1000")) * pricing.completion_cost_per_1k

    return float(prompt_cost + completion_cost)
