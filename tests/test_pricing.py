"""
Unit tests for pricing calculations.

Tests cost accuracy, tier handling and the cost tracker.
"""

import pytest
from decimal import Decimal

from llm_gatekeeper.core.clock import ManualClock
from llm_gatekeeper.core.cost_tracker import CostTracker
from llm_gatekeeper.core.guardrails import RequestGate
from llm_gatekeeper.core.pricing import calculate_cost, ModelTier, PRICING_TABLE
from llm_gatekeeper.core.token_counter import TokenUsage, Usage


class TestTokenUsage:
    """Test TokenUsage and Usage dataclasses."""

    def test_total_tokens_calculation(self):
        """Verify total_tokens is computed correctly."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        assert usage.total_tokens == 150

    def test_zero_tokens(self):
        """Verify zero token handling."""
        usage = TokenUsage(prompt_tokens=0, completion_tokens=0)
        assert usage.total_tokens == 0

    def test_negative_tokens_rejected(self):
        """Verify negative token counts are invalid."""
        with pytest.raises(ValueError, match="prompt_tokens must be >= 0"):
            TokenUsage(prompt_tokens=-1, completion_tokens=0)

    def test_usage_carries_cost(self):
        """Verify Usage keeps the token invariant and cost."""
        usage = Usage(prompt_tokens=10, completion_tokens=5, estimated_cost=0.25)
        assert usage.total_tokens == 15
        assert usage.estimated_cost == 0.25

    def test_usage_negative_cost_rejected(self):
        """Verify estimated cost cannot be negative."""
        with pytest.raises(ValueError, match="estimated_cost must be >= 0"):
            Usage(prompt_tokens=1, completion_tokens=1, estimated_cost=-0.01)


class TestPricingTable:
    """Test pricing table functionality."""

    def test_fast_tier_rates(self):
        """Verify pricing for the fast tier."""
        pricing = PRICING_TABLE.get_pricing(ModelTier.FAST)
        assert pricing.prompt_cost_per_1k == Decimal("0.0005")
        assert pricing.completion_cost_per_1k == Decimal("0.0015")

    def test_smart_tier_rates(self):
        """Verify pricing for the smart tier."""
        pricing = PRICING_TABLE.get_pricing("smart")
        assert pricing.prompt_cost_per_1k == Decimal("0.01")
        assert pricing.completion_cost_per_1k == Decimal("0.03")

    def test_unsupported_tier_raises_error(self):
        """Verify error for unknown tiers."""
        with pytest.raises(ValueError, match="Unsupported model tier: gpt-4"):
            PRICING_TABLE.get_pricing("gpt-4")

    def test_tier_parse_is_case_insensitive(self):
        assert ModelTier.parse("FAST") is ModelTier.FAST
        assert ModelTier.parse(ModelTier.SMART) is ModelTier.SMART


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def test_fast_cost(self):
        """Verify cost for the fast tier."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        cost = calculate_cost(ModelTier.FAST, usage)
        # Prompt: 100/1000 * $0.0005 = $0.00005
        # Completion: 50/1000 * $0.0015 = $0.000075
        # Total: $0.000125
        assert cost == pytest.approx(0.000125)
        assert cost == pytest.approx(0.00013, abs=1e-5)

    def test_smart_cost(self):
        """Verify cost for the smart tier."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        cost = calculate_cost(ModelTier.SMART, usage)
        # Prompt: 100/1000 * $0.01 = $0.001
        # Completion: 50/1000 * $0.03 = $0.0015
        # Total: $0.0025
        assert cost == pytest.approx(0.0025)

    def test_cost_is_not_rounded(self):
        """Verify sub-cent costs are kept, not rounded to cents."""
        usage = TokenUsage(prompt_tokens=1, completion_tokens=0)
        assert calculate_cost(ModelTier.FAST, usage) == pytest.approx(0.0000005)

    def test_large_token_counts(self):
        """Verify calculation with very large token counts."""
        usage = TokenUsage(prompt_tokens=1_000_000, completion_tokens=500_000)
        # 1000 * $0.01 + 500 * $0.03 = $10 + $15
        assert calculate_cost(ModelTier.SMART, usage) == pytest.approx(25.0)

    def test_zero_tokens_cost(self):
        """Verify cost calculation with zero tokens."""
        usage = TokenUsage(prompt_tokens=0, completion_tokens=0)
        assert calculate_cost(ModelTier.SMART, usage) == 0.0

    def test_unknown_tier_error(self):
        """Verify error handling for unknown tiers."""
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        with pytest.raises(ValueError, match="Unsupported model tier: medium"):
            calculate_cost("medium", usage)


class TestCostTracker:
    """Test cost tracker accumulation into the daily budget."""

    def setup_method(self):
        """Set up a gate and tracker on a simulated clock."""
        self.clock = ManualClock()
        self.gate = RequestGate(self.clock)
        self.tracker = CostTracker(self.gate)

    def test_estimate_matches_pricing(self):
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50)
        assert self.tracker.estimate_cost(usage, ModelTier.SMART) == pytest.approx(0.0025)

    def test_record_accumulates_daily_spend(self):
        """Verify recorded costs add up in the gate's budget."""
        self.tracker.record(0.5)
        self.tracker.record(0.25)
        assert self.tracker.daily_spent == pytest.approx(0.75)
        assert self.gate.budget.daily_spent == pytest.approx(0.75)

    def test_record_negative_cost_rejected(self):
        with pytest.raises(ValueError, match="cost must be >= 0"):
            self.tracker.record(-1.0)
