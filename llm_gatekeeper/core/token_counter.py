"""
Token usage value types.

Holds the token counts reported by the provider and the cost derived from them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Prompt and completion token counts of one provider call.

    Counts come straight from the provider response; nothing is estimated locally.
    """
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.prompt_tokens < 0:
            raise ValueError("prompt_tokens must be >= 0")
        if self.completion_tokens < 0:
            raise ValueError("completion_tokens must be >= 0")

    @property
    def total_tokens(self) -> int:
        """Prompt plus completion tokens."""
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class Usage(TokenUsage):
    """Token usage of a completion together with its estimated cost."""
    estimated_cost: float = 0.0

    def __post_init__(self):
        super().__post_init__()
        if self.estimated_cost < 0:
            raise ValueError("estimated_cost must be >= 0")
