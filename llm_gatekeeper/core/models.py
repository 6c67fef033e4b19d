"""
Request, result and metrics data structures for the AI service.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .pricing import ModelTier
from .token_counter import Usage

MAX_PROMPT_LENGTH = 100_000
MAX_SYSTEM_PROMPT_LENGTH = 10_000
MIN_TOKENS_LIMIT = 1
MAX_TOKENS_LIMIT = 16384


@dataclass(frozen=True)
class CompletionRequest:
    """A single completion request.

    ``timeout_seconds`` of None means the service default applies.
    Optional generation options take part in the cache key only when set.
    """
    prompt: str
    model: Union[ModelTier, str] = ModelTier.FAST
    cache: bool = True
    timeout_seconds: Optional[float] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    json_mode: bool = False

    def __post_init__(self):
        """Validate the request and coerce the model tier."""
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt is required and cannot be empty")
        if len(self.prompt) > MAX_PROMPT_LENGTH:
            raise ValueError(
                f"Prompt too long: {len(self.prompt)} chars exceeds maximum of {MAX_PROMPT_LENGTH}"
            )
        if self.system_prompt is not None and len(self.system_prompt) > MAX_SYSTEM_PROMPT_LENGTH:
            raise ValueError(
                f"System prompt too long: {len(self.system_prompt)} chars exceeds "
                f"maximum of {MAX_SYSTEM_PROMPT_LENGTH}"
            )
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise ValueError(f"Temperature must be between 0 and 2, got: {self.temperature}")
        if self.max_tokens is not None and not MIN_TOKENS_LIMIT <= self.max_tokens <= MAX_TOKENS_LIMIT:
            raise ValueError(
                f"max_tokens must be between {MIN_TOKENS_LIMIT} and {MAX_TOKENS_LIMIT}, "
                f"got: {self.max_tokens}"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        object.__setattr__(self, "model", ModelTier.parse(self.model))


@dataclass(frozen=True)
class CompletionResult:
    """Shaped provider response."""
    content: str
    usage: Usage
    model: str = ""  # Concrete provider model id
    cached: bool = False


@dataclass(frozen=True)
class ServiceMetrics:
    """Counters for one AIService instance."""
    total_requests: int
    successes: int
    failures: int
    cache_hits: int
    cache_misses: int
    cache_size: int
    total_cost: float
    daily_spent: float

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups else 0.0
