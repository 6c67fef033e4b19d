"""
AI service facade.

Composes the request gate, response cache, cost tracker, retry executor
and completion client into the two public operations. One shared instance
serves the process; tests construct fresh instances directly.
"""

import os
import uuid
from dataclasses import replace
from typing import Any, Callable, Optional, Union

import structlog
from openai import AsyncOpenAI

from ..config.loader import GatekeeperConfig, load_config
from ..core.cache import ResponseCache, make_cache_key
from ..core.clock import Clock, SystemClock
from ..core.cost_tracker import CostTracker
from ..core.errors import AIServiceError
from ..core.guardrails import BudgetStatus, RequestGate
from ..core.models import CompletionRequest, CompletionResult, ServiceMetrics
from ..core.pricing import PRICING_TABLE, ModelTier, PricingTable
from ..core.retry import RetryExecutor
from .openai_client import CompletionClient

logger = structlog.get_logger(__name__)

CONFIG_ENV_VAR = "LLM_GATEKEEPER_CONFIG"


class AIService:
    """Throttled, budgeted, cached and retried access to the completion API.

    All gate and cache work for a call runs before its first await, so on a
    single event loop admission order is call-issuance order.
    """

    def __init__(
        self,
        config: Optional[GatekeeperConfig] = None,
        clock: Optional[Clock] = None,
        client: Optional[AsyncOpenAI] = None,
        pricing: PricingTable = PRICING_TABLE
    ):
        """Initialize the service.

        Args:
            config: Service configuration (defaults apply when omitted)
            clock: Time source (defaults to the system clock)
            client: Provider transport (defaults to AsyncOpenAI from environment)
            pricing: Pricing table used for cost estimates
        """
        self.config = config or GatekeeperConfig()
        self.clock = clock or SystemClock()

        self.gate = RequestGate(
            self.clock,
            max_requests=self.config.rate_limit.max_requests,
            window_seconds=self.config.rate_limit.window_seconds,
            daily_limit=self.config.budget.daily_limit,
            warning_ratio=self.config.budget.warning_ratio,
            critical_ratio=self.config.budget.critical_ratio
        )
        self.cache = ResponseCache(
            self.clock,
            ttl_seconds=self.config.cache.ttl_seconds,
            max_entries=self.config.cache.max_entries
        )
        self.cost_tracker = CostTracker(self.gate, pricing)
        self.retry = RetryExecutor(
            self.clock,
            max_attempts=self.config.retry.max_attempts,
            base_delay_seconds=self.config.retry.base_delay_seconds
        )
        self.client = CompletionClient(
            self.config.models,
            self.cost_tracker,
            timeout_seconds=self.config.timeout_seconds,
            client=client
        )

        self._total_requests = 0
        self._successes = 0
        self._failures = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._total_cost = 0.0

    async def generate_completion(self, request: CompletionRequest) -> CompletionResult:
        """Run one request through cache, budget, rate limit and retry.

        Cache hits return immediately: they consume no quota and no budget.

        Raises:
            BudgetExceeded: Daily spend reached the limit
            RateLimitExceeded: Request quota for the window is used up
            ProviderRateLimited, ProviderRequestFailed, RequestTimeout,
            ServiceUnavailable, MalformedResponse: From the provider call
        """
        return await self._run(request)

    async def generate_json(
        self,
        prompt: str,
        model: Union[ModelTier, str] = ModelTier.FAST,
        **options: Any
    ) -> Any:
        """Run a JSON-mode request and return the parsed content.

        The spend of a completion is recorded even when its content fails to
        parse; unparseable content is never cached. That is why this runs the
        plain ``call`` and applies ``CompletionClient.parse_json`` after billing
        instead of delegating to ``call_json``, which would drop the priced
        usage along with the bad content.

        Raises:
            InvalidJSONResponse: If the content is not valid JSON
            Any error raised by generate_completion
        """
        request = CompletionRequest(prompt=prompt, model=model, json_mode=True, **options)
        return await self._run(request, parse=self.client.parse_json)

    async def _run(
        self,
        request: CompletionRequest,
        parse: Optional[Callable[[CompletionResult], Any]] = None
    ) -> Any:
        log = logger.bind(
            request_id=uuid.uuid4().hex[:8],
            model=request.model.value,
            json_mode=request.json_mode
        )
        self._total_requests += 1

        key = make_cache_key(request) if request.cache else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                self._cache_hits += 1
                self._successes += 1
                log.debug("cache_hit", key=key)
                cached = replace(cached, cached=True)
                return parse(cached) if parse else cached
            self._cache_misses += 1

        try:
            self.gate.check_budget()
            self.gate.check_rate_limit()
            result = await self.retry.execute(lambda: self.client.call(request))
        except AIServiceError as e:
            self._record_failure(log, e)
            raise

        cost = result.usage.estimated_cost
        self.cost_tracker.record(cost)
        self._total_cost += cost
        log.info(
            "completion_succeeded",
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            cost=cost
        )

        value: Any = result
        if parse is not None:
            try:
                value = parse(result)
            except AIServiceError as e:
                self._record_failure(log, e)
                raise

        self._successes += 1
        if key is not None:
            self.cache.set(key, result)
        return value

    def _record_failure(self, log: Any, error: AIServiceError) -> None:
        self._failures += 1
        log.warning("completion_failed", error=type(error).__name__, message=str(error))

    def get_metrics(self) -> ServiceMetrics:
        """Get request, cache and cost counters."""
        return ServiceMetrics(
            total_requests=self._total_requests,
            successes=self._successes,
            failures=self._failures,
            cache_hits=self._cache_hits,
            cache_misses=self._cache_misses,
            cache_size=len(self.cache),
            total_cost=self._total_cost,
            daily_spent=self.cost_tracker.daily_spent
        )

    def budget_status(self) -> BudgetStatus:
        return self.gate.budget_status()

    def clear_cache(self) -> None:
        """Drop every cached response and reset cache counters."""
        self.cache.clear()
        self._cache_hits = 0
        self._cache_misses = 0

    def reset_budget(self) -> None:
        """Clear today's spend and the rate window."""
        self.gate.reset()
        logger.info("budget_reset")


# Process-wide service instance
_default_service: Optional[AIService] = None


def get_ai_service(config: Optional[GatekeeperConfig] = None) -> AIService:
    """Get the shared AIService, building it on first use.

    Without an explicit config the file named by LLM_GATEKEEPER_CONFIG is
    loaded when set, otherwise defaults apply. The config only matters on
    the first call.

    Returns:
        The process-wide AIService
    """
    global _default_service
    if _default_service is None:
        if config is None and os.environ.get(CONFIG_ENV_VAR):
            config = load_config(os.environ[CONFIG_ENV_VAR])
        _default_service = AIService(config)
    return _default_service


def reset_ai_service() -> None:
    """Forget the shared instance so the next get_ai_service builds a fresh one."""
    global _default_service
    _default_service = None
