"""
Completion client over the OpenAI chat completions API.

Builds the provider request, enforces the per-request timeout and shapes
the raw response into a CompletionResult priced by the cost tracker.
"""

import asyncio
import json
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

import structlog
from openai import AsyncOpenAI

from ..core.cost_tracker import CostTracker
from ..core.errors import InvalidJSONResponse, MalformedResponse, RequestTimeout
from ..core.models import CompletionRequest, CompletionResult
from ..core.pricing import ModelTier
from ..core.token_counter import TokenUsage, Usage

logger = structlog.get_logger(__name__)

JSON_SYSTEM_PROMPT = "Respond with a single valid JSON value and nothing else."


class CompletionClient:
    """Issues one provider call per ``call`` and shapes the result.

    The underlying AsyncOpenAI client is built with ``max_retries=0``:
    retries belong to RetryExecutor, never to the transport.
    """

    def __init__(
        self,
        models: Mapping[ModelTier, str],
        cost_tracker: CostTracker,
        timeout_seconds: float = 30.0,
        client: Optional[AsyncOpenAI] = None
    ):
        """Initialize completion client.

        Args:
            models: Provider model id per tier (required)
            cost_tracker: Prices token usage (required)
            timeout_seconds: Default timeout for requests that set none
            client: Transport to use (defaults to AsyncOpenAI from environment)

        Raises:
            ValueError: If a tier has no model id or the timeout is not positive
        """
        missing = [tier.value for tier in ModelTier if not models.get(tier)]
        if missing:
            raise ValueError(f"Missing provider model for tiers: {missing}")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.models = dict(models)
        self.cost_tracker = cost_tracker
        self.timeout_seconds = timeout_seconds
        self.client = client if client is not None else AsyncOpenAI(max_retries=0)

    def build_params(self, request: CompletionRequest) -> Dict[str, Any]:
        """Provider request parameters for a completion request."""
        messages: List[Dict[str, str]] = []
        system_prompt = request.system_prompt
        if request.json_mode:
            system_prompt = f"{system_prompt}\n\n{JSON_SYSTEM_PROMPT}" if system_prompt else JSON_SYSTEM_PROMPT
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        params: Dict[str, Any] = {
            "model": self.models[request.model],
            "messages": messages,
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.json_mode:
            params["response_format"] = {"type": "json_object"}
        return params

    async def call(self, request: CompletionRequest) -> CompletionResult:
        """Make one provider call and shape its response.

        Args:
            request: Completion request

        Returns:
            Content and priced usage

        Raises:
            RequestTimeout: If the provider does not answer within the timeout
            MalformedResponse: If the response lacks choices or usage
            Provider and connectivity errors: Propagated for classification
        """
        params = self.build_params(request)
        timeout = request.timeout_seconds or self.timeout_seconds

        try:
            response = await asyncio.wait_for(self._create(params), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("completion_timeout", model=params["model"], timeout=timeout)
            raise RequestTimeout()

        return self._shape(response, request.model, params["model"])

    async def _create(self, params: Dict[str, Any]) -> Any:
        # A TimeoutError out of the transport (socket reads and the like) is a
        # connectivity failure, not our request timeout.
        try:
            return await self.client.chat.completions.create(**params)
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise ConnectionError(f"Transport timed out: {e}") from e

    async def call_json(self, request: CompletionRequest) -> Any:
        """Make a JSON-mode call and parse its content."""
        if not request.json_mode:
            request = replace(request, json_mode=True)
        result = await self.call(request)
        return self.parse_json(result)

    @staticmethod
    def parse_json(result: CompletionResult) -> Any:
        """Parse completion content as JSON.

        Raises:
            InvalidJSONResponse: If the content is not valid JSON
        """
        try:
            return json.loads(result.content)
        except (TypeError, ValueError) as e:
            raise InvalidJSONResponse() from e

    def _shape(self, response: Any, tier: ModelTier, model_id: str) -> CompletionResult:
        choices = getattr(response, "choices", None)
        usage = getattr(response, "usage", None)
        if not choices or not usage:
            raise MalformedResponse()

        content = choices[0].message.content or ""
        tokens = TokenUsage(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens
        )
        estimated_cost = self.cost_tracker.estimate_cost(tokens, tier)

        return CompletionResult(
            content=content,
            usage=Usage(
                prompt_tokens=tokens.prompt_tokens,
                completion_tokens=tokens.completion_tokens,
                estimated_cost=estimated_cost
            ),
            model=model_id
        )
