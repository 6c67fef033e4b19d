"""
Unit tests for SDK layer.

Tests the completion client: request building, timeout and response shaping.
"""

import asyncio
import time
from unittest.mock import Mock, patch

import pytest

from llm_gatekeeper.config.loader import DEFAULT_MODELS
from llm_gatekeeper.core.clock import ManualClock
from llm_gatekeeper.core.cost_tracker import CostTracker
from llm_gatekeeper.core.errors import InvalidJSONResponse, MalformedResponse, RequestTimeout
from llm_gatekeeper.core.guardrails import RequestGate
from llm_gatekeeper.core.models import CompletionRequest
from llm_gatekeeper.core.pricing import ModelTier
from llm_gatekeeper.sdk.openai_client import CompletionClient, JSON_SYSTEM_PROMPT

from fakes import make_response, make_transport


class TestCompletionClient:
    """Test CompletionClient against a mocked AsyncOpenAI transport."""

    def setup_method(self):
        """Set up cost tracking on a simulated clock."""
        self.clock = ManualClock()
        self.cost_tracker = CostTracker(RequestGate(self.clock))

    def _client(self, transport, timeout_seconds=30.0):
        return CompletionClient(
            DEFAULT_MODELS,
            self.cost_tracker,
            timeout_seconds=timeout_seconds,
            client=transport
        )

    @patch('llm_gatekeeper.sdk.openai_client.AsyncOpenAI')
    def test_init_default_transport(self, mock_openai_class):
        """Test the default transport leaves retries to the executor."""
        mock_openai_class.return_value = Mock()

        client = CompletionClient(DEFAULT_MODELS, self.cost_tracker)

        mock_openai_class.assert_called_once_with(max_retries=0)
        assert client.client is mock_openai_class.return_value
        assert client.timeout_seconds == 30.0

    def test_init_missing_model_mapping(self):
        """Test every tier needs a provider model."""
        with pytest.raises(ValueError, match="Missing provider model for tiers"):
            CompletionClient({ModelTier.FAST: "gpt-3.5-turbo"}, self.cost_tracker, client=Mock())

    @pytest.mark.asyncio
    async def test_call_success_shapes_result(self):
        """Test content, usage and cost are extracted from the response."""
        transport = make_transport(make_response("Paris", prompt_tokens=100, completion_tokens=50))
        client = self._client(transport)

        result = await client.call(CompletionRequest(prompt="Capital of France?", model="fast"))

        transport.chat.completions.create.assert_awaited_once_with(
            model="gpt-3.5-turbo",
            messages=[{"role": "user", "content": "Capital of France?"}]
        )
        assert result.content == "Paris"
        assert result.model == "gpt-3.5-turbo"
        assert result.cached is False
        assert result.usage.prompt_tokens == 100
        assert result.usage.completion_tokens == 50
        assert result.usage.total_tokens == 150
        assert result.usage.estimated_cost == pytest.approx(0.000125)

    @pytest.mark.asyncio
    async def test_call_smart_tier_cost(self):
        transport = make_transport(make_response(prompt_tokens=100, completion_tokens=50))
        client = self._client(transport)

        result = await client.call(CompletionRequest(prompt="Explain", model="smart"))

        assert result.model == "gpt-4-turbo"
        assert result.usage.estimated_cost == pytest.approx(0.0025)

    @pytest.mark.asyncio
    async def test_call_passes_optional_parameters(self):
        """Test system prompt, temperature and max_tokens are forwarded."""
        transport = make_transport()
        client = self._client(transport)

        await client.call(CompletionRequest(
            prompt="Hello",
            model="fast",
            system_prompt="Be brief",
            temperature=0.2,
            max_tokens=200
        ))

        transport.chat.completions.create.assert_awaited_once_with(
            model="gpt-3.5-turbo",
            messages=[
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "Hello"},
            ],
            temperature=0.2,
            max_tokens=200
        )

    @pytest.mark.asyncio
    async def test_call_does_not_record_spend(self):
        """Test pricing a call leaves the budget to the service."""
        client = self._client(make_transport())
        await client.call(CompletionRequest(prompt="Hello", model="smart"))
        assert self.cost_tracker.daily_spent == 0.0

    @pytest.mark.asyncio
    async def test_call_missing_usage_raises_error(self):
        """Test response without usage information raises error."""
        response = make_response()
        response.usage = None
        client = self._client(make_transport(response))

        with pytest.raises(MalformedResponse, match="usage information"):
            await client.call(CompletionRequest(prompt="Hello"))

    @pytest.mark.asyncio
    async def test_call_none_content_becomes_empty(self):
        client = self._client(make_transport(make_response(content=None)))
        result = await client.call(CompletionRequest(prompt="Hello"))
        assert result.content == ""

    @pytest.mark.asyncio
    async def test_call_provider_error_propagates(self):
        """Test transport errors reach the caller unchanged for classification."""
        client = self._client(make_transport(side_effect=ConnectionError("network down")))

        with pytest.raises(ConnectionError, match="network down"):
            await client.call(CompletionRequest(prompt="Hello"))

    @pytest.mark.asyncio
    async def test_call_timeout(self):
        """Test a slow provider call raises RequestTimeout near the timeout."""
        async def slow(**kwargs):
            await asyncio.sleep(5)
            return make_response()

        client = self._client(make_transport(side_effect=slow))

        started = time.monotonic()
        with pytest.raises(RequestTimeout, match="^Request timeout$"):
            await client.call(CompletionRequest(prompt="Hello", timeout_seconds=0.05))
        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_transport_timeout_is_not_request_timeout(self):
        """Test a TimeoutError from the transport surfaces as a connectivity error."""
        client = self._client(make_transport(side_effect=TimeoutError("socket read timed out")))

        with pytest.raises(ConnectionError, match="socket read timed out") as excinfo:
            await client.call(CompletionRequest(prompt="Hello", timeout_seconds=30))

        assert isinstance(excinfo.value.__cause__, TimeoutError)

    @pytest.mark.asyncio
    async def test_call_uses_default_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(5)

        client = self._client(make_transport(side_effect=slow), timeout_seconds=0.05)

        with pytest.raises(RequestTimeout):
            await client.call(CompletionRequest(prompt="Hello"))

    @pytest.mark.asyncio
    async def test_call_json_parses_content(self):
        """Test JSON mode sets response_format and parses content."""
        payload = '{"themes": ["trust", "cost"], "count": 2}'
        transport = make_transport(make_response(payload))
        client = self._client(transport)

        value = await client.call_json(CompletionRequest(prompt="List themes"))

        assert value == {"themes": ["trust", "cost"], "count": 2}
        kwargs = transport.chat.completions.create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": JSON_SYSTEM_PROMPT}

    @pytest.mark.asyncio
    async def test_call_json_invalid_content(self):
        """Test malformed JSON raises InvalidJSONResponse."""
        client = self._client(make_transport(make_response("not json {")))

        with pytest.raises(InvalidJSONResponse, match="^Invalid JSON response$"):
            await client.call_json(CompletionRequest(prompt="List themes"))

    def test_json_mode_keeps_caller_system_prompt(self):
        client = self._client(make_transport())
        params = client.build_params(
            CompletionRequest(prompt="p", system_prompt="You are terse", json_mode=True)
        )
        assert params["messages"][0]["content"].startswith("You are terse")
        assert JSON_SYSTEM_PROMPT in params["messages"][0]["content"]


class TestCompletionRequest:
    """Test request validation."""

    def test_empty_prompt_rejected(self):
        with pytest.raises(ValueError, match="prompt is required"):
            CompletionRequest(prompt="")
        with pytest.raises(ValueError, match="prompt is required"):
            CompletionRequest(prompt="   ")

    def test_prompt_too_long_rejected(self):
        with pytest.raises(ValueError, match="Prompt too long"):
            CompletionRequest(prompt="x" * 100_001)

    def test_unknown_model_rejected(self):
        with pytest.raises(ValueError, match="Unsupported model tier: medium"):
            CompletionRequest(prompt="Hello", model="medium")

    def test_model_string_coerced(self):
        assert CompletionRequest(prompt="Hello", model="smart").model is ModelTier.SMART

    def test_temperature_range(self):
        with pytest.raises(ValueError, match="Temperature must be between 0 and 2"):
            CompletionRequest(prompt="Hello", temperature=2.5)

    def test_max_tokens_range(self):
        with pytest.raises(ValueError, match="max_tokens must be between 1 and 16384"):
            CompletionRequest(prompt="Hello", max_tokens=0)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError, match="timeout_seconds must be > 0"):
            CompletionRequest(prompt="Hello", timeout_seconds=0)
