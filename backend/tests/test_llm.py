"""Tests for the OpenAI wrapper: JSON parsing, error wrapping, retries, health check.

The AsyncOpenAI client is replaced by MagicMock/AsyncMock objects.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from app.config import Settings
from app.core.errors import CircuitOpenError, ErrorCode, UpstreamAIError
from app.core.llm import LLMClient, build_retry_policy, create_llm_client, parse_json_content
from app.core.retry import CircuitBreaker, CircuitState, RetryPolicy

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(create, breaker=None):
    openai_client = MagicMock()
    openai_client.chat.completions.create = create
    breaker = breaker or CircuitBreaker(
        name="openai",
        retry_policy=RetryPolicy(max_retries=2, timeout=0),
    )
    return LLMClient(openai_client, "gpt-4o", breaker)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("app.core.retry.sleep", new_callable=AsyncMock) as mocked:
        yield mocked


class TestParseJsonContent:

    def test_plain_object(self):
        assert parse_json_content('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}

    def test_object_inside_prose(self):
        assert parse_json_content('Here you go: {"a": {"b": 2}} hope it helps') == {"a": {"b": 2}}

    def test_array_is_rejected(self):
        assert parse_json_content("[1, 2, 3]") is None

    def test_garbage(self):
        assert parse_json_content("not json at all") is None


@pytest.mark.asyncio
class TestCallJson:

    async def test_returns_parsed_object(self):
        create = AsyncMock(return_value=_completion(json.dumps({"ok": True})))
        client = _client(create)

        assert await client.call_json("prompt", system_prompt="system") == {"ok": True}

        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "prompt"},
        ]

    async def test_system_prompt_is_optional(self):
        create = AsyncMock(return_value=_completion("{}"))
        await _client(create).call_json("prompt")
        assert create.await_args.kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    async def test_missing_api_key(self):
        client = LLMClient(None, "gpt-4o", CircuitBreaker())
        with pytest.raises(UpstreamAIError) as exc_info:
            await client.call_json("prompt")
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR

    async def test_empty_content(self):
        client = _client(AsyncMock(return_value=_completion(None)))
        with pytest.raises(UpstreamAIError) as exc_info:
            await client.call_json("prompt")
        assert exc_info.value.code == ErrorCode.OPENAI_INVALID_RESPONSE

    async def test_invalid_json(self):
        client = _client(AsyncMock(return_value=_completion("Sorry, I can't do that.")))
        with pytest.raises(UpstreamAIError) as exc_info:
            await client.call_json("prompt")
        assert exc_info.value.code == ErrorCode.OPENAI_INVALID_RESPONSE
        assert exc_info.value.details["content_preview"].startswith("Sorry")

    async def test_server_errors_are_retried_and_counted(self):
        server_error = openai.InternalServerError(
            "boom", response=httpx.Response(500, request=_REQUEST), body=None,
        )
        create = AsyncMock(side_effect=[server_error, _completion('{"ok": 1}')])
        client = _client(create)
        client.breaker.retry_policy = RetryPolicy(max_retries=2, timeout=0, on_retry=client.record_retry)

        assert await client.call_json("prompt") == {"ok": 1}
        assert create.await_count == 2
        assert client.retry_count == 1

    async def test_rate_limit_exhausted_is_wrapped(self):
        rate_limited = openai.RateLimitError(
            "Rate limit reached", response=httpx.Response(429, request=_REQUEST), body=None,
        )
        create = AsyncMock(side_effect=rate_limited)
        client = _client(create)

        with pytest.raises(UpstreamAIError) as exc_info:
            await client.call_json("prompt")
        assert exc_info.value.code == ErrorCode.OPENAI_RATE_LIMIT
        assert exc_info.value.details["kind"] == "rate_limit"
        assert exc_info.value.__cause__ is rate_limited
        assert create.await_count == 3

    async def test_bad_request_not_retried(self):
        bad_request = openai.BadRequestError(
            "invalid model", response=httpx.Response(400, request=_REQUEST), body=None,
        )
        create = AsyncMock(side_effect=bad_request)
        with pytest.raises(UpstreamAIError) as exc_info:
            await _client(create).call_json("prompt")
        assert exc_info.value.code == ErrorCode.OPENAI_BAD_REQUEST
        create.assert_awaited_once()

    async def test_open_circuit_short_circuits(self):
        failure = openai.APIConnectionError(request=_REQUEST)
        create = AsyncMock(side_effect=failure)
        breaker = CircuitBreaker(
            name="openai",
            failure_threshold=1,
            retry_policy=RetryPolicy(max_retries=0, timeout=0),
        )
        client = _client(create, breaker)

        with pytest.raises(UpstreamAIError):
            await client.call_json("prompt")
        assert breaker.get_state().state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            await client.call_json("prompt")
        create.assert_awaited_once()


@pytest.mark.asyncio
class TestHealthCheck:

    async def test_healthy(self):
        client = _client(AsyncMock())
        client.openai_client.models.list = AsyncMock(return_value=[])
        assert await client.health_check() is True

    async def test_upstream_failure(self):
        client = _client(AsyncMock())
        client.openai_client.models.list = AsyncMock(side_effect=openai.APIConnectionError(request=_REQUEST))
        assert await client.health_check() is False

    async def test_without_key(self):
        assert await LLMClient(None, "gpt-4o", CircuitBreaker()).health_check() is False


class TestFactory:

    def test_builds_client_from_settings(self):
        settings = Settings(
            openai_api_key="sk-test",
            openai_model="gpt-4o-mini",
            retry_max_retries=5,
            breaker_failure_threshold=7,
            _env_file=None,
        )
        client = create_llm_client(settings)
        assert client.openai_client is not None
        assert client.model == "gpt-4o-mini"
        assert client.breaker.failure_threshold == 7
        assert client.breaker.retry_policy.max_retries == 5
        assert client.breaker.retry_policy.on_retry == client.record_retry

    def test_no_key_means_no_openai_client(self):
        client = create_llm_client(Settings(openai_api_key="", _env_file=None))
        assert client.openai_client is None

    def test_retry_policy_mirrors_settings(self):
        settings = Settings(retry_initial_delay=0.5, retry_timeout=12, _env_file=None)
        policy = build_retry_policy(settings)
        assert policy.initial_delay == 0.5
        assert policy.timeout == 12
        assert policy.on_retry is None
