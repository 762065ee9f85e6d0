"""OpenAI client behind a retry policy and a circuit breaker.

The client is built once at start-up (``create_llm_client``), stored on
``app.state`` and handed to routes through the ``get_llm_client``
dependency, so tests can swap in a fake without touching module globals.
SDK-level retries are disabled; ``app.core.retry`` owns retrying.
"""

import json
import re

import httpx
import openai as openai_errors
from fastapi import Request
from openai import AsyncOpenAI

from app.config import Settings
from app.core.constants import LLM_HEALTH_CHECK_TIMEOUT
from app.core.errors import (
    AppError,
    ErrorCode,
    UpstreamAIError,
    classify_error,
    upstream_error_code,
)
from app.core.logger import logger
from app.core.retry import CircuitBreaker, RetryPolicy, with_timeout

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_OBJECT = re.compile(r"(\{[\s\S]*\})")


def parse_json_content(content: str) -> dict | None:
    """Parse a JSON object, also when wrapped in a code fence or prose."""
    candidates = [content]
    for pattern in (_FENCED_JSON, _BARE_OBJECT):
        match = pattern.search(content)
        if match:
            candidates.append(match.group(1))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class LLMClient:
    """JSON-mode chat completions against one OpenAI model."""

    def __init__(
        self,
        openai_client: AsyncOpenAI | None,
        model: str,
        breaker: CircuitBreaker,
    ):
        self.openai_client = openai_client
        self.model = model
        self.breaker = breaker
        self.retry_count = 0

    def record_retry(self, attempt: int, error: BaseException) -> None:
        """``on_retry`` hook — counts retries for the health endpoint."""
        self.retry_count += 1

    async def call_json(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: float = 0.2,
        max_tokens: int = 4000,
    ) -> dict:
        """Make a chat completion that must return a JSON object.

        Raises:
            UpstreamAIError: missing key, upstream failure (classified code),
                or an empty / non-JSON answer.
            CircuitOpenError: the breaker is rejecting calls.
        """
        if self.openai_client is None:
            raise UpstreamAIError(
                ErrorCode.CONFIGURATION_ERROR,
                "OPENAI_API_KEY is not configured",
            )

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        async def request_completion():
            return await self.openai_client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )

        try:
            response = await self.breaker.execute(request_completion)
        except AppError:
            raise
        except (openai_errors.APIError, httpx.HTTPError) as e:
            kind = classify_error(e)
            raise UpstreamAIError(
                upstream_error_code(kind),
                str(e) or "OpenAI API call failed",
                details={"kind": kind.value, "error_type": type(e).__name__},
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamAIError(ErrorCode.OPENAI_INVALID_RESPONSE, "OpenAI returned no content")

        parsed = parse_json_content(content)
        if parsed is None:
            logger.error(f"LLM returned invalid JSON: {content[:200]}")
            raise UpstreamAIError(
                ErrorCode.OPENAI_INVALID_RESPONSE,
                "OpenAI response is not valid JSON",
                details={"content_preview": content[:200]},
            )
        return parsed

    async def health_check(self) -> bool:
        """True if the models endpoint answers within the health-check timeout."""
        if self.openai_client is None:
            return False
        try:
            await with_timeout(self.openai_client.models.list(), LLM_HEALTH_CHECK_TIMEOUT, cancel_on_timeout=True)
            return True
        except (openai_errors.APIError, httpx.HTTPError, AppError) as e:
            logger.warning(f"OpenAI health check failed: {e}")
            return False


def build_retry_policy(settings: Settings, on_retry=None) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.retry_max_retries,
        initial_delay=settings.retry_initial_delay,
        max_delay=settings.retry_max_delay,
        backoff_factor=settings.retry_backoff_factor,
        timeout=settings.retry_timeout,
        on_retry=on_retry,
    )


def create_llm_client(settings: Settings) -> LLMClient:
    openai_client = None
    if settings.openai_api_key:
        openai_client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            max_retries=0,
            timeout=settings.openai_timeout,
        )
    else:
        logger.warning("OPENAI_API_KEY not set — CV parsing will fall back to form data only")

    breaker = CircuitBreaker(
        failure_threshold=settings.breaker_failure_threshold,
        reset_timeout=settings.breaker_reset_timeout,
        name="openai",
    )
    client = LLMClient(openai_client, settings.openai_model, breaker)
    breaker.retry_policy = build_retry_policy(settings, on_retry=client.record_retry)
    return client


def get_llm_client(request: Request) -> LLMClient:
    """FastAPI dependency — the client created at start-up."""
    return request.app.state.llm_client
