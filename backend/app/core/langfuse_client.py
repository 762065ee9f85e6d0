"""Langfuse prompt management + tracing.

Prompts are versioned in Langfuse and fetched at runtime; callers fall back
to ``app.core.fallback_prompts`` when Langfuse is not configured or down.

Exports:
- observe: tracing decorator (re-exported from langfuse)
- get_prompt_messages: fetch + compile a chat prompt
- flush: flush pending traces at the end of a request

Env vars: LANGFUSE_PUBLIC_KEY, LANGFUSE_SECRET_KEY, LANGFUSE_HOST
"""

import threading

import httpx
from langfuse import Langfuse, observe
from langfuse.api.core.api_error import ApiError

from app.config import load_settings
from app.core.logger import logger

__all__ = ["observe", "get_prompt_messages", "flush"]

_client: Langfuse | None = None
_initialized = False
_lock = threading.Lock()


def _get_client() -> Langfuse | None:
    """Create the Langfuse client on first use. None when no keys are configured."""
    global _client, _initialized

    if _initialized:
        return _client

    with _lock:
        if _initialized:
            return _client

        _initialized = True
        settings = load_settings()

        if not settings.langfuse_public_key or not settings.langfuse_secret_key:
            logger.info("Langfuse: no keys configured — using embedded prompts")
            return None

        _client = Langfuse(
            public_key=settings.langfuse_public_key,
            secret_key=settings.langfuse_secret_key,
            host=settings.langfuse_host,
        )
        logger.info("Langfuse: client initialized")
        return _client


def get_prompt_messages(
    prompt_name: str,
    variables: dict,
) -> tuple[str, str, dict] | None:
    """Fetch a chat prompt from Langfuse and compile it with ``variables``.

    Returns:
        (system_content, user_content, config) or None if unavailable.
    """
    client = _get_client()
    if not client:
        return None

    # Unreachable host, unseeded prompt (404) or bad variables: caller uses the embedded copy
    try:
        prompt = client.get_prompt(prompt_name, type="chat", cache_ttl_seconds=300)
        messages = prompt.compile(**variables)
    except (httpx.HTTPError, ApiError, ValueError, KeyError, TypeError, RuntimeError) as e:
        logger.warning(f"Langfuse: failed to fetch prompt '{prompt_name}': {e}")
        return None

    by_role = {msg.get("role", ""): msg.get("content", "") for msg in messages}
    logger.debug(f"Langfuse: fetched prompt '{prompt_name}' (v{prompt.version})")
    return by_role.get("system", ""), by_role.get("user", ""), prompt.config or {}


def flush() -> None:
    """Flush pending Langfuse traces."""
    client = _get_client()
    if client:
        client.flush()
        logger.debug("Langfuse: traces flushed")
