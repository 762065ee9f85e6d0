"""Tests for Langfuse prompt fetching and its fallback to embedded prompts."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
import pytest
from langfuse.api.core.api_error import ApiError

from app.core import langfuse_client
from app.core.fallback_prompts import CV_PARSE_PROMPT
from tests.conftest import StubLangfuse, StubPrompt

CHAT_PROMPT = StubPrompt(
    [
        {"role": "system", "content": "You parse CVs."},
        {"role": "user", "content": "Parse this CV:\n{{cv_text}}"},
    ],
    config={"temperature": 0.1, "max_tokens": 3000},
)


class TestGetPromptMessages:

    def test_compiles_chat_prompt(self, use_langfuse):
        stub = use_langfuse(StubLangfuse(prompt=CHAT_PROMPT))
        result = langfuse_client.get_prompt_messages(CV_PARSE_PROMPT, {"cv_text": "Jane Doe"})
        assert result == (
            "You parse CVs.",
            "Parse this CV:\nJane Doe",
            {"temperature": 0.1, "max_tokens": 3000},
        )
        assert stub.requested == [CV_PARSE_PROMPT]

    def test_missing_config_becomes_empty_dict(self, use_langfuse):
        use_langfuse(StubLangfuse(prompt=StubPrompt(CHAT_PROMPT.messages, config=None)))
        _, _, config = langfuse_client.get_prompt_messages(CV_PARSE_PROMPT, {"cv_text": "x"})
        assert config == {}

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("[Errno 111] Connection refused"),
            httpx.ReadTimeout("timed out"),
            ApiError(status_code=404, body={"message": "Prompt not found"}),
            ApiError(status_code=401, body={"message": "Invalid credentials"}),
        ],
        ids=["connection-refused", "read-timeout", "not-found", "unauthorized"],
    )
    def test_fetch_failure_returns_none(self, use_langfuse, error):
        use_langfuse(StubLangfuse(error=error))
        assert langfuse_client.get_prompt_messages(CV_PARSE_PROMPT, {"cv_text": "x"}) is None

    def test_not_configured_returns_none(self, use_langfuse):
        use_langfuse(None)
        assert langfuse_client.get_prompt_messages(CV_PARSE_PROMPT, {"cv_text": "x"}) is None


class TestFlush:

    def test_flushes_client(self, use_langfuse):
        stub = use_langfuse(StubLangfuse())
        langfuse_client.flush()
        assert stub.flushed == 1

    def test_no_client_is_noop(self, use_langfuse):
        use_langfuse(None)
        langfuse_client.flush()
