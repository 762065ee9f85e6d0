"""Shared fixtures for cv-profile backend tests."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from unittest.mock import AsyncMock

import pytest

from app.main import app
from app.core.llm import get_llm_client
from app.core.retry import CircuitBreaker
from app.routes import profile as profile_route


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi rate limiting for all tests."""
    app.state.limiter.enabled = False
    profile_route.limiter.enabled = False
    yield
    app.state.limiter.enabled = True
    profile_route.limiter.enabled = True


# ---------------------------------------------------------------------------
# Sample CV content
# ---------------------------------------------------------------------------

SAMPLE_CV_TEXT = """Jane Doe
Berlin, Germany | jane.doe@example.com | +49 170 1234567

Senior Backend Engineer with 8 years of experience building distributed systems.

Experience
Senior Backend Engineer, Acme GmbH, 01/2020 - Present
- Designed event-driven order processing on Kafka
- Led a team of five engineers

Software Engineer, Beta AG, 03/2016 - 12/2019
- Built REST APIs in Python and Django

Education
M.Sc. Computer Science, TU Berlin, 2014 - 2016

Skills: Python, Django, FastAPI, PostgreSQL, Kafka, Docker, Kubernetes
Languages: German (native), English (C1)
"""

# The model's raw answer in the prompt's camelCase shape
SAMPLE_LLM_RESPONSE = {
    "personalInfo": {
        "name": "Jane Doe",
        "location": "Berlin, Germany",
        "email": "jane.doe@example.com",
        "phone": "+49 170 1234567",
    },
    "summary": "Backend engineer focused on distributed systems.",
    "experienceYears": "8+ years",
    "experience": [
        {
            "title": "Senior Backend Engineer",
            "company": "Acme GmbH",
            "dateRange": "01/2020 - Present",
            "description": "Event-driven order processing.",
            "responsibilities": ["Kafka pipelines", "Team lead"],
        },
        {
            "title": "Software Engineer",
            "company": "Beta AG",
            "dateRange": "03/2016 - 12/2019",
            "description": "REST APIs in Python.",
            "responsibilities": ["Django APIs"],
        },
    ],
    "education": [
        {"degree": "M.Sc. Computer Science", "institution": "TU Berlin", "dateRange": "2014 - 2016", "details": ""},
    ],
    "skills": {
        "technical": ["Python (Expert)", "Django (Expert)", "FastAPI", "PostgreSQL", "Kafka", "Docker", "Kubernetes"],
        "soft": ["Leadership", "Communication"],
        "languages": [
            {"language": "German", "level": "Native"},
            {"language": "English", "level": "C1"},
        ],
    },
    "certifications": ["AWS Solutions Architect"],
    "projects": [],
}

# %PDF header followed by enough non-zero filler to pass the content checks
SAMPLE_PDF_BYTES = b"%PDF-1.4\n" + b"1 0 obj << /Type /Catalog >> endobj\n" * 60


class FakeLLM:
    """Stands in for ``LLMClient`` behind the ``get_llm_client`` dependency."""

    def __init__(self):
        self.model = "gpt-4o-test"
        self.breaker = CircuitBreaker(name="openai")
        self.retry_count = 0
        self.healthy = True
        self.call_json = AsyncMock(return_value=SAMPLE_LLM_RESPONSE)

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture(autouse=True)
def fake_llm():
    """Route every request to a fake LLM client."""
    fake = FakeLLM()
    app.dependency_overrides[get_llm_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_llm_client, None)


@pytest.fixture(autouse=True)
def _no_langfuse_prompts(monkeypatch):
    """Always use the embedded fallback prompts."""
    monkeypatch.setattr("app.services.cv_parser.get_prompt_messages", lambda name, variables: None)


class StubPrompt:
    def __init__(self, messages, config=None, version=3):
        self.messages = messages
        self.config = config
        self.version = version

    def compile(self, **variables):
        return [
            {"role": m["role"], "content": m["content"].replace("{{cv_text}}", variables.get("cv_text", ""))}
            for m in self.messages
        ]


class StubLangfuse:
    """Stands in for ``langfuse.Langfuse``: serves one prompt or raises ``error``."""

    def __init__(self, prompt=None, error=None):
        self.prompt = prompt
        self.error = error
        self.requested = []
        self.flushed = 0

    def get_prompt(self, name, **kwargs):
        self.requested.append(name)
        if self.error is not None:
            raise self.error
        return self.prompt

    def flush(self):
        self.flushed += 1


@pytest.fixture
def use_langfuse(monkeypatch):
    """Run the real prompt fetch against the returned StubLangfuse factory."""
    from app.core import langfuse_client

    monkeypatch.setattr("app.services.cv_parser.get_prompt_messages", langfuse_client.get_prompt_messages)

    def install(stub):
        monkeypatch.setattr(langfuse_client, "_get_client", lambda: stub)
        return stub

    return install
