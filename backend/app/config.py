"""Application settings loaded from environment variables."""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.constants import (
    DEFAULT_ATTEMPT_TIMEOUT,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_INITIAL_DELAY,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RESET_TIMEOUT,
    MAX_UPLOAD_SIZE,
)


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_model: str = DEFAULT_LLM_MODEL
    openai_timeout: float = DEFAULT_ATTEMPT_TIMEOUT
    langfuse_secret_key: str = ""
    langfuse_public_key: str = ""
    langfuse_host: str = "https://cloud.langfuse.com"
    environment: Literal["development", "production", "test"] = "development"
    allowed_origins: str = "http://localhost:3000"
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    max_upload_size: int = MAX_UPLOAD_SIZE

    # Resilience around the OpenAI call
    retry_max_retries: int = DEFAULT_MAX_RETRIES
    retry_initial_delay: float = DEFAULT_INITIAL_DELAY
    retry_max_delay: float = DEFAULT_MAX_DELAY
    retry_backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    retry_timeout: float = DEFAULT_ATTEMPT_TIMEOUT
    breaker_failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    breaker_reset_timeout: float = DEFAULT_RESET_TIMEOUT

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_openai_key(self) -> "Settings":
        if self.openai_api_key and not self.openai_api_key.startswith("sk-"):
            raise ValueError("OPENAI_API_KEY must start with 'sk-'")
        if self.environment == "production" and not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


_settings: Settings | None = None


def load_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
