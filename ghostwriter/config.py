"""
Ghostwriter configuration.

Deploy-time settings read from the environment (prefix ``GHOSTWRITER_``) or a
local ``.env`` file. Protocol constants that never vary per deployment stay in
``constants``.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

try:
    from constants import (
        API_RATE_LIMIT,
        DEFAULT_HOST,
        DEFAULT_MODEL_NAME,
        DEFAULT_PORT,
        DEFAULT_PROVIDER,
        GEN_TIMEOUT_SEC,
        GENERATION_RATE_LIMIT,
        MAX_BODY_BYTES,
        REFERENCE_FILE_NAME,
        REFERENCE_MAX_CHARS,
        SUPPORTED_PROVIDERS,
    )
except ImportError:
    from .constants import (
        API_RATE_LIMIT,
        DEFAULT_HOST,
        DEFAULT_MODEL_NAME,
        DEFAULT_PORT,
        DEFAULT_PROVIDER,
        GEN_TIMEOUT_SEC,
        GENERATION_RATE_LIMIT,
        MAX_BODY_BYTES,
        REFERENCE_FILE_NAME,
        REFERENCE_MAX_CHARS,
        SUPPORTED_PROVIDERS,
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    debug: bool = False

    llm_provider: str = DEFAULT_PROVIDER
    llm_model: str = DEFAULT_MODEL_NAME
    llm_base_url: Optional[str] = None
    # A bare `key=` line in .env is accepted too
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GHOSTWRITER_API_KEY", "key"),
    )

    reference_path: Path = Path(REFERENCE_FILE_NAME)
    reference_max_chars: int = REFERENCE_MAX_CHARS
    cache_reference: bool = False

    generation_timeout_sec: float = GEN_TIMEOUT_SEC
    api_rate_limit: str = API_RATE_LIMIT
    generation_rate_limit: str = GENERATION_RATE_LIMIT
    rate_limit_enabled: bool = True
    max_body_bytes: int = MAX_BODY_BYTES

    model_config = SettingsConfigDict(
        env_prefix="GHOSTWRITER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("llm_provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        provider = value.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported provider: {value} (expected one of {', '.join(SUPPORTED_PROVIDERS)})")
        return provider


@lru_cache()
def get_settings() -> Settings:
    """Return the cached process settings."""
    return Settings()


settings = get_settings()
