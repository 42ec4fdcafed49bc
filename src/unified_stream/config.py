"""Runtime settings loaded from the environment."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library defaults, overridable with ``UNIFIED_STREAM_*`` variables.

    - UNIFIED_STREAM_TIMEOUT_S: HTTP timeout for vendor requests
    - UNIFIED_STREAM_MAX_TOOL_ROUNDS: resubmissions allowed in one call before
      the tool loop gives up
    - UNIFIED_STREAM_DEFAULT_MAX_TOKENS: used when a vendor requires max_tokens
    - UNIFIED_STREAM_DEFAULT_CONTEXT_COUNT: messages kept when the request
      config does not say
    """

    model_config = SettingsConfigDict(env_prefix="UNIFIED_STREAM_", env_file=".env", extra="ignore")

    timeout_s: float = 60.0
    max_tool_rounds: int = 20
    default_max_tokens: int = 4096
    default_context_count: int = 10
    include_usage: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
