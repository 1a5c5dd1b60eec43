"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Every resilience knob (retry, breaker, cache, deadlines) lives here

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box locally
    - auth_tokens stands in for the external auth provider (token → user id)
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_timeout_seconds: float = 30
    max_tokens: int = 4096

    # Models — public model id → upstream model name
    model_aliases: dict[str, str] = {
        "chat-model": "claude-sonnet-4-5",
        "chat-model-reasoning": "claude-opus-4-1",
        "chat-model-lite": "claude-haiku-4-5",
        "artifact-model": "claude-sonnet-4-5",
    }

    # Retry
    retry_max_retries: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 30_000
    retry_jitter: float = 0.25

    # Circuit breaker
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_seconds: float = 60

    # Response cache
    cache_ttl_seconds: float = 300
    cache_sweep_interval_seconds: float = 300
    cache_max_entries: int = 1000
    cache_tool_requests: bool = False

    # Tool coordinator
    tool_max_steps: int = 5
    tool_timeout_seconds: float = 60

    # Model routing
    routing_lite_enabled: bool = True
    routing_lite_percentage: int = 5

    # Weather tool
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_timeout_seconds: float = 10

    # Auth
    auth_tokens: dict[str, str] = {}

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("routing_lite_percentage")
    @classmethod
    def clamp_percentage(cls, v: int) -> int:
        return max(0, min(100, v))

    def resolve_model(self, model_id: str) -> str:
        """Public model id → upstream model name (unknown ids pass through)."""
        return self.model_aliases.get(model_id, model_id)


@lru_cache
def get_settings() -> Settings:
    return Settings()
