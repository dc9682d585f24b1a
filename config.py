from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the HabitAI backend.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,   # env var names are case-sensitive
        extra="ignore",
        populate_by_name=True,
    )

    # these will read from ENV and DEBUG in env/system
    env: str = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")

    # Optional at startup: a missing key is reported per request as a 500.
    grog_api_key: Optional[str] = Field(
        default=None,
        description="Bearer credential for the upstream model API",
        alias="GROG_API_KEY",
    )
    grog_api_url: str = Field(
        default="https://api.x.ai/v1",
        description="OpenAI-compatible API base (a full /chat/completions URL is accepted too)",
        alias="GROG_API_URL",
    )
    grog_model: str = Field(default="grok-2-latest", alias="GROG_MODEL")

    temperature: float = Field(default=0.7, alias="GROG_TEMPERATURE")
    max_tokens: int = Field(default=150, alias="GROG_MAX_TOKENS")
    plan_max_tokens: int = Field(default=200, alias="HABIT_PLAN_MAX_TOKENS")
    timeout_seconds: float = Field(default=30.0, alias="GROG_TIMEOUT_SECONDS")

    # literal wait schedule between attempts, in milliseconds
    retry_delays_ms: List[int] = Field(
        default_factory=lambda: [1000, 2000, 4000],
        alias="RETRY_DELAYS_MS",
    )

    history_limit: int = Field(default=10, alias="HISTORY_LIMIT")
    max_sessions: int = Field(default=1000, alias="MAX_SESSIONS")

    port: int = Field(default=3000, alias="PORT")

    @field_validator("grog_api_url")
    @classmethod
    def _strip_completions_path(cls, value: str) -> str:
        """ChatOpenAI wants the API base, not the completions endpoint."""
        value = value.strip().rstrip("/")
        suffix = "/chat/completions"
        if value.endswith(suffix):
            value = value[: -len(suffix)]
        return value

    @property
    def retry_delays(self) -> List[float]:
        return [ms / 1000 for ms in self.retry_delays_ms]


@lru_cache
def get_settings() -> Settings:
    return Settings()
