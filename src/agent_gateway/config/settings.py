"""Application settings."""

from functools import lru_cache
import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agent-gateway"
    app_env: str = "dev"
    log_level: str = "INFO"

    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_api_key: str = ""
    openai_base_url: str = "https://api.openai.com"
    openai_api_key: str = ""

    request_timeout_s: float = Field(default=30.0, ge=0.01)
    max_retries: int = Field(default=3, ge=0)
    backoff_base_s: float = Field(default=1.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    backoff_max_s: float = Field(default=10.0, ge=0.0)
    fallback_max_retries: int = Field(default=0, ge=0)
    connection_ttl_s: float = Field(default=300.0, ge=0.0)
    probe_connection: bool = True
    profiles_file: str = ""

    suite_history_limit: int = Field(default=10, ge=1)
    suite_timeout_ms: int = Field(default=30_000, ge=1)
    stress_count: int = Field(default=3, ge=1)

    artifact_retry_limit: int = Field(default=2, ge=0)
    artifact_retry_pause_s: float = Field(default=2.0, ge=0.0)
    file_pause_s: float = Field(default=1.5, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="AGENT_GATEWAY_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_anthropic_api_key(self) -> str:
        return self.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
