from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model: str = "gpt-4o"
    temperature: float = 0.0
    max_iterations: int = 25
    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.openai.com/v1"
    model_request_timeout_seconds: float = 120.0

    tool_request_timeout_seconds: float = 60.0

    # Context budget
    max_context_tokens: int = 100_000
    max_tool_result_chars: int = 8_000
    max_session_turns: int = 10

    session_max_idle_seconds: int = 3600  # 1 hour
    session_sweep_interval_seconds: int = 300  # 5 minutes

    rest_api_base_url: str = "http://localhost:8080"
    rest_api_timeout_seconds: float = 30.0

    cors_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="allow",
    )


def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
