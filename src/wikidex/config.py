"""
Configuration management for wiki extraction.

Loads settings from environment variables and config file, with sensible defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WIKIDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    cache_dir: Path = Field(
        default_factory=lambda: Path(".cache/wikidex"),
        description="Cache storage directory",
    )
    page_cache_ttl: int = Field(default=3600, description="Seconds a fetched page stays cached")
    log_level: str = Field(default="INFO", description="Logging level")
    concurrency: int = Field(default=6, description="Default number of in-flight detail fetches")
    max_concurrency: int = Field(default=16, description="Upper bound for in-flight fetches")
    user_agent: str = Field(
        default="wikidex/0.1 (+https://github.com/wikidex)",
        description="User-Agent header sent with page requests",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
