"""
Project settings.

Loads environment variables (and an optional .env file) into a typed
settings object shared by the ingestion workers and the API server.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings."""

    # Database
    # Production runs on PostgreSQL (postgresql+asyncpg://...); the default
    # keeps a local single-file store for development.
    database_url: str = "sqlite+aiosqlite:///./opennews.db"
    db_echo: bool = False

    # Deduplication
    dedup_batch_size: int = 50

    # Per-cycle item cap for frequently polled sources
    item_cap: int = 30
    # Source names containing one of these process their whole item list
    uncapped_source_keywords: list[str] = ["arxiv"]
    # Source names containing one of these list items oldest-first
    tail_source_keywords: list[str] = ["anthropic"]

    # HTTP
    fetch_timeout_sec: float = 30.0
    scrape_timeout_sec: float = 15.0
    scrape_concurrency: int = 5
    user_agent: str = (
        "Mozilla/5.0 (compatible; OpenNewsBot/1.0; +https://opennews.tw)"
    )

    # Scheduler
    poll_interval_sec: int = 600

    # Telegram
    telegram_bot_token: str = ""
    notify_on_insert: bool = False

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_secret_key: str = ""  # Bearer token for /process. Empty disables auth.
    webhook_secret: str = ""  # X-Webhook-Secret for /webhook. Empty disables the check.

    # Tag backfill
    backfill_window_hours: int = 4
    backfill_limit: int = 30

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"  # Relative to the working directory. Empty disables file logging.

    @field_validator("dedup_batch_size", "item_cap", "scrape_concurrency")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the Settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached Settings so the next call re-reads the environment."""
    global _settings
    _settings = None
