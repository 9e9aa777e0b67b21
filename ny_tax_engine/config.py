"""Engine configuration loaded from the environment."""

from __future__ import annotations

import sys
from functools import lru_cache

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime settings, overridable with ``NY_TAX_*`` environment variables."""

    model_config = {"env_prefix": "NY_TAX_"}

    database_url: str = "sqlite:///orders.db"
    upload_dir: str = "uploads"
    output_dir: str = "reports"
    log_level: str = "INFO"
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr so stdout stays clean for reports."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {name}: {message}",
        level=level.upper(),
    )
