"""Logging setup for the API process and the provider SDKs it drives."""

import logging
import sys

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Provider SDKs and the HTTP stack log every request at INFO
SDK_LOGGERS = ("anthropic", "openai", "google_genai", "httpx", "httpcore", "uvicorn.access")


class LogConfig(BaseSettings):
    """Log levels and line format, read from ``LOG_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = "INFO"
    sdk_level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @field_validator("level", "sdk_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level


def setup_logging(config: LogConfig | None = None) -> None:
    """Send application logs to stdout and pin the SDK loggers to ``sdk_level``."""
    config = config or LogConfig()

    logging.basicConfig(
        level=config.level,
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )
    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(config.sdk_level)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a module logger.

    Args:
        name: Module name (typically __name__)
        level: Level for this logger only; without it the logger follows the
            root level set by setup_logging

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level.upper())
    return logger
