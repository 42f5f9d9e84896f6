"""Runtime configuration for certin-mapper."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_MAX_SNAPSHOT_AGE_HOURS = 24.0
DEFAULT_MAX_CONCURRENCY = 16
DEFAULT_HTTP_TIMEOUT = 10.0
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def default_cache_file() -> Path:
    """Cache snapshot location (XDG compliant)."""
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "certin-mapper" / "cache.json"


def evaluate_boolean(value: str) -> bool:
    """Evaluate a string as a boolean value."""
    return value.strip().lower() in ("true", "yes", "yeah", "1", "on")


@dataclass
class Config:
    """Configuration settings for an enrichment run."""

    cache_file: Optional[Path] = None
    cache_enabled: bool = True
    max_snapshot_age_hours: float = DEFAULT_MAX_SNAPSHOT_AGE_HOURS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    github_token: Optional[str] = None
    log_level: str = "INFO"

    @property
    def max_snapshot_age_ms(self) -> int:
        return int(self.max_snapshot_age_hours * 60 * 60 * 1000)

    def validate(self) -> None:
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.max_concurrency < 1:
            raise ConfigurationError("Maximum concurrency must be at least 1")
        if self.max_snapshot_age_hours <= 0:
            raise ConfigurationError("Maximum snapshot age must be positive")
        if self.http_timeout <= 0:
            raise ConfigurationError("HTTP timeout must be positive")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level '{self.log_level}'. Expected one of {', '.join(VALID_LOG_LEVELS)}")
        self.log_level = self.log_level.upper()
        if self.cache_enabled and self.cache_file is None:
            self.cache_file = default_cache_file()


def _env_number(name: str, default: float, cast=float):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    cache_file = os.getenv("CERTIN_CACHE_FILE")
    config = Config(
        cache_file=Path(cache_file).expanduser() if cache_file else None,
        cache_enabled=evaluate_boolean(os.getenv("CERTIN_CACHE_ENABLED", "True")),
        max_snapshot_age_hours=_env_number("CERTIN_MAX_SNAPSHOT_AGE_HOURS", DEFAULT_MAX_SNAPSHOT_AGE_HOURS),
        max_concurrency=_env_number("CERTIN_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY, cast=int),
        http_timeout=_env_number("CERTIN_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        github_token=os.getenv("GITHUB_TOKEN") or None,
        log_level=os.getenv("CERTIN_LOG_LEVEL", "INFO"),
    )
    config.validate()
    return config
