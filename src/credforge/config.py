"""Configuration module for credforge settings.

Every component reads its defaults from here so that a deployment can tune
retry timing, breaker thresholds and credential policy through environment
variables (``CREDFORGE_*``) or a ``.env`` file without code changes.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CREDFORGE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Retry policy (delays in seconds)
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_backoff_multiplier: float = 2.0
    retry_jitter: bool = True

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: float = 60.0
    circuit_half_open_max_calls: int = 3

    # Credential generation
    user_prefix: str = "proj_"
    user_suffix: str = "_user"
    password_length: int = 24
    include_special_chars: bool = True
    exclude_similar_chars: bool = True
    bcrypt_rounds: int = 12

    # Password policy
    password_min_length: int = 12
    password_max_length: int = 128
    password_min_score: int = 70

    # Username policy (63 is the PostgreSQL identifier limit)
    username_min_length: int = 3
    username_max_length: int = 63

    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator(
        "retry_max_attempts",
        "circuit_failure_threshold",
        "circuit_half_open_max_calls",
        "password_length",
        "password_min_length",
        "password_max_length",
        "username_min_length",
        "username_max_length",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("retry_base_delay", "retry_max_delay", "circuit_recovery_timeout")
    @classmethod
    def _must_not_be_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("bcrypt_rounds")
    @classmethod
    def _valid_bcrypt_cost(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("bcrypt cost factor must be between 4 and 31")
        return value

    @field_validator("password_min_score")
    @classmethod
    def _valid_score(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("minimum score must be between 0 and 100")
        return value

    @field_validator("log_format")
    @classmethod
    def _valid_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return value


settings = Settings()


# Configuration version constant
CONFIG_VERSION = "1.0.0"


def get_config_version() -> str:
    """Return the current configuration version."""

    return CONFIG_VERSION
