"""Tests for credforge settings."""

import pytest
from pydantic import ValidationError

from credforge.config import Settings, get_config_version


class TestSettings:
    """Tests for Settings defaults, environment overrides and validation."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        for key in ("CREDFORGE_RETRY_MAX_ATTEMPTS", "CREDFORGE_BCRYPT_ROUNDS", "CREDFORGE_LOG_FORMAT"):
            monkeypatch.delenv(key, raising=False)

        config = Settings(_env_file=None)
        assert config.retry_max_attempts == 3
        assert config.retry_base_delay == 1.0
        assert config.circuit_failure_threshold == 5
        assert config.circuit_recovery_timeout == 60.0
        assert config.circuit_half_open_max_calls == 3
        assert config.user_prefix == "proj_"
        assert config.user_suffix == "_user"
        assert config.password_length == 24
        assert config.bcrypt_rounds == 12
        assert config.password_min_score == 70
        assert config.username_max_length == 63
        assert config.log_format == "text"

    def test_environment_override(self, monkeypatch):
        """Test CREDFORGE_ environment variables."""
        monkeypatch.setenv("CREDFORGE_RETRY_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("CREDFORGE_USER_PREFIX", "tenant_")
        config = Settings(_env_file=None)
        assert config.retry_max_attempts == 7
        assert config.user_prefix == "tenant_"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("retry_max_attempts", 0),
            ("password_length", -1),
            ("retry_base_delay", -0.5),
            ("bcrypt_rounds", 3),
            ("bcrypt_rounds", 32),
            ("password_min_score", 101),
            ("log_format", "xml"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        """Test field validators."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_log_format_normalized(self):
        """Test that log_format is case-insensitive."""
        assert Settings(_env_file=None, log_format="JSON").log_format == "json"

    def test_config_version(self):
        """Test the configuration version string."""
        assert get_config_version() == "1.0.0"
