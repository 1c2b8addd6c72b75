"""
Unit tests for config module.

Tests configuration loading and validation.
"""

import pytest

from sentinel_monitor.errors import ValidationError


class TestConfigModule:
    """Test configuration module functionality."""

    def test_security_limits_dict_has_all_tunables(self):
        """Test that SECURITY_LIMITS carries every SecurityLimits field."""
        from sentinel_monitor.config import SECURITY_LIMITS, SecurityLimits

        assert set(SECURITY_LIMITS) == set(SecurityLimits().to_dict())

    def test_store_config_structure(self):
        """Test that STORE_CONFIG has expected structure."""
        from sentinel_monitor.config import STORE_CONFIG

        required_keys = [
            "backend", "redis_url", "socket_timeout", "max_reconnect_attempts",
            "reconnect_delay", "reconnect_backoff", "max_reconnect_delay"
        ]
        for key in required_keys:
            assert key in STORE_CONFIG

    def test_db_config_structure(self):
        """Test that DB_CONFIG has expected structure."""
        from sentinel_monitor.config import DB_CONFIG

        required_keys = ["host", "port", "database", "user", "password", "ssl_mode"]
        for key in required_keys:
            assert key in DB_CONFIG
        assert isinstance(DB_CONFIG["port"], int)

    def test_is_db_configured_returns_bool(self):
        """Test that is_db_configured returns a boolean."""
        from sentinel_monitor.config import is_db_configured

        assert isinstance(is_db_configured(), bool)

    def test_is_geoip_configured_false_for_missing_file(self, monkeypatch):
        """Test that a GeoIP path which does not exist is not configured."""
        from sentinel_monitor import config

        monkeypatch.setitem(config.GEOIP_CONFIG, "database_path", "/nonexistent/GeoLite2-Country.mmdb")
        assert config.is_geoip_configured() is False


class TestEnvHelpers:
    """Test environment variable parsing."""

    def test_env_int_default_when_unset(self, monkeypatch):
        from sentinel_monitor.config import _env_int

        monkeypatch.delenv("SENTINEL_TEST_INT", raising=False)
        assert _env_int("SENTINEL_TEST_INT", 7) == 7

    def test_env_int_default_when_blank(self, monkeypatch):
        from sentinel_monitor.config import _env_int

        monkeypatch.setenv("SENTINEL_TEST_INT", "  ")
        assert _env_int("SENTINEL_TEST_INT", 7) == 7

    def test_env_int_parses_value(self, monkeypatch):
        from sentinel_monitor.config import _env_int

        monkeypatch.setenv("SENTINEL_TEST_INT", "42")
        assert _env_int("SENTINEL_TEST_INT", 7) == 42

    def test_env_int_rejects_garbage(self, monkeypatch):
        """Test that a non-integer value is a configuration error."""
        from sentinel_monitor.config import _env_int

        monkeypatch.setenv("SENTINEL_TEST_INT", "ten")
        with pytest.raises(ValidationError):
            _env_int("SENTINEL_TEST_INT", 7)

    def test_env_float_parses_value(self, monkeypatch):
        from sentinel_monitor.config import _env_float

        monkeypatch.setenv("SENTINEL_TEST_FLOAT", "0.25")
        assert _env_float("SENTINEL_TEST_FLOAT", 1.0) == 0.25


class TestSecurityLimits:
    """Test SecurityLimits validation."""

    def test_defaults(self):
        """Test documented default values."""
        from sentinel_monitor.config import SecurityLimits

        limits = SecurityLimits()
        assert limits.CSRF_WARNING_THRESHOLD == 5
        assert limits.CSRF_MAX_ATTEMPTS == 10
        assert limits.MAX_LOGIN_ATTEMPTS == 5
        assert limits.LOGIN_BLOCK_DURATION == 900
        assert limits.IP_BLOCK_DURATION == 3600
        assert limits.SUSPICIOUS_IP_THRESHOLD == 10
        assert limits.USER_ACTIONS_PER_5_MIN == 100
        assert limits.REPEATED_ACTION_THRESHOLD == 20

    @pytest.mark.parametrize("value", [0, -1, 1.5, "5", True])
    def test_rejects_non_positive_integers(self, value):
        from sentinel_monitor.config import SecurityLimits

        with pytest.raises(ValidationError):
            SecurityLimits(MAX_LOGIN_ATTEMPTS=value)

    def test_rejects_empty_csrf_warning_band(self):
        """Test that CSRF_MAX_ATTEMPTS must exceed CSRF_WARNING_THRESHOLD."""
        from sentinel_monitor.config import SecurityLimits

        with pytest.raises(ValidationError):
            SecurityLimits(CSRF_WARNING_THRESHOLD=10, CSRF_MAX_ATTEMPTS=10)

    def test_from_dict_rejects_unknown_keys(self):
        from sentinel_monitor.config import SecurityLimits

        with pytest.raises(ValidationError, match="MAX_LOGIN_ATEMPTS"):
            SecurityLimits.from_dict({"MAX_LOGIN_ATEMPTS": 3})

    def test_from_dict_round_trip(self):
        from sentinel_monitor.config import SecurityLimits

        limits = SecurityLimits.from_dict({"MAX_LOGIN_ATTEMPTS": 3})
        assert limits.MAX_LOGIN_ATTEMPTS == 3
        assert SecurityLimits.from_dict(limits.to_dict()) == limits

    def test_is_immutable(self):
        from dataclasses import FrozenInstanceError
        from sentinel_monitor.config import SecurityLimits

        limits = SecurityLimits()
        with pytest.raises(FrozenInstanceError):
            limits.MAX_LOGIN_ATTEMPTS = 1

    def test_load_security_limits(self, monkeypatch):
        """Test that load_security_limits reads SECURITY_LIMITS."""
        from sentinel_monitor import config

        monkeypatch.setitem(config.SECURITY_LIMITS, "MAX_LOGIN_ATTEMPTS", 8)
        assert config.load_security_limits().MAX_LOGIN_ATTEMPTS == 8


class TestErrors:
    """Test input validation helpers."""

    def test_require_identifier_strips(self):
        from sentinel_monitor.errors import require_identifier

        assert require_identifier("  10.0.0.1 ", "ip") == "10.0.0.1"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_require_identifier_rejects_blank(self, value):
        from sentinel_monitor.errors import require_identifier

        with pytest.raises(ValidationError, match="ip"):
            require_identifier(value, "ip")

    @pytest.mark.parametrize("value", [0, -5, 0.5, 0.999, float("nan"), float("inf"), None, "60", False])
    def test_require_positive_rejects(self, value):
        from sentinel_monitor.errors import require_positive

        with pytest.raises(ValidationError):
            require_positive(value, "duration")

    def test_require_positive_truncates(self):
        from sentinel_monitor.errors import require_positive

        assert require_positive(1.5, "duration") == 1
        assert require_positive(60, "duration") == 60

    def test_validation_error_is_value_error(self):
        """Test that callers catching ValueError also catch ValidationError."""
        assert issubclass(ValidationError, ValueError)
