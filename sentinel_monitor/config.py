"""
Configuration module for the security monitor.

Loads configuration from environment variables and provides default values.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping

from dotenv import load_dotenv

from sentinel_monitor.errors import ValidationError

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}")


# Detection tunables (counts are events, durations are seconds)
SECURITY_LIMITS = {
    "CSRF_WARNING_THRESHOLD": _env_int("CSRF_WARNING_THRESHOLD", 5),
    "CSRF_MAX_ATTEMPTS": _env_int("CSRF_MAX_ATTEMPTS", 10),
    "CSRF_WINDOW": _env_int("CSRF_WINDOW", 3600),
    "MAX_LOGIN_ATTEMPTS": _env_int("MAX_LOGIN_ATTEMPTS", 5),
    "LOGIN_BLOCK_DURATION": _env_int("LOGIN_BLOCK_DURATION", 900),
    "IP_BLOCK_DURATION": _env_int("IP_BLOCK_DURATION", 3600),
    "SUSPICIOUS_IP_THRESHOLD": _env_int("SUSPICIOUS_IP_THRESHOLD", 10),
    "SUSPICIOUS_IP_WINDOW": _env_int("SUSPICIOUS_IP_WINDOW", 86400),
    "USER_ACTIONS_PER_5_MIN": _env_int("USER_ACTIONS_PER_5_MIN", 100),
    "REPEATED_ACTION_THRESHOLD": _env_int("REPEATED_ACTION_THRESHOLD", 20),
    "USER_ACTIVITY_LIMIT": _env_int("USER_ACTIVITY_LIMIT", 100),
    "USER_ACTIVITY_TTL": _env_int("USER_ACTIVITY_TTL", 86400),
    "ADMIN_BLOCK_DURATION": _env_int("ADMIN_BLOCK_DURATION", 86400),
    "MAX_PAYLOAD_SIZE": _env_int("MAX_PAYLOAD_SIZE", 10 * 1024 * 1024),
}

# Counter store configuration
STORE_CONFIG = {
    "backend": os.getenv("SECURITY_STORE_BACKEND", "memory"),
    "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    "socket_timeout": _env_float("REDIS_SOCKET_TIMEOUT", 0.5),
    "max_reconnect_attempts": _env_int("MAX_REDIS_RECONNECT_ATTEMPTS", 5),
    "reconnect_delay": _env_float("REDIS_RECONNECT_DELAY", 5.0),
    "reconnect_backoff": os.getenv("REDIS_RECONNECT_BACKOFF", "fixed"),
    "max_reconnect_delay": _env_float("REDIS_MAX_RECONNECT_DELAY", 30.0),
}

# Database configuration (loaded from environment variables)
DB_CONFIG = {
    "host": os.getenv("DB_HOST"),
    "port": int(os.getenv("DB_PORT", "5432")),
    "database": os.getenv("DB_NAME"),
    "user": os.getenv("DB_USER"),
    "password": os.getenv("DB_PASSWORD"),
    "ssl_mode": os.getenv("DB_SSL_MODE", "require")
}

GEOIP_CONFIG = {
    "database_path": os.getenv("GEOIP_DATABASE_PATH"),
}

AUDIT_CONFIG = {
    "csv_output": os.getenv("AUDIT_CSV_PATH", "data/processed/security_events.csv"),
    "security_log": os.getenv("SECURITY_LOG_PATH", "logs/security.log"),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
}


def is_db_configured() -> bool:
    """
    Check if database configuration is complete.
    
    Returns:
        bool: True if all required database credentials are present
    """
    required_keys = ["host", "database", "user", "password"]
    return all(DB_CONFIG.get(key) for key in required_keys)


def is_geoip_configured() -> bool:
    path = GEOIP_CONFIG.get("database_path")
    return bool(path) and os.path.exists(path)


@dataclass(frozen=True)
class SecurityLimits:
    """
    Validated, immutable view of the detection tunables.

    Every field is a positive integer; CSRF_MAX_ATTEMPTS must exceed
    CSRF_WARNING_THRESHOLD so that the warning band is not empty.
    """

    CSRF_WARNING_THRESHOLD: int = 5
    CSRF_MAX_ATTEMPTS: int = 10
    CSRF_WINDOW: int = 3600
    MAX_LOGIN_ATTEMPTS: int = 5
    LOGIN_BLOCK_DURATION: int = 900
    IP_BLOCK_DURATION: int = 3600
    SUSPICIOUS_IP_THRESHOLD: int = 10
    SUSPICIOUS_IP_WINDOW: int = 86400
    USER_ACTIONS_PER_5_MIN: int = 100
    REPEATED_ACTION_THRESHOLD: int = 20
    USER_ACTIVITY_LIMIT: int = 100
    USER_ACTIVITY_TTL: int = 86400
    ADMIN_BLOCK_DURATION: int = 86400
    MAX_PAYLOAD_SIZE: int = 10 * 1024 * 1024

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"{f.name} must be a positive integer, got {value!r}")
        if self.CSRF_MAX_ATTEMPTS <= self.CSRF_WARNING_THRESHOLD:
            raise ValidationError(
                "CSRF_MAX_ATTEMPTS must be greater than CSRF_WARNING_THRESHOLD "
                f"({self.CSRF_MAX_ATTEMPTS} <= {self.CSRF_WARNING_THRESHOLD})"
            )

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SecurityLimits":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValidationError(f"Unknown security limits: {', '.join(sorted(unknown))}")
        return cls(**dict(values))

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_security_limits() -> SecurityLimits:
    """Build SecurityLimits from the environment-derived SECURITY_LIMITS."""
    return SecurityLimits.from_dict(SECURITY_LIMITS)
