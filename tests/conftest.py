"""
Pytest configuration and fixtures for SentinelMonitor tests.

This module provides reusable fixtures for testing all components.
"""

import json
import pytest
import os
import tempfile
import shutil
from datetime import datetime, timezone
from unittest.mock import Mock

from sentinel_monitor.config import SecurityLimits
from sentinel_monitor.geolocation import StaticGeoResolver
from sentinel_monitor.security_monitor import SecurityMonitor
from sentinel_monitor.store.memory_store import InMemoryCounterStore

# 2026-01-28 15:30:00 UTC, well clear of the night hours
BASE_TIME = datetime(2026, 1, 28, 15, 30, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start=BASE_TIME):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def temp_csv_file(temp_dir):
    """Create a temporary CSV file path."""
    csv_path = os.path.join(temp_dir, "security_events.csv")
    yield csv_path
    # Cleanup handled by temp_dir fixture


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    """In-memory counter store driven by the fake clock."""
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def mock_audit():
    """Audit sink double recording every call."""
    return Mock()


@pytest.fixture
def geo_resolver():
    """Resolver knowing four public addresses in four countries."""
    return StaticGeoResolver({
        "203.0.113.10": "US",
        "198.51.100.20": "DE",
        "192.0.2.30": "BR",
        "203.0.113.40": "JP",
        "203.0.113.50": "US",
    })


@pytest.fixture
def small_limits():
    """Limits small enough to trip in a handful of calls."""
    return SecurityLimits(
        CSRF_WARNING_THRESHOLD=3,
        CSRF_MAX_ATTEMPTS=5,
        MAX_LOGIN_ATTEMPTS=3,
        LOGIN_BLOCK_DURATION=900,
        IP_BLOCK_DURATION=3600,
        SUSPICIOUS_IP_THRESHOLD=3,
        USER_ACTIONS_PER_5_MIN=10,
        REPEATED_ACTION_THRESHOLD=5,
        USER_ACTIVITY_LIMIT=20,
        ADMIN_BLOCK_DURATION=7200,
    )


@pytest.fixture
def monitor(memory_store, mock_audit, geo_resolver, small_limits, clock):
    """SecurityMonitor over the in-memory store with UTC hour checks."""
    return SecurityMonitor(
        store=memory_store,
        audit=mock_audit,
        geo_resolver=geo_resolver,
        limits=small_limits,
        clock=clock,
        tz=timezone.utc
    )


@pytest.fixture
def mock_db_connector():
    """Create a mock DatabaseConnector for testing."""
    mock_db = Mock()

    mock_db.test_connection.return_value = True
    mock_db.insert_security_event.return_value = 1
    mock_db.get_security_events.return_value = [
        {
            'id': 2,
            'event_type': 'USER_BLOCKED',
            'status': 'BLOCKED',
            'ip_address': None,
            'user_id': 'alice',
            'details': {'duration': 900},
            'created_at': datetime(2026, 1, 28, 15, 31, 0, tzinfo=timezone.utc)
        },
        {
            'id': 1,
            'event_type': 'LOGIN_FAILED',
            'status': 'INFO',
            'ip_address': '192.168.1.100',
            'user_id': 'alice',
            'details': {'attempts': 1},
            'created_at': datetime(2026, 1, 28, 15, 30, 0, tzinfo=timezone.utc)
        }
    ]
    mock_db.close.return_value = None

    return mock_db


@pytest.fixture
def seed_activity(memory_store):
    """Write a raw activity log for a user into the in-memory store."""
    def seed(user_id, entries):
        memory_store.set(f"security:user_behavior:{user_id}", json.dumps(entries), ttl=86400)
    return seed


@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables before each test."""
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    test_env = {
        'DB_HOST': 'test-host.example.com',
        'DB_PORT': '5432',
        'DB_NAME': 'test_db',
        'DB_USER': 'test_user',
        'DB_PASSWORD': 'test_password',
        'DB_SSL_MODE': 'require'
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    return test_env
