"""
Drive an in-memory SecurityMonitor through typical attack traffic and print
the decisions it makes.
"""

import os
import sys
from datetime import timezone

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sentinel_monitor.audit_sink import AuditSink
from sentinel_monitor.config import SecurityLimits
from sentinel_monitor.geolocation import StaticGeoResolver
from sentinel_monitor.logging_config import configure_logging
from sentinel_monitor.security_monitor import SecurityMonitor
from sentinel_monitor.store.memory_store import InMemoryCounterStore

COUNTRIES = {"203.0.113.10": "US", "198.51.100.20": "DE", "192.0.2.30": "BR", "203.0.113.40": "JP"}

configure_logging("WARNING")
monitor = SecurityMonitor(
    store=InMemoryCounterStore(),
    audit=AuditSink(),
    geo_resolver=StaticGeoResolver(COUNTRIES),
    limits=SecurityLimits(USER_ACTIONS_PER_5_MIN=30, REPEATED_ACTION_THRESHOLD=8),
    tz=timezone.utc
)

print("CSRF probing from 10.0.0.50")
for i in range(1, monitor.limits.CSRF_MAX_ATTEMPTS + 1):
    print(f"  attempt {i:2d}: reject={monitor.track_csrf_attempt('10.0.0.50', '/api/users')}")

print("\nLogin brute force against alice from 192.168.1.100")
for i in range(1, monitor.limits.MAX_LOGIN_ATTEMPTS + 1):
    monitor.record_login_attempt("alice", "192.168.1.100", success=False)
    print(f"  failure {i}: blocked={monitor.is_user_blocked('alice', '192.168.1.100')}")
print(f"  bob from the same ip blocked={monitor.is_user_blocked('bob', '192.168.1.100')}")

print("\nInjection probes from 172.16.0.25")
verdict = monitor.inspect_request("172.16.0.25", {
    "method": "GET",
    "path": "/api/reports/../../etc/passwd",
    "query": {"id": "1 union select password from users"},
    "headers": {"User-Agent": "sqlmap/1.7"},
})
print(f"  patterns={verdict.suspicious_patterns} escalate={verdict.escalate}")

print("\nUser carol hopping countries and repeating an export")
for i in range(10):
    ip = list(COUNTRIES)[i % len(COUNTRIES)]
    anomalies = monitor.track_user_behavior("carol", "GET /api/export", {"ip": ip})
for anomaly in anomalies:
    print(f"  {anomaly.to_dict()}")

print(f"\nStats: {monitor.get_security_stats()}")
