"""
SecurityMonitor: the single entry point used by the HTTP/middleware layer.

Construct one instance at process start (``SecurityMonitor.from_config()``)
and pass it to every collaborator. All mutable state lives in the counter
store, so any number of processes can share one store.

Request-path methods fail open: a store outage reads as "not blocked / no
violation" and is logged, never raised. Administrative methods (block,
unblock, export, clear) raise StoreUnavailableError to their caller.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from sentinel_monitor import report
from sentinel_monitor.audit_sink import AuditSink
from sentinel_monitor.config import (
    AUDIT_CONFIG,
    GEOIP_CONFIG,
    STORE_CONFIG,
    SecurityLimits,
    is_db_configured,
    load_security_limits,
)
from sentinel_monitor.detectors.attempt_tracker import (
    AttemptTracker,
    CSRFAttemptTracker,
    LoginAttemptTracker,
)
from sentinel_monitor.detectors.behavior_analyzer import UserBehaviorAnalyzer
from sentinel_monitor.detectors.blocklist import BlocklistManager
from sentinel_monitor.detectors.request_inspector import RequestInspector
from sentinel_monitor.detectors.suspicious_ip import SuspiciousIPTracker
from sentinel_monitor.errors import StoreUnavailableError, require_identifier, require_positive
from sentinel_monitor.geolocation import GeoResolver, NullGeoResolver, create_geo_resolver
from sentinel_monitor.models import (
    BLOCKING_SEVERITIES,
    AnomalyReport,
    AuditStatus,
    BlockEntry,
    SubjectType,
    SuspiciousActivity,
)
from sentinel_monitor.store.base import CounterStore
from sentinel_monitor.store.factory import create_store_from_config

logger = logging.getLogger(__name__)

MONITORING_PATTERN = "security:*"
BLOCK_PATTERN = "blocked:*"


@dataclass
class RequestVerdict:
    """Outcome of inspecting one request."""

    suspicious_patterns: List[str] = field(default_factory=list)
    escalate: bool = False
    anomalies: List[AnomalyReport] = field(default_factory=list)
    blocked: bool = False

    @property
    def should_block(self) -> bool:
        return self.blocked or any(a.severity in BLOCKING_SEVERITIES for a in self.anomalies)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suspicious_patterns": list(self.suspicious_patterns),
            "escalate": self.escalate,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "blocked": self.blocked,
            "should_block": self.should_block,
        }


class SecurityMonitor:
    """Façade composing the trackers, blocklist and analyzers over one store."""

    def __init__(
        self,
        store: CounterStore,
        audit: Optional[AuditSink] = None,
        geo_resolver: Optional[GeoResolver] = None,
        limits: Optional[SecurityLimits] = None,
        db_connector=None,
        clock: Callable[[], float] = time.time,
        tz=None
    ):
        """
        Initialize the monitor.
        
        Args:
            store: Shared counter store
            audit: Audit sink; defaults to a log-only sink
            geo_resolver: Geolocation resolver; defaults to one that knows nothing
            limits: Detection tunables; defaults to SecurityLimits()
            db_connector: Database connector used by export_monitoring_data
            clock: Epoch-seconds clock for the behavior analyzer
            tz: Timezone for time-of-day heuristics (None = server local)
        """
        self.store = store
        self.limits = limits or SecurityLimits()
        self.audit = audit or AuditSink()
        self.geo_resolver = geo_resolver or NullGeoResolver()
        self.db_connector = db_connector

        self.attempts = AttemptTracker(store)
        self.blocklist = BlocklistManager(store, self.audit)
        self.csrf = CSRFAttemptTracker(
            self.attempts,
            self.audit,
            warning_threshold=self.limits.CSRF_WARNING_THRESHOLD,
            max_attempts=self.limits.CSRF_MAX_ATTEMPTS,
            window=self.limits.CSRF_WINDOW
        )
        self.logins = LoginAttemptTracker(
            self.attempts,
            self.blocklist,
            self.audit,
            max_attempts=self.limits.MAX_LOGIN_ATTEMPTS,
            login_block_duration=self.limits.LOGIN_BLOCK_DURATION,
            ip_block_duration=self.limits.IP_BLOCK_DURATION
        )
        self.suspicious_ips = SuspiciousIPTracker(
            store,
            self.audit,
            threshold=self.limits.SUSPICIOUS_IP_THRESHOLD,
            window=self.limits.SUSPICIOUS_IP_WINDOW
        )
        self.behavior = UserBehaviorAnalyzer(
            store,
            self.geo_resolver,
            self.audit,
            actions_per_5_min=self.limits.USER_ACTIONS_PER_5_MIN,
            repeated_action_threshold=self.limits.REPEATED_ACTION_THRESHOLD,
            activity_limit=self.limits.USER_ACTIVITY_LIMIT,
            activity_ttl=self.limits.USER_ACTIVITY_TTL,
            clock=clock,
            tz=tz
        )
        self.inspector = RequestInspector(max_payload_size=self.limits.MAX_PAYLOAD_SIZE)

        logger.info(f"SecurityMonitor initialized with {getattr(store, 'name', type(store).__name__)} store")

    @classmethod
    def from_config(cls, db_connector=None, store_config=None) -> "SecurityMonitor":
        """Build a monitor from environment configuration."""
        store_config = store_config or STORE_CONFIG
        if db_connector is None and is_db_configured():
            from sentinel_monitor.db_connector import create_db_connector_from_env
            db_connector = create_db_connector_from_env()

        audit = AuditSink(csv_output_path=AUDIT_CONFIG["csv_output"], db_connector=db_connector)
        return cls(
            store=create_store_from_config(store_config),
            audit=audit,
            geo_resolver=create_geo_resolver(GEOIP_CONFIG["database_path"]),
            limits=load_security_limits(),
            db_connector=db_connector
        )

    # Request path

    def track_csrf_attempt(self, ip: str, path: str = "") -> bool:
        """Record a CSRF failure; True when the caller should reject the request."""
        return self.csrf.track(ip, path)

    def record_login_attempt(self, user_id: str, ip: str, success: bool) -> None:
        """Record a login outcome; failures past the limit block the user and ip."""
        self.logins.record(user_id, ip, success)

    def is_user_blocked(self, user_id: str, ip: str) -> bool:
        """True when either the user or the ip is blocked."""
        return self.blocklist.is_either_blocked(user_id, ip)

    def is_ip_blocked(self, ip: str) -> bool:
        return self.blocklist.is_blocked(SubjectType.IP, ip)

    def track_suspicious_ip(self, ip: str, reason: str) -> bool:
        """Add a suspicious event for ``ip``; True once it should be escalated."""
        return self.suspicious_ips.track(ip, reason)

    def track_user_behavior(
        self,
        user_id: str,
        action: str,
        metadata: Optional[Mapping[str, Any]] = None
    ) -> List[AnomalyReport]:
        return self.behavior.track(user_id, action, metadata)

    def inspect_request(
        self,
        ip: str,
        request: Mapping[str, Any],
        user_id: Optional[str] = None
    ) -> RequestVerdict:
        """
        Run the full request-path check: pattern inspection, suspicious IP
        tracking, behavior tracking and block status.
        
        Args:
            ip: Client IP
            request: Context with optional path, method, query, body, headers, files
            user_id: Authenticated user, if any
            
        Returns:
            RequestVerdict; ``should_block`` is True for blocked subjects and
            HIGH/CRITICAL anomalies
        """
        ip = require_identifier(ip, "ip")
        verdict = RequestVerdict(suspicious_patterns=self.inspector.inspect(request))

        for reason in verdict.suspicious_patterns:
            if self.track_suspicious_ip(ip, reason):
                verdict.escalate = True

        if user_id:
            method = str(request.get("method") or "").upper()
            path = str(request.get("path") or "")
            action = f"{method} {path}".strip() or "request"
            headers = {str(k).lower(): v for k, v in (request.get("headers") or {}).items()}
            verdict.anomalies = self.track_user_behavior(user_id, action, {
                "ip": ip,
                "userAgent": headers.get("user-agent"),
                "referer": headers.get("referer"),
            })
            verdict.blocked = self.is_user_blocked(user_id, ip)
        else:
            verdict.blocked = self.is_ip_blocked(ip)

        return verdict

    # Administration

    def block_user(self, user_id: str, reason: str, duration: Optional[int] = None) -> BlockEntry:
        duration = require_positive(duration, "duration") if duration is not None else self.limits.ADMIN_BLOCK_DURATION
        return self.blocklist.block(SubjectType.USER, user_id, duration, reason)

    def block_ip(self, ip: str, reason: str, duration: Optional[int] = None) -> BlockEntry:
        duration = require_positive(duration, "duration") if duration is not None else self.limits.ADMIN_BLOCK_DURATION
        return self.blocklist.block(SubjectType.IP, ip, duration, reason)

    def unblock_user(self, user_id: str) -> bool:
        return self.blocklist.clear(SubjectType.USER, user_id)

    def unblock_ip(self, ip: str) -> bool:
        return self.blocklist.clear(SubjectType.IP, ip)

    def analyze_location(self, ip: str) -> Optional[str]:
        """Resolve ``ip`` to a country code and record the lookup."""
        ip = require_identifier(ip, "ip")
        try:
            country = self.geo_resolver.resolve(ip)
        except Exception as e:
            logger.warning(f"Geolocation failed for {ip}: {e}")
            return None
        if country:
            self.audit.record("LOCATION_CHECK", AuditStatus.INFO, {"ip": ip, "country": country})
        return country

    def get_security_stats(self) -> Dict[str, Any]:
        """
        Snapshot of current monitoring state.

        Scans store keys, so intended for dashboards and the CLI, not the
        request path. On store outage returns empty values with
        ``active_monitoring`` False.
        """
        stats = {
            "blocked_ips": [],
            "blocked_users": [],
            "suspicious_ips": [],
            "csrf_attempts": 0,
            "login_failures": 0,
            "tracked_users": 0,
            "active_monitoring": False,
        }
        try:
            snapshot = self._snapshot(MONITORING_PATTERN)
            stats["blocked_ips"] = self.blocklist.list_blocked(SubjectType.IP)
            stats["blocked_users"] = self.blocklist.list_blocked(SubjectType.USER)
        except StoreUnavailableError as e:
            logger.error(f"Security stats unavailable: {e}")
            return stats

        suspicious = []
        for key, value in snapshot.items():
            parts = report.categorize_key(key)
            if parts["category"] == "security:suspicious_ip" and value:
                try:
                    activity = SuspiciousActivity.from_json(value)
                except (ValueError, TypeError, AttributeError):
                    logger.warning(f"Skipping malformed suspicious activity at {key}")
                    continue
                suspicious.append({
                    "ip": parts["identifier"],
                    "count": activity.count,
                    "reasons": sorted(activity.reasons),
                })
            elif parts["category"] == "security:user_behavior":
                stats["tracked_users"] += 1

        stats["suspicious_ips"] = report.rank_suspicious_ips(suspicious)
        stats.update(report.counter_totals(snapshot))
        stats["active_monitoring"] = True
        return stats

    def export_monitoring_data(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Export audit events for a period together with the live store state.
        
        Args:
            start: Period start (inclusive)
            end: Period end (inclusive)
            
        Returns:
            Dictionary with timestamp, period, audit_logs, store_data and summary
        """
        audit_logs: List[Dict[str, Any]] = []
        if self.db_connector:
            audit_logs = self.db_connector.get_security_events(start=start, end=end)

        store_data = self._snapshot(MONITORING_PATTERN)
        store_data.update(self._snapshot(BLOCK_PATTERN))

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "period": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "audit_logs": audit_logs,
            "store_data": store_data,
            "summary": report.build_export_summary(audit_logs, store_data),
        }

    def clear_monitoring_data(self) -> int:
        """Delete every monitoring counter and log (block entries are kept)."""
        keys = self.store.keys(MONITORING_PATTERN)
        removed = self.store.delete(*keys) if keys else 0
        logger.warning(f"Cleared {removed} monitoring keys")
        self.audit.record("MONITORING_DATA_CLEARED", AuditStatus.WARNING, {"keys_removed": removed})
        return removed

    def _snapshot(self, pattern: str) -> Dict[str, Optional[str]]:
        return {key: self.store.get(key) for key in self.store.keys(pattern)}

    def close(self) -> None:
        for resource in (self.store, self.geo_resolver, self.db_connector):
            close = getattr(resource, "close", None)
            if close:
                close()
