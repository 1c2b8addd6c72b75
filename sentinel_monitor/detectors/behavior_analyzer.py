"""
Per-user behavioral anomaly detection.

Keeps a bounded recent-activity log per user in the counter store and runs
four heuristics over it:
    1. HIGH_FREQUENCY: too many actions in 5 minutes
    2. REPEATED_ACTION: the same action repeated in 5 minutes
    3. GEOGRAPHIC_ANOMALY: more than 3 countries in 1 hour
    4. UNUSUAL_TIME_PATTERN: sustained late-night activity in 1 hour

The analyzer only reports; blocking policy belongs to the caller.
"""

import json
import logging
import time
from collections import Counter
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, Mapping, Optional

from sentinel_monitor.errors import StoreUnavailableError, ValidationError, require_identifier, require_positive
from sentinel_monitor.models import AnomalyReport, AnomalyType, AuditStatus, Severity

logger = logging.getLogger(__name__)


class UserBehaviorAnalyzer:

    KEY_PREFIX = "security:user_behavior"

    # Time windows in seconds
    WINDOW_5MIN = 300
    WINDOW_1HOUR = 3600

    # Geographic and time-of-day thresholds
    MAX_COUNTRIES_PER_HOUR = 3
    NIGHT_ACTIVITY_THRESHOLD = 10
    NIGHT_START_HOUR = 23
    NIGHT_END_HOUR = 4

    def __init__(
        self,
        store,
        geo_resolver,
        audit,
        actions_per_5_min: int,
        repeated_action_threshold: int,
        activity_limit: int = 100,
        activity_ttl: int = 86400,
        clock: Callable[[], float] = time.time,
        tz: Optional[tzinfo] = None
    ):
        """
        Initialize the analyzer.
        
        Args:
            store: Counter store holding the activity logs
            geo_resolver: GeoResolver used by the geographic heuristic
            audit: AuditSink receiving anomaly warnings
            actions_per_5_min: HIGH_FREQUENCY threshold
            repeated_action_threshold: REPEATED_ACTION threshold per action
            activity_limit: Max entries kept per user (oldest evicted first)
            activity_ttl: Seconds of inactivity after which a log expires
            clock: Epoch-seconds clock
            tz: Timezone for hour-of-day checks; None means server local time
        """
        self.store = store
        self.geo_resolver = geo_resolver
        self.audit = audit
        self.actions_per_5_min = require_positive(actions_per_5_min, "actions_per_5_min")
        self.repeated_action_threshold = require_positive(repeated_action_threshold, "repeated_action_threshold")
        self.activity_limit = require_positive(activity_limit, "activity_limit")
        self.activity_ttl = require_positive(activity_ttl, "activity_ttl")
        self.clock = clock
        self.tz = tz

    def key_for(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}"

    def track(
        self,
        user_id: str,
        action: str,
        metadata: Optional[Mapping[str, Any]] = None
    ) -> List[AnomalyReport]:
        """
        Append an action to the user's log and analyze the updated log.
        
        Returns:
            Anomaly reports in detector order; empty on store outage
        """
        user_id = require_identifier(user_id, "user_id")
        action = require_identifier(action, "action")
        now = self.clock()

        entry = dict(metadata or {})
        if entry.get("ip") is not None and not isinstance(entry["ip"], str):
            raise ValidationError(f"metadata ip must be a string, got {type(entry['ip']).__name__}")
        entry["timestamp"] = now
        entry["action"] = action

        try:
            activities = self._append(self.key_for(user_id), entry)
        except StoreUnavailableError as e:
            logger.error(f"Error tracking behavior for user {user_id}: {e}")
            return []

        anomalies = self.detect_anomalies(activities, now)
        if anomalies:
            self.audit.record(
                "ANOMALY_DETECTED",
                AuditStatus.WARNING,
                {
                    "user_id": user_id,
                    "ip": entry.get("ip"),
                    "action": action,
                    "anomalies": [a.to_dict() for a in anomalies],
                }
            )
        return anomalies

    def get_activity(self, user_id: str) -> List[Dict[str, Any]]:
        """Stored activity log for ``user_id``, oldest first."""
        return self._load(self.key_for(require_identifier(user_id, "user_id")))

    def _load(self, key: str) -> List[Dict[str, Any]]:
        raw = self.store.get(key)
        if not raw:
            return []
        try:
            activities = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed activity log at {key}: {e}")
            return []
        if not isinstance(activities, list):
            logger.warning(f"Discarding activity log at {key}: expected a list")
            return []
        return [a for a in activities if isinstance(a, dict)]

    def _append(self, key: str, entry: Dict[str, Any]) -> List[Dict[str, Any]]:
        # Read-modify-write: concurrent appends for one user may drop an entry
        activities = self._load(key)
        activities.append(entry)
        if len(activities) > self.activity_limit:
            del activities[:len(activities) - self.activity_limit]
        self.store.set(key, json.dumps(activities, default=str), ttl=self.activity_ttl)
        return activities

    def detect_anomalies(
        self,
        activities: List[Mapping[str, Any]],
        now: Optional[float] = None
    ) -> List[AnomalyReport]:
        """
        Run all heuristics over ``activities``.
        
        Args:
            activities: Activity entries with epoch 'timestamp' and 'action'
            now: Reference time for the sliding windows (defaults to clock())
            
        Returns:
            Union of all findings, in detector order
        """
        if now is None:
            now = self.clock()

        recent = self._within(activities, now - self.WINDOW_5MIN)
        last_hour = self._within(activities, now - self.WINDOW_1HOUR)

        anomalies: List[AnomalyReport] = []
        anomalies.extend(self._detect_high_frequency(recent))
        anomalies.extend(self._detect_repeated_actions(recent))
        anomalies.extend(self._detect_geographic(last_hour))
        anomalies.extend(self._detect_unusual_time(last_hour))
        return anomalies

    @staticmethod
    def _within(activities, cutoff: float) -> List[Mapping[str, Any]]:
        selected = []
        for activity in activities:
            try:
                timestamp = float(activity.get("timestamp"))
            except (TypeError, ValueError):
                continue
            if timestamp >= cutoff:
                selected.append(activity)
        return selected

    def _detect_high_frequency(self, recent) -> List[AnomalyReport]:
        if len(recent) >= self.actions_per_5_min:
            return [AnomalyReport(
                AnomalyType.HIGH_FREQUENCY,
                Severity.HIGH,
                {"count": len(recent), "timeframe": "5min"}
            )]
        return []

    def _detect_repeated_actions(self, recent) -> List[AnomalyReport]:
        counts = Counter(activity.get("action") for activity in recent)
        return [
            AnomalyReport(
                AnomalyType.REPEATED_ACTION,
                Severity.MEDIUM,
                {"action": action, "count": count}
            )
            for action, count in counts.items()
            if count >= self.repeated_action_threshold
        ]

    def _detect_geographic(self, last_hour) -> List[AnomalyReport]:
        resolved: Dict[str, Optional[str]] = {}
        locations: List[str] = []
        ips: List[str] = []

        for activity in last_hour:
            ip = activity.get("ip")
            if not ip or not isinstance(ip, str):
                continue
            if ip not in resolved:
                ips.append(ip)
                resolved[ip] = self._resolve(ip)
            country = resolved[ip]
            if country and country not in locations:
                locations.append(country)

        if len(locations) > self.MAX_COUNTRIES_PER_HOUR:
            return [AnomalyReport(
                AnomalyType.GEOGRAPHIC_ANOMALY,
                Severity.HIGH,
                {"locations": locations, "ips": ips, "timeframe": "1hour"}
            )]
        return []

    def _resolve(self, ip: str) -> Optional[str]:
        try:
            return self.geo_resolver.resolve(ip)
        except Exception as e:
            logger.warning(f"Geolocation failed for {ip}, treating as unknown: {e}")
            return None

    def _detect_unusual_time(self, last_hour) -> List[AnomalyReport]:
        night_count = 0
        for activity in last_hour:
            hour = datetime.fromtimestamp(float(activity["timestamp"]), tz=self.tz).hour
            if hour >= self.NIGHT_START_HOUR or hour <= self.NIGHT_END_HOUR:
                night_count += 1

        if night_count >= self.NIGHT_ACTIVITY_THRESHOLD:
            return [AnomalyReport(
                AnomalyType.UNUSUAL_TIME_PATTERN,
                Severity.MEDIUM,
                {"count": night_count, "timeframe": "1hour"}
            )]
        return []
