"""
Suspicious IP case files.

Each IP accumulates a count and the distinct reasons it was flagged for,
under ``security:suspicious_ip:<ip>`` with a sliding TTL window.

The update is read-modify-write (GET, merge, SET), not atomic: two processes
flagging the same IP at the same moment can lose one increment or reason.
This is a monitoring heuristic, so the result is eventually consistent.
"""

import json
import logging
from typing import Optional

from sentinel_monitor.errors import StoreUnavailableError, require_identifier, require_positive
from sentinel_monitor.models import AuditStatus, SuspiciousActivity

logger = logging.getLogger(__name__)


class SuspiciousIPTracker:

    KEY_PREFIX = "security:suspicious_ip"

    def __init__(self, store, audit, threshold: int, window: int = 86400):
        self.store = store
        self.audit = audit
        self.threshold = require_positive(threshold, "threshold")
        self.window = require_positive(window, "window")

    def key_for(self, ip: str) -> str:
        return f"{self.KEY_PREFIX}:{ip}"

    def _load(self, key: str) -> SuspiciousActivity:
        raw = self.store.get(key)
        try:
            return SuspiciousActivity.from_json(raw)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding malformed suspicious activity at {key}: {e}")
            return SuspiciousActivity()

    def track(self, ip: str, reason: str) -> bool:
        """
        Add one suspicious event for ``ip`` and refresh its 24h window.

        Returns:
            True once the IP's count reaches the escalation threshold
        """
        ip = require_identifier(ip, "ip")
        reason = require_identifier(reason, "reason")
        key = self.key_for(ip)

        try:
            activity = self._load(key)
            activity.add(reason)
            self.store.set(key, activity.to_json(), ttl=self.window)
        except StoreUnavailableError as e:
            logger.error(f"Error tracking suspicious ip {ip}: {e}")
            return False

        data = {"ip": ip, "reason": reason, "count": activity.count, "reasons": sorted(activity.reasons)}
        if activity.count >= self.threshold:
            self.audit.record("SUSPICIOUS_IP", AuditStatus.ALERT, data)
            return True

        self.audit.record("SUSPICIOUS_ACTIVITY", AuditStatus.WARNING, data)
        return False

    def get(self, ip: str) -> Optional[SuspiciousActivity]:
        """Current case file for ``ip``, None when absent or unreadable."""
        key = self.key_for(require_identifier(ip, "ip"))
        try:
            raw = self.store.get(key)
        except StoreUnavailableError as e:
            logger.error(f"Error reading suspicious ip {ip}: {e}")
            return None
        if raw is None:
            return None
        try:
            return SuspiciousActivity.from_json(raw)
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError):
            return None
