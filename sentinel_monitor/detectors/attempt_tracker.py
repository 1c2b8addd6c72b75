"""
Rolling-window attempt counters for rate-sensitive events.

Two call sites share the generic AttemptTracker:
- CSRF probing per IP (warning band, then reject)
- login failures per (user, ip) pair (block user and ip on threshold)
"""

import logging

from sentinel_monitor.errors import StoreUnavailableError, require_identifier, require_positive
from sentinel_monitor.models import AuditStatus, SubjectType

logger = logging.getLogger(__name__)

CSRF_DOMAIN = "csrf"
LOGIN_DOMAIN = "login:attempts"


class AttemptTracker:
    """
    Counts events per identifier in a TTL window held by the counter store.

    The window starts with the first event and is not extended by later ones.
    """

    KEY_PREFIX = "security"

    def __init__(self, store):
        self.store = store

    def key_for(self, domain: str, identifier: str) -> str:
        return f"{self.KEY_PREFIX}:{domain}:{identifier}"

    def record_attempt(self, domain: str, identifier: str, window_ttl: int) -> int:
        """
        Increment the counter for ``identifier`` and return the new count.

        Returns 0 ("no attempt recorded") if the store is unavailable.
        """
        domain = require_identifier(domain, "domain")
        identifier = require_identifier(identifier, "identifier")
        window_ttl = require_positive(window_ttl, "window_ttl")

        key = self.key_for(domain, identifier)
        try:
            return self.store.incr_with_expiry(key, window_ttl)
        except StoreUnavailableError as e:
            logger.error(f"Error recording attempt for {key}: {e}")
            return 0

    def get_count(self, domain: str, identifier: str) -> int:
        key = self.key_for(require_identifier(domain, "domain"), require_identifier(identifier, "identifier"))
        try:
            value = self.store.get(key)
        except StoreUnavailableError as e:
            logger.error(f"Error reading attempt counter {key}: {e}")
            return 0
        return int(value) if value else 0


class CSRFAttemptTracker:
    """Tracks CSRF token failures per IP and signals when to reject requests."""

    def __init__(self, tracker: AttemptTracker, audit, warning_threshold: int, max_attempts: int, window: int = 3600):
        self.tracker = tracker
        self.audit = audit
        self.warning_threshold = warning_threshold
        self.max_attempts = max_attempts
        self.window = window

    def track(self, ip: str, path: str = "") -> bool:
        ip = require_identifier(ip, "ip")
        count = self.tracker.record_attempt(CSRF_DOMAIN, ip, self.window)
        if count == 0:
            return False

        data = {"ip": ip, "path": path, "attempts": count}
        if count >= self.max_attempts:
            self.audit.record("CSRF_ATTEMPT_LIMIT", AuditStatus.ALERT, data)
            return True
        if count >= self.warning_threshold:
            self.audit.record("CSRF_ATTEMPT", AuditStatus.WARNING, data)
        else:
            self.audit.record("CSRF_ATTEMPT", AuditStatus.INFO, data)
        return False


class LoginAttemptTracker:
    """
    Counts failed logins per (user, ip) and blocks both subjects on threshold.

    A successful login does not reset the failure counter; failures expire
    only with the window.
    """

    def __init__(
        self,
        tracker: AttemptTracker,
        blocklist,
        audit,
        max_attempts: int,
        login_block_duration: int,
        ip_block_duration: int
    ):
        self.tracker = tracker
        self.blocklist = blocklist
        self.audit = audit
        self.max_attempts = max_attempts
        self.login_block_duration = login_block_duration
        self.ip_block_duration = ip_block_duration

    def record(self, user_id: str, ip: str, success: bool) -> int:
        """
        Record a login outcome.

        Returns:
            The failure count in the current window (0 for successes or outages)
        """
        user_id = require_identifier(user_id, "user_id")
        ip = require_identifier(ip, "ip")

        if success:
            logger.debug(f"Successful login for user {user_id} from {ip}")
            return 0

        count = self.tracker.record_attempt(LOGIN_DOMAIN, f"{user_id}:{ip}", self.login_block_duration)
        if count == 0:
            return 0

        self.audit.record(
            "LOGIN_FAILED",
            AuditStatus.INFO,
            {"ip": ip, "user_id": user_id, "attempts": count}
        )

        if count >= self.max_attempts:
            reason = f"{count} failed login attempts"
            try:
                self.blocklist.block(SubjectType.USER, user_id, self.login_block_duration, reason)
                self.blocklist.block(SubjectType.IP, ip, self.ip_block_duration, reason)
            except StoreUnavailableError as e:
                logger.error(f"Error blocking user {user_id} / ip {ip}: {e}")
        return count
