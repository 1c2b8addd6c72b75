"""
Time-bounded blocklist for users and IPs.

A block is a single key (``blocked:ip:<ip>`` / ``blocked:user:<id>``) whose
TTL is the block duration; the block is active iff the key exists and lapses
on its own when the TTL elapses.
"""

import json
import logging
import time
from typing import List, Optional

from sentinel_monitor.errors import StoreUnavailableError, ValidationError, require_identifier, require_positive
from sentinel_monitor.models import AuditStatus, BlockEntry, SubjectType, block_key

logger = logging.getLogger(__name__)


def _subject_type(value) -> SubjectType:
    try:
        return SubjectType(value)
    except ValueError:
        raise ValidationError(f"Unknown subject type: {value!r}")


class BlocklistManager:
    """Creates, checks and clears block entries in the counter store"""

    def __init__(self, store, audit=None):
        self.store = store
        self.audit = audit

    def block(
        self,
        subject_type,
        subject_id: str,
        duration: int,
        reason: Optional[str] = None
    ) -> BlockEntry:
        """
        Block a subject for ``duration`` seconds.

        Re-blocking replaces the TTL with the new duration; durations never add up.
        Store errors propagate as StoreUnavailableError.
        """
        subject_type = _subject_type(subject_type)
        subject_id = require_identifier(subject_id, f"{subject_type.value} id")
        duration = require_positive(duration, "duration")

        entry = BlockEntry(subject_type=subject_type, subject_id=subject_id, expires_in=duration)
        value = json.dumps({"reason": reason, "blocked_at": time.time(), "duration": duration})
        self.store.set(entry.key, value, ttl=duration)

        logger.warning(f"{subject_type.value} {subject_id} blocked for {duration} seconds ({reason})")
        if self.audit:
            self.audit.record(
                f"{subject_type.name}_BLOCKED",
                AuditStatus.BLOCKED,
                {
                    "ip" if subject_type is SubjectType.IP else "user_id": subject_id,
                    "duration": duration,
                    "reason": reason,
                }
            )
        return entry

    def is_blocked(self, subject_type, subject_id: str) -> bool:
        """Existence check; a store outage reads as not blocked."""
        subject_type = _subject_type(subject_type)
        subject_id = require_identifier(subject_id, f"{subject_type.value} id")
        try:
            return self.store.exists(block_key(subject_type, subject_id))
        except StoreUnavailableError as e:
            logger.error(f"Error checking block status for {subject_type.value} {subject_id}: {e}")
            return False

    def is_either_blocked(self, user_id: str, ip: str) -> bool:
        """True when the user OR the ip is blocked."""
        return (
            self.is_blocked(SubjectType.USER, user_id)
            or self.is_blocked(SubjectType.IP, ip)
        )

    def clear(self, subject_type, subject_id: str) -> bool:
        """
        Administrative unblock: delete the block key regardless of remaining TTL.

        Returns:
            True if a block was active and has been removed
        """
        subject_type = _subject_type(subject_type)
        subject_id = require_identifier(subject_id, f"{subject_type.value} id")
        removed = self.store.delete(block_key(subject_type, subject_id)) > 0

        logger.info(f"{subject_type.value} {subject_id} unblocked (was blocked: {removed})")
        if self.audit:
            self.audit.record(
                f"{subject_type.name}_UNBLOCKED",
                AuditStatus.UNBLOCKED,
                {
                    "ip" if subject_type is SubjectType.IP else "user_id": subject_id,
                    "was_blocked": removed,
                }
            )
        return removed

    def remaining_seconds(self, subject_type, subject_id: str) -> int:
        """Seconds left on an active block, 0 if not blocked."""
        subject_type = _subject_type(subject_type)
        subject_id = require_identifier(subject_id, f"{subject_type.value} id")
        return max(0, self.store.ttl(block_key(subject_type, subject_id)))

    def list_blocked(self, subject_type) -> List[str]:
        """Ids with an active block. Scans keys, so administrative use only."""
        subject_type = _subject_type(subject_type)
        prefix = block_key(subject_type, "")
        return [key[len(prefix):] for key in self.store.keys(prefix + "*")]
