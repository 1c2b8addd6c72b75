"""
Data model for security monitoring.

Everything here is plain data: trackers build these objects, the façade hands
them back to callers and the audit sink serializes them.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Set


class SubjectType(str, Enum):
    IP = "ip"
    USER = "user"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AnomalyType(str, Enum):
    HIGH_FREQUENCY = "HIGH_FREQUENCY"
    REPEATED_ACTION = "REPEATED_ACTION"
    GEOGRAPHIC_ANOMALY = "GEOGRAPHIC_ANOMALY"
    UNUSUAL_TIME_PATTERN = "UNUSUAL_TIME_PATTERN"


class AuditStatus(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ALERT = "ALERT"
    BLOCKED = "BLOCKED"
    UNBLOCKED = "UNBLOCKED"


# Severities that the request path treats as grounds for rejecting a request
BLOCKING_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})


@dataclass
class AnomalyReport:
    """A single finding produced by a behavioral heuristic."""

    type: AnomalyType
    severity: Severity
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type.value, "severity": self.severity.value}
        data.update(self.details)
        return data


@dataclass
class SuspiciousActivity:
    """Case file kept per IP: how often it misbehaved and why."""

    count: int = 0
    reasons: Set[str] = field(default_factory=set)

    def add(self, reason: str) -> None:
        self.count += 1
        self.reasons.add(reason)

    def to_json(self) -> str:
        return json.dumps({"count": self.count, "reasons": sorted(self.reasons)})

    @classmethod
    def from_json(cls, raw) -> "SuspiciousActivity":
        if not raw:
            return cls()
        data = json.loads(raw)
        return cls(count=int(data.get("count", 0)), reasons=set(data.get("reasons", [])))


@dataclass
class BlockEntry:
    subject_type: SubjectType
    subject_id: str
    expires_in: int

    @property
    def key(self) -> str:
        return block_key(self.subject_type, self.subject_id)


def block_key(subject_type: SubjectType, subject_id: str) -> str:
    return f"blocked:{SubjectType(subject_type).value}:{subject_id}"
