"""
Tabular summaries of monitoring state for stats and export.
"""

from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

# Longest prefix first so 'security:login:attempts' wins over shorter matches
KEY_CATEGORIES = [
    "security:login:attempts",
    "security:suspicious_ip",
    "security:user_behavior",
    "security:csrf",
    "blocked:user",
    "blocked:ip",
]


def categorize_key(key: str) -> Dict[str, str]:
    """Split a store key into its category prefix and identifier."""
    for prefix in KEY_CATEGORIES:
        if key.startswith(prefix + ":"):
            return {"category": prefix, "identifier": key[len(prefix) + 1:]}
    head, _, rest = key.partition(":")
    second, _, identifier = rest.partition(":")
    return {"category": f"{head}:{second}" if second else head, "identifier": identifier}


def snapshot_to_frame(snapshot: Mapping[str, Optional[str]]) -> pd.DataFrame:
    """
    Convert a key -> value snapshot of the store into a DataFrame.
    
    Returns:
        DataFrame with columns key, category, identifier, value
    """
    rows = [{"key": key, **categorize_key(key), "value": value} for key, value in snapshot.items()]
    return pd.DataFrame(rows, columns=["key", "category", "identifier", "value"])


def counter_totals(snapshot: Mapping[str, Optional[str]]) -> Dict[str, int]:
    """Sum CSRF and login-failure counters found in a snapshot."""
    df = snapshot_to_frame(snapshot)
    totals = {"csrf_attempts": 0, "login_failures": 0}
    if df.empty:
        return totals

    values = pd.to_numeric(df["value"], errors="coerce").fillna(0)
    totals["csrf_attempts"] = int(values[df["category"] == "security:csrf"].sum())
    totals["login_failures"] = int(values[df["category"] == "security:login:attempts"].sum())
    return totals


def rank_suspicious_ips(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Suspicious IP case files ordered by count (highest first), then ip."""
    df = pd.DataFrame(records, columns=["ip", "count", "reasons"])
    if df.empty:
        return []
    df = df.sort_values(["count", "ip"], ascending=[False, True])
    return [
        {"ip": str(row["ip"]), "count": int(row["count"]), "reasons": list(row["reasons"])}
        for row in df.to_dict("records")
    ]


def build_export_summary(
    audit_events: List[Dict[str, Any]],
    snapshot: Mapping[str, Optional[str]]
) -> Dict[str, Any]:
    """
    Summarize an export for downstream review.
    
    Args:
        audit_events: Rows from the security_events table
        snapshot: Store key -> value snapshot
        
    Returns:
        Dictionary with event totals by status and type plus active key counts
    """
    events = pd.DataFrame(audit_events)
    keys = snapshot_to_frame(snapshot)

    summary = {
        "total_events": int(len(events)),
        "by_status": {},
        "by_event_type": {},
        "active_keys": int(len(keys)),
        "keys_by_category": {},
    }

    if not events.empty:
        if "status" in events.columns:
            summary["by_status"] = {
                str(status): int(count) for status, count in events["status"].value_counts().items()
            }
        if "event_type" in events.columns:
            summary["by_event_type"] = {
                str(event_type): int(count)
                for event_type, count in events["event_type"].value_counts().items()
            }

    if not keys.empty:
        summary["keys_by_category"] = {
            str(category): int(count) for category, count in keys["category"].value_counts().items()
        }

    return summary
