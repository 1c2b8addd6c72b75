"""
SentinelMonitor: security monitoring & anomaly detection engine.
Administrative command line for inspecting and overriding monitoring state.
"""

from sentinel_monitor.config import AUDIT_CONFIG, STORE_CONFIG
from sentinel_monitor.errors import StoreUnavailableError, ValidationError
from sentinel_monitor.logging_config import configure_logging
from sentinel_monitor.security_monitor import SecurityMonitor
from datetime import datetime
import argparse
import json
import logging
import sys

logger = logging.getLogger(__name__)

# Commands that change store state; pointless against a per-process memory store
WRITE_COMMANDS = {"block-ip", "block-user", "unblock-ip", "unblock-user", "clear"}


def parse_datetime(value):
    """argparse type for ISO-8601 dates and datetimes."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid ISO date/time: {value}")


def print_stats(monitor):
    """Print current blocks, suspicious IPs and counters."""
    stats = monitor.get_security_stats()

    print("\n" + "=" * 60)
    print("Security Monitoring Status")
    print("=" * 60)
    print(f"Store backend:      {getattr(monitor.store, 'name', 'unknown')}")
    print(f"Active monitoring:  {'yes' if stats['active_monitoring'] else 'NO (store unavailable)'}")
    print(f"CSRF attempts:      {stats['csrf_attempts']}")
    print(f"Login failures:     {stats['login_failures']}")
    print(f"Tracked users:      {stats['tracked_users']}")
    print(f"Blocked IPs:        {', '.join(stats['blocked_ips']) or '-'}")
    print(f"Blocked users:      {', '.join(stats['blocked_users']) or '-'}")

    if stats["suspicious_ips"]:
        print("\nSuspicious IPs:")
        for record in stats["suspicious_ips"]:
            print(f"  {record['ip']:<40} {record['count']:>5}  {', '.join(record['reasons'])}")
    return 0


def export_data(monitor, start, end, output):
    """Export audit events and store state as JSON."""
    data = monitor.export_monitoring_data(start, end)
    payload = json.dumps(data, indent=2, default=str)

    if output:
        with open(output, "w") as f:
            f.write(payload)
        print(f"✓ Exported {data['summary']['total_events']} audit event(s) and "
              f"{data['summary']['active_keys']} store key(s) to {output}")
    else:
        print(payload)
    return 0


def check_subject(monitor, user_id, ip):
    """Report whether a user/ip pair would be rejected."""
    blocked = monitor.is_user_blocked(user_id, ip)
    print(f"user={user_id} ip={ip} blocked={blocked}")
    if blocked:
        user_left = monitor.blocklist.remaining_seconds("user", user_id)
        ip_left = monitor.blocklist.remaining_seconds("ip", ip)
        print(f"  user block remaining: {user_left}s, ip block remaining: {ip_left}s")
    return 1 if blocked else 0


def build_parser():
    parser = argparse.ArgumentParser(description="SentinelMonitor: security monitoring administration")
    parser.add_argument("--log-level", default=AUDIT_CONFIG["log_level"], help="Log level (default: INFO)")
    parser.add_argument(
        "--backend",
        choices=["memory", "redis"],
        default=None,
        help="Override the counter store backend (default: SECURITY_STORE_BACKEND)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stats", help="Show blocks, suspicious IPs and counters")

    export_parser = subparsers.add_parser("export", help="Export audit events and store state")
    export_parser.add_argument("--start", type=parse_datetime, help="Period start (ISO-8601)")
    export_parser.add_argument("--end", type=parse_datetime, help="Period end (ISO-8601)")
    export_parser.add_argument("--output", help="Write JSON to this file instead of stdout")

    for subject in ("ip", "user"):
        block_parser = subparsers.add_parser(f"block-{subject}", help=f"Block a {subject}")
        block_parser.add_argument("subject_id", help=f"{subject} to block")
        block_parser.add_argument("--reason", required=True, help="Reason recorded in the audit trail")
        block_parser.add_argument("--duration", type=int, help="Block duration in seconds")

        unblock_parser = subparsers.add_parser(f"unblock-{subject}", help=f"Remove a {subject} block")
        unblock_parser.add_argument("subject_id", help=f"{subject} to unblock")

    check_parser = subparsers.add_parser("check", help="Check whether a user/ip pair is blocked")
    check_parser.add_argument("--user", required=True, help="User id")
    check_parser.add_argument("--ip", required=True, help="Client IP")

    subparsers.add_parser("clear", help="Delete all monitoring counters (blocks are kept)")
    return parser


def run_command(monitor, args):
    if args.command == "stats":
        return print_stats(monitor)
    if args.command == "export":
        return export_data(monitor, args.start, args.end, args.output)
    if args.command == "block-ip":
        entry = monitor.block_ip(args.subject_id, args.reason, args.duration)
        print(f"✓ IP {entry.subject_id} blocked for {entry.expires_in}s")
        return 0
    if args.command == "block-user":
        entry = monitor.block_user(args.subject_id, args.reason, args.duration)
        print(f"✓ User {entry.subject_id} blocked for {entry.expires_in}s")
        return 0
    if args.command == "unblock-ip":
        removed = monitor.unblock_ip(args.subject_id)
        print(f"✓ IP {args.subject_id} unblocked" if removed else f"IP {args.subject_id} was not blocked")
        return 0
    if args.command == "unblock-user":
        removed = monitor.unblock_user(args.subject_id)
        print(f"✓ User {args.subject_id} unblocked" if removed else f"User {args.subject_id} was not blocked")
        return 0
    if args.command == "check":
        return check_subject(monitor, args.user, args.ip)
    if args.command == "clear":
        removed = monitor.clear_monitoring_data()
        print(f"✓ Removed {removed} monitoring key(s)")
        return 0
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, AUDIT_CONFIG["security_log"])

    store_config = dict(STORE_CONFIG, backend=args.backend) if args.backend else STORE_CONFIG

    if args.command in WRITE_COMMANDS and store_config["backend"] == "memory":
        if not args.backend:
            logger.error(f"Refusing {args.command}: the configured store backend is in-memory")
            print(f"\n❌ Error: {args.command} would only change a throwaway in-memory store. "
                  "Set SECURITY_STORE_BACKEND=redis, or pass --backend memory to run it anyway.")
            return 4
        logger.warning(f"Running {args.command} against the in-memory store")
        print("⚠ Warning: in-memory store; this change is discarded when the command exits")

    monitor = None
    try:
        monitor = SecurityMonitor.from_config(store_config=store_config)
        return run_command(monitor, args)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        print(f"\n❌ Error: {e}")
        return 2
    except StoreUnavailableError as e:
        logger.error(f"Counter store unavailable: {e}")
        print(f"\n❌ Error: counter store unavailable ({e})")
        return 3
    finally:
        if monitor:
            monitor.close()


if __name__ == "__main__":
    sys.exit(main())
