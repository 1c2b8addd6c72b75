#!/usr/bin/env python3
"""
Audit database check script for SentinelMonitor.

Verifies the database connection and security event persistence.
"""

import sys
import os
from datetime import datetime, timedelta, timezone

# Add parent directory to path to import sentinel_monitor modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sentinel_monitor.db_connector import DatabaseConnector
from sentinel_monitor.config import DB_CONFIG, is_db_configured


def print_header(text):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def check_audit_database():
    """
    Check database connection and security event insertion.
    
    Returns:
        bool: True if all checks pass, False otherwise
    """
    print_header("SentinelMonitor Audit Database Check")
    
    if not is_db_configured():
        print("\n❌ Error: Database configuration incomplete!")
        print("\nMissing environment variables. Please ensure the following are set:")
        print("  - DB_HOST")
        print("  - DB_NAME")
        print("  - DB_USER")
        print("  - DB_PASSWORD")
        print("\nRun scripts/setup_env.py to create a .env template and try again.")
        return False
    
    print("\n✓ Database configuration found")
    print(f"  Host: {DB_CONFIG['host']}")
    print(f"  Database: {DB_CONFIG['database']}")
    print(f"  SSL Mode: {DB_CONFIG['ssl_mode']}")
    
    print_header("Step 1: Initializing Database Connection")
    try:
        db = DatabaseConnector(
            host=DB_CONFIG["host"],
            port=DB_CONFIG["port"],
            database=DB_CONFIG["database"],
            user=DB_CONFIG["user"],
            password=DB_CONFIG["password"],
            ssl_mode=DB_CONFIG["ssl_mode"]
        )
        print("✓ Database connector initialized, security_events table ready")
    except Exception as e:
        print(f"❌ Failed to initialize database connector: {e}")
        return False
    
    try:
        print_header("Step 2: Inserting Test Security Event")
        event_id = db.insert_security_event(
            event_type="AUDIT_DB_CHECK",
            status="INFO",
            details={"source": "check_audit_db.py"},
            ip_address="127.0.0.1"
        )
        if not event_id:
            print("\n❌ Failed to insert security event (no ID returned)")
            return False
        print(f"✓ Security event inserted with ID: {event_id}")
        
        print_header("Step 3: Reading Back Recent Events")
        since = datetime.now(timezone.utc) - timedelta(minutes=5)
        events = db.get_security_events(start=since, limit=5)
        for event in events:
            print(f"  #{event['id']} {event['created_at']} {event['event_type']} [{event['status']}]")
        if not any(event['id'] == event_id for event in events):
            print("\n⚠ Warning: inserted event not found among recent events")
        
        print(f"\nStatus distribution: {db.get_status_distribution()}")
    finally:
        db.close()
        print("\n✓ Database connection closed")
    
    return True


if __name__ == "__main__":
    sys.exit(0 if check_audit_database() else 1)
