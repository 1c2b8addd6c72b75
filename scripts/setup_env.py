#!/usr/bin/env python3
"""
Setup script to create a .env template for SentinelMonitor.
Run this once, then fill in the values for your deployment.
"""

import os

ENV_TEMPLATE = """# SentinelMonitor configuration

# Counter store: memory (single process) or redis (shared)
SECURITY_STORE_BACKEND=redis
REDIS_URL=redis://localhost:6379/0
REDIS_SOCKET_TIMEOUT=0.5
MAX_REDIS_RECONNECT_ATTEMPTS=5
REDIS_RECONNECT_DELAY=5
REDIS_RECONNECT_BACKOFF=fixed

# Detection limits
CSRF_WARNING_THRESHOLD=5
CSRF_MAX_ATTEMPTS=10
MAX_LOGIN_ATTEMPTS=5
LOGIN_BLOCK_DURATION=900
IP_BLOCK_DURATION=3600
SUSPICIOUS_IP_THRESHOLD=10
USER_ACTIONS_PER_5_MIN=100
REPEATED_ACTION_THRESHOLD=20

# Optional: MaxMind GeoLite2 database for geographic anomaly detection
GEOIP_DATABASE_PATH=

# Audit outputs
AUDIT_CSV_PATH=data/processed/security_events.csv
SECURITY_LOG_PATH=logs/security.log

# Optional: PostgreSQL audit trail
DB_HOST=
DB_PORT=5432
DB_NAME=
DB_USER=
DB_PASSWORD=
DB_SSL_MODE=require
"""


def create_env_file():
    """Create .env template unless one already exists."""
    env_path = os.path.join(os.path.dirname(__file__), '..', '.env')
    
    if os.path.exists(env_path):
        print(f"✓ .env already exists at: {env_path} (left untouched)")
        return True
    
    try:
        with open(env_path, 'w') as f:
            f.write(ENV_TEMPLATE)
        print(f"✓ Created .env template at: {env_path}")
        print("\nFill in REDIS_URL and, optionally, the GeoIP and database settings.")
        print("\nYou can then run:")
        print("  python scripts/check_audit_db.py  # Check audit database persistence")
        print("  python main.py stats              # Show monitoring status")
        return True
    except OSError as e:
        print(f" Error creating .env file: {e}")
        return False

if __name__ == "__main__":
    create_env_file()
