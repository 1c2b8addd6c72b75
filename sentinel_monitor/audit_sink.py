"""
Audit sink for security events.

Handles event distribution to multiple outputs: security log, CSV, and database.
The engine only writes here; persistence and review belong to the outputs.
"""

import csv
import json
import os
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from pathlib import Path

from sentinel_monitor.logging_config import get_security_logger
from sentinel_monitor.models import AuditStatus

logger = logging.getLogger(__name__)

CSV_HEADERS = ['timestamp', 'event_type', 'status', 'ip_address', 'user_id', 'details']

_LEVELS = {
    AuditStatus.INFO: logging.INFO,
    AuditStatus.WARNING: logging.WARNING,
    AuditStatus.UNBLOCKED: logging.WARNING,
    AuditStatus.ALERT: logging.ERROR,
    AuditStatus.BLOCKED: logging.ERROR,
}


class AuditSink:
    """
    Records security events with multi-channel output support.
    
    The security logger is always used; CSV and database outputs are optional.
    A failing output is logged and skipped, it never breaks the caller.
    """
    
    def __init__(
        self,
        csv_output_path: Optional[str] = None,
        db_connector: Optional[Any] = None
    ):
        """
        Initialize AuditSink with optional CSV and database outputs.
        
        Args:
            csv_output_path: Path to CSV file for event logging
            db_connector: DatabaseConnector instance for database persistence
        """
        self.csv_output_path = csv_output_path
        self.db_connector = db_connector
        self.security_logger = get_security_logger()
        
        if self.csv_output_path:
            self._initialize_csv()
        
        logger.info(
            f"AuditSink initialized: CSV output {'enabled' if csv_output_path else 'disabled'}, "
            f"database output {'enabled' if db_connector else 'disabled'}"
        )
    
    def _initialize_csv(self) -> None:
        """
        Create CSV file with headers if it doesn't exist.
        """
        try:
            csv_dir = os.path.dirname(self.csv_output_path)
            if csv_dir:
                Path(csv_dir).mkdir(parents=True, exist_ok=True)
            
            file_exists = os.path.exists(self.csv_output_path)
            file_has_content = file_exists and os.path.getsize(self.csv_output_path) > 0
            
            if not file_has_content:
                with open(self.csv_output_path, 'w', newline='') as csvfile:
                    writer = csv.writer(csvfile)
                    writer.writerow(CSV_HEADERS)
                logger.info(f"CSV file initialized: {self.csv_output_path}")
        except OSError as e:
            logger.error(f"Error initializing CSV file: {e}")
    
    def record(
        self,
        event_type: str,
        status: AuditStatus,
        data: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        """
        Record a security event on all configured outputs.
        
        Args:
            event_type: Event name, e.g. 'CSRF_ATTEMPT'
            status: Audit status of the event
            data: Event details; 'ip' and 'user_id' keys are lifted into columns
            timestamp: When the event happened (defaults to now, UTC)
        """
        status = AuditStatus(status)
        data = dict(data or {})
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        ip_address = data.get('ip')
        user_id = data.get('user_id')
        
        # 1. Security log (always enabled)
        self.security_logger.log(
            _LEVELS[status],
            f"Security event {event_type} [{status.value}]: {_to_json(data)}"
        )
        
        # 2. CSV output (if configured)
        if self.csv_output_path:
            self.log_to_csv(timestamp, event_type, status, data, ip_address, user_id)
        
        # 3. Database output (if configured)
        if self.db_connector:
            self.log_to_database(timestamp, event_type, status, data, ip_address, user_id)
    
    def log_to_csv(
        self,
        timestamp: datetime,
        event_type: str,
        status: AuditStatus,
        data: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> bool:
        """
        Append an event to the CSV file.
        
        Returns:
            bool: True if successful, False otherwise
        """
        try:
            with open(self.csv_output_path, 'a', newline='') as csvfile:
                writer = csv.writer(csvfile)
                writer.writerow([
                    timestamp.isoformat(),
                    event_type,
                    AuditStatus(status).value,
                    ip_address or '',
                    user_id or '',
                    _to_json(data)
                ])
            logger.debug(f"Security event logged to CSV: {event_type}")
            return True
        except OSError as e:
            logger.error(f"Error writing to CSV: {e}")
            return False
    
    def log_to_database(
        self,
        timestamp: datetime,
        event_type: str,
        status: AuditStatus,
        data: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Optional[int]:
        """
        Insert an event into the database.
        
        Returns:
            int: Event ID if successful, None otherwise
        """
        try:
            event_id = self.db_connector.insert_security_event(
                event_type=event_type,
                status=AuditStatus(status).value,
                details=json.loads(_to_json(data)),
                ip_address=ip_address,
                user_id=str(user_id) if user_id is not None else None,
                created_at=timestamp
            )
            
            if event_id:
                logger.debug(f"Security event logged to database with ID: {event_id}")
            return event_id
            
        except Exception as e:
            logger.error(f"Error writing to database: {e}")
            return None


def _to_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, default=_json_default, sort_keys=True)


def _json_default(value):
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if hasattr(value, "value"):
        return value.value
    return str(value)
