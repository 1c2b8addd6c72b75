"""
Unit tests for AuditSink module.

Tests event distribution to the security log, CSV, and database outputs.
"""

import csv
import json
import logging
import os
from datetime import datetime, timezone

from sentinel_monitor.audit_sink import CSV_HEADERS, AuditSink
from sentinel_monitor.logging_config import SECURITY_LOGGER_NAME, configure_logging
from sentinel_monitor.models import AnomalyReport, AnomalyType, AuditStatus, Severity

EVENT_TIME = datetime(2026, 1, 28, 15, 30, 45, tzinfo=timezone.utc)


def read_rows(path):
    with open(path, 'r') as f:
        return list(csv.DictReader(f))


class TestAuditSinkInitialization:
    """Test AuditSink initialization."""

    def test_csv_file_created_with_headers(self, temp_csv_file):
        AuditSink(csv_output_path=temp_csv_file)

        with open(temp_csv_file, 'r') as f:
            headers = next(csv.reader(f))
        assert headers == CSV_HEADERS

    def test_csv_directory_created(self, temp_dir):
        path = os.path.join(temp_dir, "nested", "events.csv")
        AuditSink(csv_output_path=path)
        assert os.path.exists(path)

    def test_existing_csv_not_truncated(self, temp_csv_file):
        sink = AuditSink(csv_output_path=temp_csv_file)
        sink.record("CSRF_ATTEMPT", AuditStatus.INFO, {"ip": "10.0.0.1"})

        AuditSink(csv_output_path=temp_csv_file)
        assert len(read_rows(temp_csv_file)) == 1

    def test_log_only(self):
        sink = AuditSink()
        assert sink.csv_output_path is None
        assert sink.db_connector is None


class TestRecord:
    """Test record() on each output."""

    def test_security_log_levels(self, caplog):
        sink = AuditSink()
        with caplog.at_level(logging.INFO, logger=SECURITY_LOGGER_NAME):
            sink.record("CSRF_ATTEMPT", AuditStatus.INFO, {"ip": "10.0.0.1"})
            sink.record("SUSPICIOUS_ACTIVITY", AuditStatus.WARNING, {"ip": "10.0.0.1"})
            sink.record("USER_BLOCKED", AuditStatus.BLOCKED, {"user_id": "alice"})
            sink.record("IP_UNBLOCKED", AuditStatus.UNBLOCKED, {"ip": "10.0.0.1"})

        records = [r for r in caplog.records if r.name == SECURITY_LOGGER_NAME]
        assert [r.levelno for r in records] == [logging.INFO, logging.WARNING, logging.ERROR, logging.WARNING]
        assert "USER_BLOCKED [BLOCKED]" in records[2].getMessage()

    def test_csv_row(self, temp_csv_file):
        sink = AuditSink(csv_output_path=temp_csv_file)
        sink.record(
            "LOGIN_FAILED",
            AuditStatus.INFO,
            {"ip": "192.168.1.100", "user_id": "alice", "attempts": 2},
            timestamp=EVENT_TIME
        )

        [row] = read_rows(temp_csv_file)
        assert row["timestamp"] == EVENT_TIME.isoformat()
        assert row["event_type"] == "LOGIN_FAILED"
        assert row["status"] == "INFO"
        assert row["ip_address"] == "192.168.1.100"
        assert row["user_id"] == "alice"
        assert json.loads(row["details"])["attempts"] == 2

    def test_database_insert(self, mock_db_connector):
        sink = AuditSink(db_connector=mock_db_connector)
        sink.record("IP_BLOCKED", AuditStatus.BLOCKED, {"ip": "10.0.0.1", "duration": 3600}, timestamp=EVENT_TIME)

        mock_db_connector.insert_security_event.assert_called_once_with(
            event_type="IP_BLOCKED",
            status="BLOCKED",
            details={"ip": "10.0.0.1", "duration": 3600},
            ip_address="10.0.0.1",
            user_id=None,
            created_at=EVENT_TIME
        )

    def test_non_json_values_serialized(self, mock_db_connector):
        """Test sets, datetimes, enums and reports in event data."""
        sink = AuditSink(db_connector=mock_db_connector)
        anomaly = AnomalyReport(AnomalyType.HIGH_FREQUENCY, Severity.HIGH, {"count": 100, "timeframe": "5min"})
        sink.record("ANOMALY_DETECTED", AuditStatus.WARNING, {
            "reasons": {"XSS_ATTEMPT", "SQL_INJECTION_ATTEMPT"},
            "at": EVENT_TIME,
            "severity": Severity.LOW,
            "anomalies": [anomaly],
        })

        details = mock_db_connector.insert_security_event.call_args.kwargs["details"]
        assert details["reasons"] == ["SQL_INJECTION_ATTEMPT", "XSS_ATTEMPT"]
        assert details["at"] == EVENT_TIME.isoformat()
        assert details["severity"] == "LOW"
        assert details["anomalies"][0]["type"] == "HIGH_FREQUENCY"

    def test_database_failure_does_not_raise(self, mock_db_connector, temp_csv_file):
        mock_db_connector.insert_security_event.side_effect = Exception("connection reset")
        sink = AuditSink(csv_output_path=temp_csv_file, db_connector=mock_db_connector)

        sink.record("CSRF_ATTEMPT", AuditStatus.INFO, {"ip": "10.0.0.1"})

        assert len(read_rows(temp_csv_file)) == 1

    def test_csv_failure_does_not_raise(self, temp_dir, mock_db_connector):
        sink = AuditSink(db_connector=mock_db_connector)
        sink.csv_output_path = os.path.join(temp_dir, "missing-dir", "events.csv")

        sink.record("CSRF_ATTEMPT", AuditStatus.INFO, {"ip": "10.0.0.1"})

        mock_db_connector.insert_security_event.assert_called_once()


class TestConfigureLogging:
    """Test security log file handler setup."""

    def test_security_log_file(self, temp_dir):
        path = os.path.join(temp_dir, "logs", "security.log")
        logger = configure_logging("INFO", path)
        try:
            configure_logging("INFO", path)
            file_handlers = [h for h in logger.handlers if getattr(h, "baseFilename", None) == os.path.abspath(path)]
            assert len(file_handlers) == 1

            AuditSink().record("USER_BLOCKED", AuditStatus.BLOCKED, {"user_id": "alice"})
            file_handlers[0].flush()
            with open(path) as f:
                assert "USER_BLOCKED" in f.read()
        finally:
            for handler in list(logger.handlers):
                if getattr(handler, "baseFilename", None) == os.path.abspath(path):
                    logger.removeHandler(handler)
                    handler.close()
