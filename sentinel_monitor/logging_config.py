"""
Logging setup for the security monitor.

Application logs go to the console; security events additionally go to a
size-rotated file through the dedicated ``sentinel_monitor.security`` logger.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

SECURITY_LOGGER_NAME = "sentinel_monitor.security"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_security_logger() -> logging.Logger:
    return logging.getLogger(SECURITY_LOGGER_NAME)


def configure_logging(
    level: str = "INFO",
    security_log_path: Optional[str] = None,
    max_bytes: int = 20 * 1024 * 1024,
    backup_count: int = 14
) -> logging.Logger:
    """
    Configure root logging and the security event logger.

    Args:
        level: Root log level name
        security_log_path: File for security events; skipped when None
        max_bytes: Rotation size for the security log
        backup_count: Number of rotated files to keep

    Returns:
        The security logger
    """
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)

    security_logger = get_security_logger()
    security_logger.setLevel(logging.INFO)

    if security_log_path:
        Path(security_log_path).parent.mkdir(parents=True, exist_ok=True)
        target = os.path.abspath(security_log_path)
        already_attached = any(
            isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename == target
            for h in security_logger.handlers
        )
        if not already_attached:
            handler = logging.handlers.RotatingFileHandler(
                security_log_path, maxBytes=max_bytes, backupCount=backup_count
            )
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            security_logger.addHandler(handler)

    return security_logger
