"""
Logging setup and configuration for SCIM User Sync.

This module provides centralized logging configuration: console output for
CLI and event-driven runs, optional rotating file output, and scrubbing of
bearer tokens and other secrets from every record.
"""

import os
import re
import logging
import logging.handlers
from typing import Dict, Any, Optional


class SensitiveDataFilter(logging.Filter):
    """Filter to scrub sensitive data from log messages."""

    SENSITIVE_KEYWORDS = [
        'password', 'token', 'secret', 'api_key', 'client_secret',
        'access_token', 'refresh_token', 'authorization', 'credential',
    ]

    def filter(self, record):
        """Filter out sensitive data from log records."""
        if record.args:
            record.msg = record.getMessage()
            record.args = None

        msg = str(record.msg)

        # Pattern for Authorization: Bearer token
        msg = re.sub(r'(Bearer\s+)[^\s,\'"}\]]+', r'\1****', msg, flags=re.IGNORECASE)

        for keyword in self.SENSITIVE_KEYWORDS:
            # key=value
            msg = re.sub(rf'({keyword}\s*=\s*)[^\s,}}\]]+', r'\1****', msg, flags=re.IGNORECASE)
            # "key": "value" and 'key': 'value'
            msg = re.sub(rf'(["\']{keyword}["\']\s*:\s*["\'])(?!Bearer\s)[^"\']*(["\'])',
                         r'\1****\2', msg, flags=re.IGNORECASE)

        record.msg = msg
        return True


class LoggingManager:
    """
    Manages logging configuration for the SCIM User Sync application.

    Console output is always configured; file output with daily rotation is
    added when a log directory is configured.
    """

    def __init__(self):
        self.configured = False
        self.log_dir = None
        self.retention_days = 7

    def setup_logging(self, config: Optional[Dict[str, Any]]) -> None:
        """
        Set up logging based on configuration.

        Args:
            config: Logging configuration dictionary
        """
        if self.configured:
            return

        logging_config = config if config else {}

        log_level = str(logging_config.get('level', 'INFO')).upper()
        self.log_dir = logging_config.get('log_dir')
        self.retention_days = logging_config.get('retention_days', 7)
        console_enabled = logging_config.get('console_output', True)
        level = getattr(logging, log_level, logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # Clear any existing handlers
        root_logger.handlers.clear()

        sensitive_filter = SensitiveDataFilter()

        if console_enabled:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s',
                datefmt='%y-%m-%d %H:%M:%S'
            ))
            console_handler.addFilter(sensitive_filter)
            root_logger.addHandler(console_handler)

        if self.log_dir:
            file_handler = self._create_file_handler()
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            file_handler.addFilter(sensitive_filter)
            root_logger.addHandler(file_handler)

        # httpx logs every request at INFO
        logging.getLogger('httpx').setLevel(max(level, logging.WARNING))

        self.configured = True

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={log_level}, dir={self.log_dir}, "
                     f"console={console_enabled}")

    def _create_file_handler(self) -> logging.Handler:
        """Create a daily rotating file handler in the log directory."""
        os.makedirs(self.log_dir, exist_ok=True)

        handler = logging.handlers.TimedRotatingFileHandler(
            filename=os.path.join(self.log_dir, 'scim_user_sync.log'),
            when='midnight',
            interval=1,
            backupCount=self.retention_days,
            encoding='utf-8'
        )
        handler.suffix = '%Y-%m-%d'
        return handler

    def reset(self) -> None:
        """Allow logging to be configured again."""
        self.configured = False


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(config: Optional[Dict[str, Any]]) -> None:
    """
    Convenience function to set up logging.

    Args:
        config: Logging configuration dictionary
    """
    _logging_manager.setup_logging(config)


class AuditLogger:
    """Logger for the audit trail of user operations."""

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def log_user_operation(self, operation: str, user: str, success: bool):
        """Log user operations for audit trail."""
        status = "SUCCESS" if success else "FAILURE"
        self.logger.info(f"User operation {status}: {operation} user={user}")


# Global audit logger instance
audit_logger = AuditLogger()
