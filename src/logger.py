"""
Centralized logging configuration for Box Scanner.

Provides:
- Structured JSON log files (one per day, rotated by size)
- A readable console handler for development
- Cleanup of log files older than the retention period
- Context fields (box_id, session_id) attached to every JSON entry

Log file location: LogDir from config.ini, default ~/.box_scanner/logs/
Log file format: YYYY-MM-DD.log

Example log entry:
    {"timestamp": "2026-10-19T14:30:45.123", "level": "INFO", "tool": "box_scanner",
     "box_id": "WB_100", "session_id": "20261019_143000", "module": "box_scan_logic",
     "function": "on_decode", "line": 120, "message": "Product counted: ABC123 (2)"}
"""

import logging
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any
from contextvars import ContextVar

from app_config import AppConfig, DEFAULT_CONFIG_PATH, read_config_file


TOOL_NAME = 'box_scanner'

_box_id: ContextVar[Optional[str]] = ContextVar('box_id', default=None)
_session_id: ContextVar[Optional[str]] = ContextVar('session_id', default=None)


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for the log file.

    Fields: timestamp, level, tool, box_id, session_id, module, function,
    line, message, and exc_info / extra when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'tool': TOOL_NAME,
            'box_id': _box_id.get(),
            'session_id': _session_id.get(),
            'module': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data['extra'] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False)


class AppLogger:
    """
    Configures logging once, on first use, for the whole application.

    Settings come from the [Logging] section of config.ini:
    - LogDir: directory for daily log files
    - LogLevel: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - MaxLogSizeMB: size at which the daily file is rotated
    - LogRetentionDays: how long old log files are kept
    """

    _instance: Optional[logging.Logger] = None
    _initialized: bool = False

    @classmethod
    def get_logger(cls, name: str = 'BoxScanner') -> logging.Logger:
        """
        Get a named logger, setting up handlers on the first call.

        Usage in modules:
            from logger import get_logger
            logger = get_logger(__name__)
        """
        if not cls._initialized:
            cls._setup_logging()
            cls._initialized = True

        return logging.getLogger(name)

    @classmethod
    def _setup_logging(cls):
        """Attach the JSON file handler and the console handler to the root logger."""
        config = cls._load_config()

        log_dir = config.log_dir
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_dir = Path(os.path.expanduser("~")) / ".box_scanner" / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            print(f"Warning: Could not create log directory. Using {log_dir}. Error: {e}")

        log_file = log_dir / f"{datetime.now():%Y-%m-%d}.log"

        log_level_str = config.log_level
        log_level = getattr(logging, log_level_str, logging.INFO)

        max_log_size = config.max_log_size_mb * 1024 * 1024

        console_formatter = logging.Formatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=30,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(StructuredJSONFormatter())

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(console_formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        cls._cleanup_old_logs(log_dir, config.log_retention_days)

        logger = logging.getLogger('BoxScanner')
        logger.info("=" * 80)
        logger.info("Box Scanner Started")
        logger.info(f"Log Level: {log_level_str}")
        logger.info(f"Log File: {log_file}")
        logger.info("=" * 80)

    @staticmethod
    def _load_config() -> AppConfig:
        """Load config.ini from the working directory (defaults if absent)."""
        return AppConfig(read_config_file(DEFAULT_CONFIG_PATH))

    @staticmethod
    def _cleanup_old_logs(log_dir: Path, retention_days: int):
        """
        Delete *.log* files older than retention_days.

        retention_days <= 0 keeps everything.
        """
        if retention_days <= 0:
            return

        cutoff_date = datetime.now() - timedelta(days=retention_days)

        try:
            for log_file in log_dir.glob("*.log*"):
                file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
                if file_mtime < cutoff_date:
                    log_file.unlink()
                    logging.getLogger('BoxScanner').debug(f"Deleted old log: {log_file.name}")
        except OSError as e:
            # Non-fatal: a locked or vanished file must not stop startup
            logging.getLogger('BoxScanner').warning(f"Failed to cleanup old logs: {e}")


def get_logger(name: str = 'BoxScanner') -> logging.Logger:
    """
    Get application logger.

    Example:
        >>> from logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Box started")
    """
    return AppLogger.get_logger(name)


def set_box_context(box_id: Optional[str]) -> None:
    """Attach the active box id to subsequent JSON log entries (None clears it)."""
    _box_id.set(box_id)


def set_session_context(session_id: Optional[str]) -> None:
    """Attach the scan session id to subsequent JSON log entries (None clears it)."""
    _session_id.set(session_id)


def clear_logging_context() -> None:
    """Clear box_id and session_id."""
    _box_id.set(None)
    _session_id.set(None)
