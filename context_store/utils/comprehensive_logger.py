"""
Comprehensive Logging System with File and Console Output

Features:
- Configurable log folder (via config.properties / environment)
- Console and rotating file logging
- Structured logging with context
- Performance metrics tracking for store operations
"""

import logging
import logging.handlers
import sys
import json
from pathlib import Path
from typing import Optional, Dict, Any


LOG_FILE_NAME = "context_store.log"


class ComprehensiveLogger:
    """
    Centralized logging system with file and console support.

    Usage:
        ComprehensiveLogger.initialize(log_level="DEBUG", enable_file=False)
        logger = ComprehensiveLogger.get_logger("context_store.core")
        logger.info("Message", extra={"task_id": "task_1"})
    """

    _loggers: Dict[str, "StoreLogger"] = {}
    _log_folder: Optional[str] = None
    _config: Dict[str, Any] = {}
    _file_handler: Optional[logging.Handler] = None

    @classmethod
    def initialize(
        cls,
        log_folder: Optional[str] = None,
        log_level: str = "INFO",
        enable_console: bool = True,
        enable_file: bool = False,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5
    ) -> None:
        """
        Initialize the comprehensive logging system.

        Args:
            log_folder: Folder for log files (default: ./logs)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            enable_console: Enable console logging
            enable_file: Enable rotating file logging
            max_bytes: Max file size before rotation (default: 10MB)
            backup_count: Number of backup files to keep
        """
        cls._log_folder = log_folder or "./logs"
        cls._config = {
            "log_level": log_level.upper(),
            "enable_console": enable_console,
            "enable_file": enable_file,
            "max_bytes": max_bytes,
            "backup_count": backup_count,
        }
        cls._file_handler = None

        if enable_file:
            Path(cls._log_folder).mkdir(parents=True, exist_ok=True)

        # Loggers created before initialize() pick up the new settings
        for store_logger in cls._loggers.values():
            store_logger.configure(cls._config, cls._shared_file_handler())

    @classmethod
    def get_logger(cls, name: str) -> "StoreLogger":
        """
        Get or create a logger instance.

        Args:
            name: Logger name (typically __name__)

        Returns:
            StoreLogger instance
        """
        if name not in cls._loggers:
            store_logger = StoreLogger(name)
            store_logger.configure(cls._config, cls._shared_file_handler())
            cls._loggers[name] = store_logger

        return cls._loggers[name]

    @classmethod
    def _shared_file_handler(cls) -> Optional[logging.Handler]:
        """All loggers share one rotating file so history stays in order."""
        if not cls._config.get("enable_file"):
            return None

        if cls._file_handler is None:
            log_file = Path(cls._log_folder or "./logs") / LOG_FILE_NAME
            handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=cls._config.get("max_bytes", 10 * 1024 * 1024),
                backupCount=cls._config.get("backup_count", 5),
                encoding='utf-8'
            )
            handler.setLevel(cls._config.get("log_level", "INFO"))
            handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            cls._file_handler = handler

        return cls._file_handler

    @classmethod
    def flush(cls) -> None:
        """Flush all loggers."""
        for store_logger in cls._loggers.values():
            store_logger.flush()


class StoreLogger:
    """
    Individual logger instance with console and file support.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def configure(self, config: Dict[str, Any], file_handler: Optional[logging.Handler]) -> None:
        """Attach handlers according to *config*."""
        self.logger.setLevel(config.get("log_level", "INFO"))
        self.logger.handlers.clear()

        if config.get("enable_console"):
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(config.get("log_level", "INFO"))
            handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(handler)

        if file_handler is not None:
            self.logger.addHandler(file_handler)

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def debug(self, message: str, extra: Optional[Dict] = None) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict] = None) -> None:
        """Log info message."""
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict] = None) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict] = None) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, extra)

    def critical(self, message: str, extra: Optional[Dict] = None) -> None:
        """Log critical message."""
        self._log(logging.CRITICAL, message, extra)

    def _log(self, level: int, message: str, extra: Optional[Dict] = None) -> None:
        if not self.logger.isEnabledFor(level):
            return

        if extra:
            message = f"{message} | {json.dumps(extra, default=str)}"

        # stacklevel points funcName/lineno at the caller, not this wrapper
        self.logger.log(level, message, stacklevel=3)

    def log_performance(
        self,
        operation: str,
        duration_seconds: float,
        success: bool = True,
        metadata: Optional[Dict] = None
    ) -> None:
        """
        Log performance metrics.

        Args:
            operation: Operation name
            duration_seconds: Duration in seconds
            success: Whether operation succeeded
            metadata: Additional metadata
        """
        status = "✓" if success else "✗"
        log_message = f"{status} {operation} completed in {duration_seconds * 1000:.2f}ms"

        extra = dict(metadata or {})
        extra.update({
            "operation": operation,
            "duration_ms": round(duration_seconds * 1000, 3),
            "success": success
        })

        if success:
            self.debug(log_message, extra=extra)
        else:
            self.warning(log_message, extra=extra)

    def flush(self) -> None:
        """Flush all handlers."""
        for handler in self.logger.handlers:
            handler.flush()
