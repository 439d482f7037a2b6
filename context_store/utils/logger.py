"""
Logger module - Logging configuration and utilities

This module provides logging configuration with support for:
- File and console logging
- Configuration from config.properties / .env
- Structured logging with context
"""

import logging
from typing import Any


# Flag to track if ComprehensiveLogger has been initialized
_comprehensive_logger_initialized = False


def _ensure_comprehensive_logger_initialized() -> None:
    """
    Initialize ComprehensiveLogger with environment configuration on first use.
    This is called automatically by get_logger().
    """
    global _comprehensive_logger_initialized

    if _comprehensive_logger_initialized:
        return

    _comprehensive_logger_initialized = True

    try:
        from .comprehensive_logger import ComprehensiveLogger
        from context_store.config import ConfigProperties

        ConfigProperties.load_env_file()
        ComprehensiveLogger.initialize(**ConfigProperties.get_logging_config())

    except (OSError, ValueError) as e:
        # Fallback to basic logging if the configured folder or level is unusable
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        logging.getLogger(__name__).warning(
            f"Failed to initialize ComprehensiveLogger: {e}. Using basic logging."
        )


def get_logger(name: str) -> Any:
    """
    Get or create a logger with standard formatting and environment configuration.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured StoreLogger instance
    """
    _ensure_comprehensive_logger_initialized()

    from .comprehensive_logger import ComprehensiveLogger
    return ComprehensiveLogger.get_logger(name)

