"""
Utilities module - Logging, validation and the exception hierarchy
"""

from .logger import get_logger
from .comprehensive_logger import ComprehensiveLogger, StoreLogger
from .validation import (
    ValidationResult,
    require,
    validate_task_id,
    validate_version,
    validate_content,
    normalize_version,
    parse_version_token,
    TOKEN_SEPARATOR,
)
from .exceptions import (
    ContextStoreError,
    AlreadyExistsError,
    NotFoundError,
    ConflictError,
    LockTimeoutError,
    InvalidArgumentError,
    ConfigurationError,
    OperationAbortedError,
    DeadlineExceededError,
    OperationCancelledError,
    BackendError,
    wrap_exception,
)

__all__ = [
    'get_logger',
    'ComprehensiveLogger',
    'StoreLogger',
    'ValidationResult',
    'require',
    'validate_task_id',
    'validate_version',
    'validate_content',
    'normalize_version',
    'parse_version_token',
    'TOKEN_SEPARATOR',
    'ContextStoreError',
    'AlreadyExistsError',
    'NotFoundError',
    'ConflictError',
    'LockTimeoutError',
    'InvalidArgumentError',
    'ConfigurationError',
    'OperationAbortedError',
    'DeadlineExceededError',
    'OperationCancelledError',
    'BackendError',
    'wrap_exception',
]
