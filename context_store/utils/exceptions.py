"""
Standardized Exception Hierarchy for the Context Store

This module provides the exception hierarchy used by every layer of the
context store: the version ledger, the concurrency gate, the persistence
backends and the configuration loader.

Exception Categories:
- Lookup Errors: missing tasks or versions, creation conflicts
- Concurrency Errors: optimistic-check failures and lock timeouts
- Validation Errors: malformed identifiers or content
- Abort Errors: deadline exceeded or request cancelled
- Resource Errors: persistence backend failures

Usage:
    from context_store.utils.exceptions import (
        NotFoundError,
        ConflictError,
    )

    try:
        store.update_context("task_1", "fixed notes", version="2@1")
    except ConflictError:
        # re-read current state, then retry
        ...
"""

from typing import Optional, Any, Dict


# ============================================================================
# Base Exception
# ============================================================================

class ContextStoreError(Exception):
    """
    Base exception for all context store errors.

    All custom exceptions inherit from this class so callers can catch
    every store failure with a single except clause.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for categorization
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details
        }

    def __str__(self) -> str:
        """String representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ============================================================================
# Lookup Errors
# ============================================================================

class AlreadyExistsError(ContextStoreError):
    """Raised when a context is created for a task that already has one."""

    def __init__(self, task_id: str):
        super().__init__(
            message=f"Context already exists for task '{task_id}'",
            error_code="ALREADY_EXISTS",
            details={"task_id": task_id}
        )
        self.task_id = task_id


class NotFoundError(ContextStoreError):
    """Raised when a task or one of its versions is absent."""

    def __init__(self, task_id: str, version: Optional[str] = None):
        if version is None:
            message = f"No context found for task '{task_id}'"
        else:
            message = f"Version '{version}' not found for task '{task_id}'"

        details: Dict[str, Any] = {"task_id": task_id}
        if version is not None:
            details["version"] = version

        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            details=details
        )
        self.task_id = task_id
        self.version = version


# ============================================================================
# Concurrency Errors
# ============================================================================

class ConflictError(ContextStoreError):
    """
    Raised when an optimistic-concurrency expectation no longer holds.

    Callers should re-read the current state and retry.
    """

    retryable = True

    def __init__(
        self,
        task_id: str,
        message: str,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None
    ):
        details: Dict[str, Any] = {"task_id": task_id}
        if expected is not None:
            details["expected"] = str(expected)
        if actual is not None:
            details["actual"] = str(actual)

        super().__init__(
            message=f"Conflict on task '{task_id}': {message}",
            error_code="CONFLICT",
            details=details
        )
        self.task_id = task_id
        self.expected = expected
        self.actual = actual


class LockTimeoutError(ConflictError):
    """Raised when the per-task lock could not be acquired in time."""

    def __init__(self, task_id: str, operation: str, timeout: float):
        super().__init__(
            task_id=task_id,
            message=f"could not acquire task lock for '{operation}' within {timeout:.3f}s"
        )
        self.error_code = "LOCK_TIMEOUT"
        self.details["operation"] = operation
        self.details["timeout"] = timeout
        self.operation = operation
        self.timeout = timeout


# ============================================================================
# Validation Errors
# ============================================================================

class InvalidArgumentError(ContextStoreError):
    """Raised when an identifier, version reference or content is malformed."""

    def __init__(
        self,
        parameter_name: str,
        message: str,
        actual_value: Optional[Any] = None
    ):
        details: Dict[str, Any] = {"parameter_name": parameter_name}
        if actual_value is not None:
            details["actual_value"] = str(actual_value)[:100]

        super().__init__(
            message=f"Invalid parameter '{parameter_name}': {message}",
            error_code="INVALID_ARGUMENT",
            details=details
        )
        self.parameter_name = parameter_name


class ConfigurationError(ContextStoreError):
    """Raised when there's an issue with configuration or settings."""

    def __init__(
        self,
        setting_name: str,
        message: str,
        actual_value: Optional[Any] = None
    ):
        details: Dict[str, Any] = {"setting_name": setting_name}
        if actual_value is not None:
            details["actual_value"] = str(actual_value)

        super().__init__(
            message=f"Configuration error for '{setting_name}': {message}",
            error_code="CONFIG_ERROR",
            details=details
        )
        self.setting_name = setting_name


# ============================================================================
# Abort Errors
# ============================================================================

class OperationAbortedError(ContextStoreError):
    """Base class for operations stopped by the caller's request context."""

    def __init__(self, operation: str, message: str, task_id: Optional[str] = None):
        super().__init__(
            message=f"Operation '{operation}' aborted: {message}",
            error_code="ABORTED",
            details={"operation": operation, "task_id": task_id}
        )
        self.operation = operation
        self.task_id = task_id


class DeadlineExceededError(OperationAbortedError):
    """Raised when the caller's deadline elapsed before the mutation applied."""

    def __init__(self, operation: str, task_id: Optional[str] = None):
        super().__init__(operation, "deadline exceeded", task_id=task_id)
        self.error_code = "DEADLINE_EXCEEDED"


class OperationCancelledError(OperationAbortedError):
    """Raised when the caller cancelled the request before the mutation applied."""

    def __init__(self, operation: str, task_id: Optional[str] = None):
        super().__init__(operation, "request cancelled", task_id=task_id)
        self.error_code = "CANCELLED"


# ============================================================================
# Resource Errors
# ============================================================================

class BackendError(ContextStoreError):
    """Raised when the persistence backend fails."""

    def __init__(
        self,
        backend: str,
        operation: str,
        message: str,
        original_error: Optional[Exception] = None
    ):
        details: Dict[str, Any] = {"backend": backend, "operation": operation}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"{backend} backend failed during '{operation}': {message}",
            error_code="BACKEND_ERROR",
            details=details
        )
        self.backend = backend
        self.operation = operation
        self.original_error = original_error


# ============================================================================
# Utility Functions
# ============================================================================

def wrap_exception(
    original_error: Exception,
    operation: str,
    context: Optional[Dict[str, Any]] = None
) -> ContextStoreError:
    """
    Wrap a generic exception in an appropriate context store exception.

    Args:
        original_error: The original exception to wrap
        operation: The operation that was being performed
        context: Additional context about the error

    Returns:
        An appropriate ContextStoreError subclass
    """
    context = context or {}

    if isinstance(original_error, ContextStoreError):
        return original_error

    # Backend client errors may also subclass ValueError (redis LockError)
    if isinstance(original_error, (TypeError, ValueError)) and "backend" not in context:
        return InvalidArgumentError(
            parameter_name=context.get("parameter_name", "unknown"),
            message=str(original_error)
        )

    return BackendError(
        backend=context.get("backend", "unknown"),
        operation=operation,
        message=str(original_error),
        original_error=original_error
    )


__all__ = [
    # Base
    "ContextStoreError",

    # Lookup
    "AlreadyExistsError",
    "NotFoundError",

    # Concurrency
    "ConflictError",
    "LockTimeoutError",

    # Validation
    "InvalidArgumentError",
    "ConfigurationError",

    # Abort
    "OperationAbortedError",
    "DeadlineExceededError",
    "OperationCancelledError",

    # Resources
    "BackendError",

    # Utilities
    "wrap_exception",
]
