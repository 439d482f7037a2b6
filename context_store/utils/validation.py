"""
Validation Utilities for store arguments

Provides validation functions for task identifiers, version references and
context content. Each check returns a ValidationResult; ``require`` turns a
failed result into an InvalidArgumentError.
"""

from typing import Any, List, Optional, Tuple

from context_store.utils.exceptions import InvalidArgumentError

# Separates the version id from the revision in a version token ("3@1")
TOKEN_SEPARATOR = "@"


# ============================================================================
# VALIDATION RESULTS
# ============================================================================

class ValidationResult:
    """Result of a validation check."""

    def __init__(self, valid: bool, errors: Optional[List[str]] = None):
        self.valid = valid
        self.errors = errors or []

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            return "Validation passed"
        return f"Validation failed: {'; '.join(self.errors)}"


def require(result: ValidationResult, parameter_name: str, value: Any = None) -> None:
    """Raise InvalidArgumentError when *result* failed."""
    if not result:
        raise InvalidArgumentError(parameter_name, "; ".join(result.errors), actual_value=value)


# ============================================================================
# IDENTIFIER VALIDATION
# ============================================================================

def validate_task_id(task_id: Any, max_length: int = 256) -> ValidationResult:
    """
    Validate a task identifier.

    Task identifiers are opaque, but must be non-blank strings without
    control characters so they can be used as storage keys.
    """
    errors = []

    if not isinstance(task_id, str):
        return ValidationResult(False, [f"must be a string, got {type(task_id).__name__}"])

    if not task_id.strip():
        errors.append("must not be empty or whitespace")

    if len(task_id) > max_length:
        errors.append(f"must be at most {max_length} characters, got {len(task_id)}")

    if any(ord(c) < 32 or ord(c) == 127 for c in task_id):
        errors.append("must not contain control characters")

    return ValidationResult(len(errors) == 0, errors)


def validate_version(version: Any) -> ValidationResult:
    """
    Validate a version reference.

    Accepted forms are a version number (``3`` or ``"3"``) and a version
    token ``"3@1"`` (version id and the revision the caller observed).
    """
    if isinstance(version, bool):
        return ValidationResult(False, ["must be a version number, got bool"])

    if isinstance(version, int):
        if version < 1:
            return ValidationResult(False, [f"must be a positive integer, got {version}"])
        return ValidationResult(True)

    if not isinstance(version, str):
        return ValidationResult(False, [f"must be a string or int, got {type(version).__name__}"])

    version_part, sep, revision_part = version.strip().partition(TOKEN_SEPARATOR)
    if not version_part.isdecimal() or int(version_part) < 1:
        return ValidationResult(False, [f"must be a positive decimal number, got {version!r}"])

    if sep and not revision_part.isdecimal():
        return ValidationResult(False, [f"revision after '{TOKEN_SEPARATOR}' must be a non-negative number, got {version!r}"])

    return ValidationResult(True)


def parse_version_token(version: Any) -> Tuple[str, Optional[int]]:
    """
    Split a version reference into (version_id, revision).

    ``"03"`` -> ("3", None); ``"3@2"`` -> ("3", 2).
    """
    require(validate_version(version), "version", version)
    if isinstance(version, int):
        return str(version), None

    version_part, sep, revision_part = version.strip().partition(TOKEN_SEPARATOR)
    return str(int(version_part)), int(revision_part) if sep else None


def normalize_version(version: Any) -> str:
    """Validate *version* and return the version id in canonical form ("03" -> "3")."""
    return parse_version_token(version)[0]


# ============================================================================
# CONTENT VALIDATION
# ============================================================================

def validate_content(
    content: Any,
    max_length: int = 1024 * 1024,
    allow_empty: bool = False
) -> ValidationResult:
    """Validate context content (opaque text)."""
    if not isinstance(content, str):
        return ValidationResult(False, [f"must be a string, got {type(content).__name__}"])

    errors = []
    if not content and not allow_empty:
        errors.append("must not be empty")

    if len(content) > max_length:
        errors.append(f"must be at most {max_length} characters, got {len(content)}")

    return ValidationResult(len(errors) == 0, errors)
