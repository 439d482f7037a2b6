"""
Tests for argument validation and the exception hierarchy.
"""

import pytest

from context_store.utils.exceptions import (
    AlreadyExistsError,
    BackendError,
    ConflictError,
    ContextStoreError,
    DeadlineExceededError,
    InvalidArgumentError,
    LockTimeoutError,
    NotFoundError,
    OperationAbortedError,
    OperationCancelledError,
    wrap_exception,
)
from context_store.utils.validation import (
    normalize_version,
    parse_version_token,
    require,
    validate_content,
    validate_task_id,
    validate_version,
)


class TestValidation:

    @pytest.mark.parametrize("task_id", ["task_1", "task_1.2.3", "a" * 256, "日本"])
    def test_valid_task_ids(self, task_id):
        assert validate_task_id(task_id)

    @pytest.mark.parametrize("task_id", ["", "   ", "a" * 257, "bad\nid", None, 12])
    def test_invalid_task_ids(self, task_id):
        result = validate_task_id(task_id)
        assert not result
        assert result.errors

    @pytest.mark.parametrize("version,expected", [(1, "1"), ("3", "3"), ("007", "7"), (" 4 ", "4"), ("2@1", "2"), ("03@0", "3")])
    def test_normalize_version(self, version, expected):
        assert normalize_version(version) == expected

    @pytest.mark.parametrize("version", [0, -1, "0", "abc", "1.5", "", True, None, 2.0, "1@", "1@x", "@1", "1@-1", "0@0"])
    def test_invalid_versions(self, version):
        assert not validate_version(version)
        with pytest.raises(InvalidArgumentError) as exc_info:
            normalize_version(version)
        assert exc_info.value.parameter_name == "version"

    @pytest.mark.parametrize("version,expected", [
        ("2@1", ("2", 1)),
        (" 02@0 ", ("2", 0)),
        ("2", ("2", None)),
        (2, ("2", None)),
    ])
    def test_parse_version_token(self, version, expected):
        assert parse_version_token(version) == expected

    def test_content(self):
        assert validate_content("notes")
        assert not validate_content("")
        assert validate_content("", allow_empty=True)
        assert not validate_content("x" * 11, max_length=10)
        assert not validate_content(b"bytes")

    def test_require_raises_with_errors(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            require(validate_task_id(""), "task_id", "")
        assert "must not be empty" in exc_info.value.message
        assert exc_info.value.error_code == "INVALID_ARGUMENT"

    def test_validation_result_str(self):
        assert str(validate_task_id("ok")) == "Validation passed"
        assert str(validate_task_id("")).startswith("Validation failed")


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(LockTimeoutError, ConflictError)
        assert issubclass(DeadlineExceededError, OperationAbortedError)
        assert issubclass(OperationCancelledError, OperationAbortedError)
        for cls in (AlreadyExistsError, NotFoundError, ConflictError, InvalidArgumentError, BackendError):
            assert issubclass(cls, ContextStoreError)

    def test_error_codes(self):
        assert AlreadyExistsError("t").error_code == "ALREADY_EXISTS"
        assert NotFoundError("t").error_code == "NOT_FOUND"
        assert ConflictError("t", "stale").error_code == "CONFLICT"
        assert LockTimeoutError("t", "patch_version", 1.0).error_code == "LOCK_TIMEOUT"
        assert DeadlineExceededError("op").error_code == "DEADLINE_EXCEEDED"
        assert OperationCancelledError("op").error_code == "CANCELLED"

    def test_retryable(self):
        assert ConflictError("t", "stale").retryable is True
        assert LockTimeoutError("t", "op", 0.5).retryable is True
        assert NotFoundError("t").retryable is False

    def test_not_found_details(self):
        err = NotFoundError("task_1", "4")
        assert err.details == {"task_id": "task_1", "version": "4"}
        assert "Version '4'" in err.message

    def test_to_dict(self):
        data = ConflictError("task_1", "stale", expected="2", actual="3").to_dict()
        assert data["error_type"] == "ConflictError"
        assert data["details"]["expected"] == "2"
        assert data["details"]["actual"] == "3"
        assert data["retryable"] is True

    def test_wrap_exception(self):
        original = NotFoundError("t")
        assert wrap_exception(original, "op") is original

        assert isinstance(wrap_exception(ValueError("bad"), "op"), InvalidArgumentError)

        wrapped = wrap_exception(ValueError("lock"), "acquire_lock", {"backend": "redis"})
        assert isinstance(wrapped, BackendError)
        assert wrapped.details["backend"] == "redis"

        wrapped = wrap_exception(ConnectionError("down"), "connect")
        assert isinstance(wrapped, BackendError)
        assert wrapped.original_error.__class__ is ConnectionError
