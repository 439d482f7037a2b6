"""
Concurrency Gate - per-task serialization and optimistic checks

Structural operations (create, supersede, patch, rollback, delete) run inside
``ConcurrencyGate.guard``, which holds the backend's lock for that one task.
Operations on different tasks never wait on each other. Corrective patches
additionally pass ``expect_latest`` / ``expect_revision`` so that a caller
acting on a stale view of the ledger gets a ConflictError instead of
clobbering a concurrent correction.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from context_store.core.request_context import RequestContext
from context_store.models import ContextVersion, TaskLedger
from context_store.storage.base import LedgerBackend
from context_store.utils.exceptions import (
    ConflictError,
    DeadlineExceededError,
    LockTimeoutError,
    OperationAbortedError,
)
from context_store.utils.logger import get_logger

logger = get_logger(__name__)


class ConcurrencyGate:
    """
    Serializes mutations per task identifier.

    Usage:
        gate = ConcurrencyGate(backend, lock_timeout=5.0)
        with gate.guard("task_1", "patch_version", ctx):
            ledger = backend.get_ledger("task_1")
            gate.expect_latest(ledger, "2")
            ...
    """

    def __init__(self, backend: LedgerBackend, lock_timeout: float = 5.0):
        self.backend = backend
        self.lock_timeout = lock_timeout
        self._stats_lock = threading.Lock()
        self.stats = {
            "locks_acquired": 0,
            "lock_timeouts": 0,
            "conflicts": 0,
            "aborted": 0,
        }

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    @contextmanager
    def guard(
        self,
        task_id: str,
        operation: str,
        ctx: Optional[RequestContext] = None
    ) -> Iterator[None]:
        """
        Hold the task lock for the duration of the block.

        Raises:
            OperationCancelledError / DeadlineExceededError: request ended
                before or while waiting for the lock
            LockTimeoutError: lock still held by another caller after
                ``lock_timeout`` seconds
        """
        ctx = ctx or RequestContext.background()
        try:
            ctx.check(operation, task_id)
        except OperationAbortedError:
            self._count("aborted")
            raise

        timeout = self.lock_timeout
        remaining = ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)

        started = time.monotonic()
        handle: Any = self.backend.acquire_task_lock(task_id, timeout)
        if handle is None:
            if ctx.expired:
                self._count("aborted")
                raise DeadlineExceededError(operation, task_id=task_id)
            self._count("lock_timeouts")
            logger.warning(f"[GATE] Lock timeout on task {task_id} for {operation} after {timeout:.3f}s")
            raise LockTimeoutError(task_id, operation, timeout)

        self._count("locks_acquired")
        waited = time.monotonic() - started
        if waited > 0.1:
            logger.debug(f"[GATE] Waited {waited * 1000:.1f}ms for task {task_id} ({operation})")

        try:
            # Request may have ended while we were queued; nothing is mutated yet
            try:
                ctx.check(operation, task_id)
            except OperationAbortedError:
                self._count("aborted")
                raise
            yield
        finally:
            self.backend.release_task_lock(task_id, handle)

    # ------------------------------------------------------------------
    # Optimistic checks
    # ------------------------------------------------------------------

    def expect_latest(self, ledger: TaskLedger, version_id: str) -> None:
        """The caller's version must still be the one served by reads."""
        if ledger.latest_version != version_id:
            self._count("conflicts")
            raise ConflictError(
                ledger.task_id,
                f"version '{version_id}' is no longer the latest",
                expected=version_id,
                actual=ledger.latest_version
            )

    def expect_revision(self, version: ContextVersion, expected_revision: Optional[int]) -> None:
        """The caller must have seen the version's most recent correction."""
        if expected_revision is not None and version.revision != expected_revision:
            self._count("conflicts")
            raise ConflictError(
                version.task_id,
                f"version '{version.version_id}' was corrected since it was read",
                expected=expected_revision,
                actual=version.revision
            )

    def get_statistics(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)
