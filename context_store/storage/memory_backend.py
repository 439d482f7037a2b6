"""
In-memory ledger backend for a single process.

Ledgers are published copy-on-write: a mutation builds a new TaskLedger and
swaps it into the index, so a reader holding a reference always sees a
latest pointer and version contents that belong together.
"""

import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from context_store.models import ContextVersion, TaskLedger
from context_store.storage.base import LedgerBackend
from context_store.utils.logger import get_logger

logger = get_logger(__name__)


class _LockEntry:
    """Per-task lock plus the number of threads holding or waiting on it."""

    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.Lock()
        self.refs = 0


class InMemoryLedgerBackend(LedgerBackend):
    """
    Thread-safe in-process ledger storage.

    Usage:
        backend = InMemoryLedgerBackend()
        store = ContextVersionStore(backend=backend)
    """

    name = "memory"

    def __init__(self):
        self._ledgers: Dict[str, TaskLedger] = {}
        self._index_lock = threading.Lock()
        self._locks: Dict[str, _LockEntry] = {}
        self._locks_guard = threading.Lock()
        logger.debug("[MEMORY] In-memory ledger backend initialized")

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def acquire_task_lock(self, task_id: str, timeout: float) -> Optional[Any]:
        with self._locks_guard:
            entry = self._locks.get(task_id)
            if entry is None:
                entry = self._locks[task_id] = _LockEntry()
            entry.refs += 1

        if entry.lock.acquire(timeout=max(timeout, 0)):
            return entry

        self._drop_ref(task_id, entry)
        return None

    def release_task_lock(self, task_id: str, handle: Any) -> None:
        handle.lock.release()
        self._drop_ref(task_id, handle)

    def _drop_ref(self, task_id: str, entry: _LockEntry) -> None:
        with self._locks_guard:
            entry.refs -= 1
            # Unused locks are discarded so the registry does not grow with every task ever seen
            if entry.refs == 0 and self._locks.get(task_id) is entry:
                del self._locks[task_id]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_ledger(self, task_id: str) -> Optional[TaskLedger]:
        ledger = self._ledgers.get(task_id)
        if ledger is None:
            return None
        return replace(ledger, versions=dict(ledger.versions))

    def read_latest(self, task_id: str) -> Optional[ContextVersion]:
        ledger = self._ledgers.get(task_id)
        if ledger is None:
            return None
        return ledger.versions[ledger.latest_version]

    def get_version(self, task_id: str, version_id: str) -> Optional[ContextVersion]:
        ledger = self._ledgers.get(task_id)
        if ledger is None:
            return None
        return ledger.versions.get(version_id)

    def list_task_ids(self) -> List[str]:
        with self._index_lock:
            return sorted(self._ledgers)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_ledger(self, ledger: TaskLedger) -> bool:
        with self._index_lock:
            if ledger.task_id in self._ledgers:
                return False
            self._ledgers[ledger.task_id] = replace(ledger, versions=dict(ledger.versions))
            return True

    def append_version(self, task_id: str, version: ContextVersion, next_sequence: int) -> None:
        current = self._ledgers[task_id]
        versions = dict(current.versions)
        versions[version.version_id] = version
        self._publish(replace(
            current,
            versions=versions,
            latest_version=version.version_id,
            next_sequence=next_sequence,
        ))

    def replace_version(self, task_id: str, version: ContextVersion) -> None:
        current = self._ledgers[task_id]
        versions = dict(current.versions)
        versions[version.version_id] = version
        self._publish(replace(current, versions=versions))

    def set_latest(self, task_id: str, version_id: str) -> None:
        current = self._ledgers[task_id]
        self._publish(replace(current, latest_version=version_id))

    def delete_ledger(self, task_id: str) -> bool:
        with self._index_lock:
            return self._ledgers.pop(task_id, None) is not None

    def delete_version(self, task_id: str, version_id: str, new_latest: str) -> None:
        current = self._ledgers[task_id]
        versions = {k: v for k, v in current.versions.items() if k != version_id}
        self._publish(replace(current, versions=versions, latest_version=new_latest))

    def _publish(self, ledger: TaskLedger) -> None:
        with self._index_lock:
            self._ledgers[ledger.task_id] = ledger

    def close(self) -> None:
        with self._index_lock:
            count = len(self._ledgers)
        logger.debug(f"[MEMORY] Backend closed ({count} ledgers in memory)")
