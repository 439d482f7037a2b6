"""
Ledger Backend - persistence interface consumed by the Context Version Store

The store owns all version semantics (sequence allocation, pointer
redirection, optimistic checks). A backend only has to persist ledgers and
apply each primitive atomically:

- create a ledger only if it is absent
- append a version / replace a version's content
- read a ledger, a single version, or the latest version as one snapshot
- redirect the latest pointer
- delete a whole ledger or a single version
- hand out a per-task lock so mutations on one task are serialized

Mutating primitives are only called while the caller holds the task lock
returned by ``acquire_task_lock``.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from context_store.models import ContextVersion, TaskLedger


class LedgerBackend(ABC):
    """Abstract persistence collaborator for task ledgers."""

    name: str = "abstract"

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @abstractmethod
    def acquire_task_lock(self, task_id: str, timeout: float) -> Optional[Any]:
        """
        Acquire the exclusive lock for *task_id*.

        Args:
            task_id: Task whose ledger is about to be mutated
            timeout: Maximum seconds to wait

        Returns:
            An opaque handle to pass to ``release_task_lock``, or None on timeout
        """

    @abstractmethod
    def release_task_lock(self, task_id: str, handle: Any) -> None:
        """Release a lock obtained from ``acquire_task_lock``."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    def get_ledger(self, task_id: str) -> Optional[TaskLedger]:
        """Return a snapshot of the whole ledger, or None if absent."""

    @abstractmethod
    def read_latest(self, task_id: str) -> Optional[ContextVersion]:
        """Return the version the latest pointer references, read atomically."""

    @abstractmethod
    def get_version(self, task_id: str, version_id: str) -> Optional[ContextVersion]:
        """Return a single version, or None if the task or version is absent."""

    @abstractmethod
    def list_task_ids(self) -> List[str]:
        """Return the identifiers of every live ledger, sorted."""

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @abstractmethod
    def create_ledger(self, ledger: TaskLedger) -> bool:
        """
        Persist *ledger* if no ledger exists for its task.

        Returns:
            True if created, False if a ledger was already present
        """

    @abstractmethod
    def append_version(self, task_id: str, version: ContextVersion, next_sequence: int) -> None:
        """Add *version*, point latest at it and store the advanced counter."""

    @abstractmethod
    def replace_version(self, task_id: str, version: ContextVersion) -> None:
        """Overwrite the stored copy of ``version.version_id`` (corrective patch)."""

    @abstractmethod
    def set_latest(self, task_id: str, version_id: str) -> None:
        """Redirect the latest pointer."""

    @abstractmethod
    def delete_ledger(self, task_id: str) -> bool:
        """
        Remove the ledger and all of its versions.

        Returns:
            True if a ledger was removed
        """

    @abstractmethod
    def delete_version(self, task_id: str, version_id: str, new_latest: str) -> None:
        """Remove one version and set the latest pointer to *new_latest*."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
