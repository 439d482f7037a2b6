"""
Context Version Store - versioned, auditable task contexts

Each task owns a ledger of context versions and a latest pointer. New work
is recorded as a new version (supersede); mistakes found during manual
review are corrected in place (patch); history can be re-served by moving
the latest pointer (rollback); deletion removes a whole ledger or a single
version while keeping the latest pointer valid.

Example:
    >>> store = ContextVersionStore()
    >>> store.write_context("task_1", None, "initial plan")
    >>> store.supersede_version("task_1", "revised plan")
    >>> store.set_version_latest("task_1", "1")
    >>> store.read_context("task_1")
    'initial plan'
"""

import time
from abc import ABC, abstractmethod
from functools import wraps
from typing import Any, Dict, List, Optional

from context_store.config import StoreConfig
from context_store.core.concurrency import ConcurrencyGate
from context_store.core.event_bus import EventBus
from context_store.core.request_context import RequestContext
from context_store.models import (
    ContextEvent,
    ContextEventType,
    ContextVersion,
    TaskLedger,
    UpdateMode,
    now_iso,
)
from context_store.storage import LedgerBackend, create_backend
from context_store.utils.exceptions import (
    AlreadyExistsError,
    ConfigurationError,
    ContextStoreError,
    InvalidArgumentError,
    NotFoundError,
)
from context_store.utils.logger import get_logger
from context_store.utils.validation import (
    normalize_version,
    parse_version_token,
    require,
    validate_content,
    validate_task_id,
)

logger = get_logger(__name__)


def _timed(operation: str):
    """Log the duration of a store operation; failures are logged with their error code."""

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(self, *args, **kwargs)
            except ContextStoreError as e:
                logger.debug(f"[STORE] {operation} failed: {e.error_code} {e.message}")
                raise
            logger.log_performance(operation, time.perf_counter() - started)
            return result

        return wrapper

    return decorator


class ContextManager(ABC):
    """
    Contract for managing task contexts.

    Every method accepts an optional RequestContext; an expired or cancelled
    request aborts before any mutation is applied.
    """

    @abstractmethod
    def write_context(
        self,
        task_id: str,
        parent_task_id: Optional[str],
        content: str,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """Create the task's context. Fails if a context already exists for the task."""

    @abstractmethod
    def update_context(
        self,
        task_id: str,
        new_content: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """
        Correct an existing version in place during manual review.

        The version is a concurrency token ("2@1": version id and revision).
        When task dependencies change, record a new version instead of updating.
        """

    @abstractmethod
    def read_context(self, task_id: str, ctx: Optional[RequestContext] = None) -> str:
        """Return the content of the latest version."""

    @abstractmethod
    def set_version_latest(
        self,
        task_id: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """Serve *version* for reads again, typically to roll back a change."""

    @abstractmethod
    def delete_context(self, task_id: str, ctx: Optional[RequestContext] = None) -> None:
        """Remove the task's context and its whole history."""

    @abstractmethod
    def delete_context_by_version(
        self,
        task_id: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """Remove one version, keeping the rest of the history."""


class ContextVersionStore(ContextManager):
    """
    Version ledger + concurrency gate over a pluggable persistence backend.

    Usage:
        store = ContextVersionStore.from_env()

        store.write_context("task_1.2", parent_task_id="task_1", content="draft")
        v2 = store.supersede_version("task_1.2", "findings after search")
        store.update_context("task_1.2", "findings (typo fixed)", version=v2.token)

        # Roll back to the first draft without losing v2
        store.set_version_latest("task_1.2", "1")
    """

    def __init__(
        self,
        backend: Optional[LedgerBackend] = None,
        config: Optional[StoreConfig] = None,
        event_bus: Optional[EventBus] = None
    ):
        """
        Initialize the store.

        Args:
            backend: Persistence backend (built from *config* if omitted)
            config: Store configuration (defaults apply if omitted)
            event_bus: Bus receiving audit events (a private bus if omitted)
        """
        self.config = config or StoreConfig()
        self.backend = backend or create_backend(self.config)
        self.gate = ConcurrencyGate(self.backend, lock_timeout=self.config.lock_timeout)
        self.events = event_bus or EventBus(history_max_size=self.config.event_history_size)

        logger.info(
            f"[STORE] Context version store ready (backend={self.backend.name}, "
            f"lock_timeout={self.config.lock_timeout}s)"
        )

    @classmethod
    def from_env(cls, prefix: str = "CONTEXT_STORE_") -> "ContextVersionStore":
        """Build a store from config.properties / .env / environment variables."""
        from context_store.config import ConfigProperties

        ConfigProperties.load_env_file()
        try:
            config = StoreConfig.from_env(prefix)
        except ValueError as e:
            raise ConfigurationError(f"{prefix}*", str(e)) from e
        return cls(config=config)

    # ------------------------------------------------------------------
    # Argument checks
    # ------------------------------------------------------------------

    def _check_task_id(self, task_id: Any, parameter_name: str = "task_id") -> None:
        require(validate_task_id(task_id, self.config.max_task_id_length), parameter_name, task_id)

    def _check_content(self, content: Any, parameter_name: str = "content") -> None:
        result = validate_content(
            content,
            max_length=self.config.max_content_length,
            allow_empty=self.config.allow_empty_content
        )
        require(result, parameter_name)

    def _require_ledger(self, task_id: str) -> TaskLedger:
        ledger = self.backend.get_ledger(task_id)
        if ledger is None:
            raise NotFoundError(task_id)
        return ledger

    def _emit(self, event_type: ContextEventType, task_id: str, **kwargs) -> None:
        self.events.publish(ContextEvent(event_type=event_type, task_id=task_id, **kwargs))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @_timed("write_context")
    def write_context(
        self,
        task_id: str,
        parent_task_id: Optional[str],
        content: str,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """
        Create the task's ledger holding a single version "1".

        Args:
            task_id: Task identifier
            parent_task_id: Task this one descends from (None or "" for a root)
            content: Initial context
            ctx: Caller request scope

        Returns:
            The first version

        Raises:
            AlreadyExistsError: a ledger already exists for task_id
        """
        self._check_task_id(task_id)
        parent_task_id = parent_task_id or None
        if parent_task_id is not None:
            self._check_task_id(parent_task_id, "parent_task_id")
        self._check_content(content)

        ledger = TaskLedger.create(task_id, parent_task_id, content)
        with self.gate.guard(task_id, "write_context", ctx):
            if not self.backend.create_ledger(ledger):
                raise AlreadyExistsError(task_id)

            first = ledger.latest()
            logger.info(f"[STORE] ✓ Created context for task {task_id} (parent={parent_task_id})")
            self._emit(
                ContextEventType.CONTEXT_WRITTEN,
                task_id,
                version_id=first.version_id,
                latest_version=first.version_id,
                payload={"parent_task_id": parent_task_id, "content_length": len(content)}
            )
        return first

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    @_timed("supersede_version")
    def supersede_version(
        self,
        task_id: str,
        content: str,
        ctx: Optional[RequestContext] = None,
        expected_latest: Optional[Any] = None
    ) -> ContextVersion:
        """
        Record new work as a new immutable version and make it the latest.

        Args:
            task_id: Task identifier
            content: Context of the new version
            ctx: Caller request scope
            expected_latest: If given, the version the caller believes is latest

        Returns:
            The new version

        Raises:
            NotFoundError: no ledger for task_id
            ConflictError: expected_latest is no longer the latest version
        """
        self._check_task_id(task_id)
        self._check_content(content)
        expected = normalize_version(expected_latest) if expected_latest is not None else None

        with self.gate.guard(task_id, "supersede_version", ctx):
            ledger = self._require_ledger(task_id)
            if expected is not None:
                self.gate.expect_latest(ledger, expected)

            sequence = ledger.next_sequence
            timestamp = now_iso()
            version = ContextVersion(
                task_id=task_id,
                version_id=str(sequence),
                sequence=sequence,
                content=content,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self.backend.append_version(task_id, version, sequence + 1)

            logger.info(f"[STORE] ✓ Task {task_id}: version {version.version_id} supersedes {ledger.latest_version}")
            self._emit(
                ContextEventType.VERSION_SUPERSEDED,
                task_id,
                version_id=version.version_id,
                previous_latest=ledger.latest_version,
                latest_version=version.version_id,
                payload={"content_length": len(content)}
            )
        return version

    @_timed("patch_version")
    def patch_version(
        self,
        task_id: str,
        new_content: str,
        version: Any,
        ctx: Optional[RequestContext] = None,
        expected_revision: Optional[int] = None
    ) -> ContextVersion:
        """
        Correct the content of an existing version in place.

        The version reference is a concurrency token. Its version id must
        still be the latest version, and its revision must match the number
        of corrections already applied to that version. A token comes from
        ``ContextVersion.token`` ("2@1"); a bare version id ("2") stands for
        the uncorrected version, so it stops matching after the first patch.

        Args:
            task_id: Task identifier
            new_content: Replacement content
            version: Token of the version to correct (must be the latest)
            ctx: Caller request scope
            expected_revision: Revision the caller read; overrides a bare id

        Returns:
            The corrected version (same version_id and sequence, revision + 1)

        Raises:
            NotFoundError: task or version absent
            ConflictError: version is not the latest, or revision moved
            InvalidArgumentError: expected_revision disagrees with the token
        """
        self._check_task_id(task_id)
        self._check_content(new_content, "new_content")
        version_id, token_revision = parse_version_token(version)
        if expected_revision is None:
            expected_revision = token_revision if token_revision is not None else 0
        elif token_revision is not None and token_revision != expected_revision:
            raise InvalidArgumentError(
                "expected_revision",
                f"disagrees with the revision in version token {version!r}",
                expected_revision
            )

        with self.gate.guard(task_id, "patch_version", ctx):
            ledger = self._require_ledger(task_id)
            current = ledger.get_version(version_id)
            if current is None:
                raise NotFoundError(task_id, version_id)

            self.gate.expect_latest(ledger, version_id)
            self.gate.expect_revision(current, expected_revision)

            patched = current.with_patch(new_content)
            self.backend.replace_version(task_id, patched)

            logger.warning(
                f"[STORE] ✎ Corrective patch on task {task_id} version {version_id} "
                f"(revision {current.revision} → {patched.revision})"
            )
            self._emit(
                ContextEventType.VERSION_PATCHED,
                task_id,
                version_id=version_id,
                latest_version=ledger.latest_version,
                payload={
                    "previous_revision": current.revision,
                    "revision": patched.revision,
                    "previous_content_length": len(current.content),
                    "content_length": len(new_content),
                }
            )
        return patched

    def update_context(
        self,
        task_id: str,
        new_content: str,
        version: Any,
        ctx: Optional[RequestContext] = None,
        expected_revision: Optional[int] = None
    ) -> ContextVersion:
        """Corrective update; see :meth:`patch_version`."""
        return self.patch_version(
            task_id,
            new_content,
            version,
            ctx=ctx,
            expected_revision=expected_revision
        )

    def apply_update(
        self,
        task_id: str,
        content: str,
        mode: Any = UpdateMode.SUPERSEDE,
        version: Optional[Any] = None,
        ctx: Optional[RequestContext] = None,
        expected_revision: Optional[int] = None
    ) -> ContextVersion:
        """
        Apply new content using an explicit update mode.

        SUPERSEDE appends a version (``version`` acts as the expected latest,
        if given). PATCH corrects ``version`` in place and requires it.
        """
        try:
            mode = UpdateMode(mode)
        except ValueError:
            raise InvalidArgumentError("mode", f"must be one of {[m.value for m in UpdateMode]}", mode) from None

        if mode is UpdateMode.SUPERSEDE:
            return self.supersede_version(task_id, content, ctx=ctx, expected_latest=version)

        if version is None:
            raise InvalidArgumentError("version", "is required for patch updates")
        return self.patch_version(task_id, content, version, ctx=ctx, expected_revision=expected_revision)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_context(self, task_id: str, ctx: Optional[RequestContext] = None) -> str:
        """
        Return the content of the latest version.

        Raises:
            NotFoundError: no ledger for task_id
        """
        return self.get_latest_version(task_id, ctx=ctx).content

    def get_latest_version(self, task_id: str, ctx: Optional[RequestContext] = None) -> ContextVersion:
        """Return the version currently served by reads."""
        self._check_task_id(task_id)
        if ctx is not None:
            ctx.check("read_context", task_id)

        latest = self.backend.read_latest(task_id)
        if latest is None:
            raise NotFoundError(task_id)
        return latest

    def read_version(
        self,
        task_id: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """Return a specific historical version."""
        self._check_task_id(task_id)
        version_id = normalize_version(version)
        if ctx is not None:
            ctx.check("read_version", task_id)

        found = self.backend.get_version(task_id, version_id)
        if found is None:
            if not self.has_context(task_id):
                raise NotFoundError(task_id)
            raise NotFoundError(task_id, version_id)
        return found

    def get_ledger(self, task_id: str, ctx: Optional[RequestContext] = None) -> TaskLedger:
        """Return a snapshot of the task's full history and latest pointer."""
        self._check_task_id(task_id)
        if ctx is not None:
            ctx.check("get_ledger", task_id)
        return self._require_ledger(task_id)

    def list_versions(self, task_id: str, ctx: Optional[RequestContext] = None) -> List[ContextVersion]:
        """Return every version of the task in sequence order."""
        return self.get_ledger(task_id, ctx=ctx).ordered_versions()

    def has_context(self, task_id: str) -> bool:
        self._check_task_id(task_id)
        return self.backend.read_latest(task_id) is not None

    def list_tasks(self) -> List[str]:
        return self.backend.list_task_ids()

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    @_timed("set_version_latest")
    def set_version_latest(
        self,
        task_id: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """
        Point the latest pointer at *version* without deleting anything.

        Raises:
            NotFoundError: task or version absent
        """
        self._check_task_id(task_id)
        version_id = normalize_version(version)

        with self.gate.guard(task_id, "set_version_latest", ctx):
            ledger = self._require_ledger(task_id)
            target = ledger.get_version(version_id)
            if target is None:
                raise NotFoundError(task_id, version_id)

            previous = ledger.latest_version
            if previous == version_id:
                logger.debug(f"[STORE] Task {task_id}: version {version_id} already latest")
                return target

            self.backend.set_latest(task_id, version_id)
            logger.info(f"[STORE] ↺ Task {task_id}: latest moved {previous} → {version_id}")
            self._emit(
                ContextEventType.LATEST_CHANGED,
                task_id,
                version_id=version_id,
                previous_latest=previous,
                latest_version=version_id
            )
        return target

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    @_timed("delete_context")
    def delete_context(self, task_id: str, ctx: Optional[RequestContext] = None) -> None:
        """
        Remove the task's ledger and latest pointer.

        Raises:
            NotFoundError: no ledger for task_id
        """
        self._check_task_id(task_id)

        with self.gate.guard(task_id, "delete_context", ctx):
            if not self.backend.delete_ledger(task_id):
                raise NotFoundError(task_id)

            logger.info(f"[STORE] ✗ Deleted context for task {task_id}")
            self._emit(ContextEventType.CONTEXT_DELETED, task_id)

    @_timed("delete_context_by_version")
    def delete_context_by_version(
        self,
        task_id: str,
        version: Any,
        ctx: Optional[RequestContext] = None
    ) -> ContextVersion:
        """
        Remove a single version.

        If the removed version was the latest, the pointer moves to the
        immediately preceding version by sequence, or to the nearest
        following one when nothing precedes it. The only remaining version
        cannot be removed this way; use :meth:`delete_context`.

        Returns:
            The version served by reads after the deletion

        Raises:
            NotFoundError: task or version absent
            InvalidArgumentError: version is the only one left
        """
        self._check_task_id(task_id)
        version_id = normalize_version(version)

        with self.gate.guard(task_id, "delete_context_by_version", ctx):
            ledger = self._require_ledger(task_id)
            if not ledger.has_version(version_id):
                raise NotFoundError(task_id, version_id)

            if len(ledger.versions) == 1:
                raise InvalidArgumentError(
                    "version",
                    "cannot delete the only remaining version; delete the whole context instead",
                    version_id
                )

            previous = ledger.latest_version
            new_latest = previous
            if version_id == previous:
                new_latest = ledger.fallback_for(version_id)

            self.backend.delete_version(task_id, version_id, new_latest)

            if new_latest != previous:
                logger.info(f"[STORE] ✗ Task {task_id}: deleted latest version {version_id}, latest now {new_latest}")
            else:
                logger.info(f"[STORE] ✗ Task {task_id}: deleted version {version_id}")

            self._emit(
                ContextEventType.VERSION_DELETED,
                task_id,
                version_id=version_id,
                previous_latest=previous,
                latest_version=new_latest
            )
        return ledger.versions[new_latest]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "backend": self.backend.name,
            "tasks": len(self.list_tasks()),
            "gate": self.gate.get_statistics(),
            "events": self.events.get_statistics(),
        }

    def close(self) -> None:
        self.backend.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
