"""
Tests for request deadlines, the per-task concurrency gate and
concurrent store access.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from context_store import ContextVersionStore, StoreConfig
from context_store.core import ConcurrencyGate, RequestContext
from context_store.models import TaskLedger
from context_store.storage import InMemoryLedgerBackend
from context_store.utils.exceptions import (
    AlreadyExistsError,
    ConflictError,
    DeadlineExceededError,
    LockTimeoutError,
    OperationCancelledError,
)


class TestRequestContext:

    def test_background_never_expires(self):
        ctx = RequestContext.background()
        assert ctx.remaining() is None
        assert ctx.expired is False
        ctx.check("read_context")

    def test_timeout(self):
        ctx = RequestContext.with_timeout(10.0)
        assert 0 < ctx.remaining() <= 10.0
        assert RequestContext.with_timeout(0).expired is True

    def test_check_raises(self):
        with pytest.raises(DeadlineExceededError) as exc_info:
            RequestContext.with_timeout(-1).check("write_context", "task_1")
        assert exc_info.value.task_id == "task_1"

        ctx = RequestContext.background()
        ctx.cancel()
        assert ctx.cancelled is True
        with pytest.raises(OperationCancelledError):
            ctx.check("write_context")

    def test_cancel_wins_over_deadline(self):
        ctx = RequestContext.with_timeout(-1)
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            ctx.check("op")


class TestConcurrencyGate:

    def setup_method(self):
        self.backend = InMemoryLedgerBackend()
        self.gate = ConcurrencyGate(self.backend, lock_timeout=0.1)

    def test_guard_holds_lock(self):
        with self.gate.guard("task_1", "op"):
            assert self.backend.acquire_task_lock("task_1", 0.01) is None
        handle = self.backend.acquire_task_lock("task_1", 0.01)
        assert handle is not None
        self.backend.release_task_lock("task_1", handle)
        assert self.gate.get_statistics()["locks_acquired"] == 1

    def test_guard_releases_on_error(self):
        with pytest.raises(RuntimeError):
            with self.gate.guard("task_1", "op"):
                raise RuntimeError("boom")
        assert self.backend._locks == {}

    def test_lock_timeout(self):
        handle = self.backend.acquire_task_lock("task_1", 0.1)
        try:
            with pytest.raises(LockTimeoutError) as exc_info:
                with self.gate.guard("task_1", "patch_version"):
                    pass
        finally:
            self.backend.release_task_lock("task_1", handle)

        assert exc_info.value.retryable is True
        assert exc_info.value.operation == "patch_version"
        assert self.gate.get_statistics()["lock_timeouts"] == 1

    def test_deadline_while_waiting(self):
        self.gate.lock_timeout = 5.0
        handle = self.backend.acquire_task_lock("task_1", 0.1)
        started = time.monotonic()
        try:
            with pytest.raises(DeadlineExceededError):
                with self.gate.guard("task_1", "op", RequestContext.with_timeout(0.05)):
                    pass
        finally:
            self.backend.release_task_lock("task_1", handle)

        # Bounded by the request deadline, not the gate timeout
        assert time.monotonic() - started < 2.0
        assert self.gate.get_statistics()["aborted"] == 1

    def test_cancelled_before_lock(self):
        ctx = RequestContext.background()
        ctx.cancel()
        entered = []
        with pytest.raises(OperationCancelledError):
            with self.gate.guard("task_1", "op", ctx):
                entered.append(True)
        assert entered == []
        assert self.backend._locks == {}

    def test_cancelled_while_queued(self):
        ctx = RequestContext.background()
        handle = self.backend.acquire_task_lock("task_1", 0.1)
        self.gate.lock_timeout = 2.0
        errors = []

        def waiter():
            try:
                with self.gate.guard("task_1", "op", ctx):
                    errors.append(None)
            except OperationCancelledError as e:
                errors.append(e)

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        ctx.cancel()
        self.backend.release_task_lock("task_1", handle)
        thread.join(timeout=5)

        assert len(errors) == 1
        assert isinstance(errors[0], OperationCancelledError)
        assert self.backend._locks == {}

    def test_expect_latest(self):
        ledger = TaskLedger.create("task_1", None, "a")
        self.gate.expect_latest(ledger, "1")
        with pytest.raises(ConflictError) as exc_info:
            self.gate.expect_latest(ledger, "2")
        assert exc_info.value.expected == "2"
        assert exc_info.value.actual == "1"

    def test_expect_revision(self):
        version = TaskLedger.create("task_1", None, "a").latest().with_patch("b")
        self.gate.expect_revision(version, None)
        self.gate.expect_revision(version, 1)
        with pytest.raises(ConflictError):
            self.gate.expect_revision(version, 0)
        assert self.gate.get_statistics()["conflicts"] == 1


class TestConcurrentStoreAccess:
    """Races on the same task resolve to exactly one winner, on every backend."""

    @pytest.fixture(autouse=True)
    def _store(self, backend):
        self.store = ContextVersionStore(
            backend=backend,
            config=StoreConfig(lock_timeout=15.0, lock_lease=30.0)
        )
        yield
        self.store.close()

    def _race(self, func, workers=8):
        barrier = threading.Barrier(workers)
        outcomes = []

        def run(i):
            barrier.wait()
            try:
                return ("ok", func(i))
            except (AlreadyExistsError, ConflictError) as e:
                return ("error", e)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(run, range(workers)))
        return outcomes

    def test_concurrent_creates(self):
        outcomes = self._race(lambda i: self.store.write_context("task_1", None, f"writer {i}"))

        winners = [o for o in outcomes if o[0] == "ok"]
        losers = [o for o in outcomes if o[0] == "error"]
        assert len(winners) == 1
        assert all(isinstance(e, AlreadyExistsError) for _, e in losers)
        assert self.store.read_context("task_1") == winners[0][1].content
        assert len(self.store.list_versions("task_1")) == 1

    def test_concurrent_patches_same_revision(self):
        self.store.write_context("task_1", None, "draft")

        outcomes = self._race(
            lambda i: self.store.update_context("task_1", f"fix {i}", version="1", expected_revision=0)
        )

        winners = [o for o in outcomes if o[0] == "ok"]
        assert len(winners) == 1
        latest = self.store.get_latest_version("task_1")
        assert latest.revision == 1
        assert latest.content == winners[0][1].content

    def test_concurrent_corrections_with_same_version(self):
        """Reviewers holding the same version id: one correction lands, the rest conflict."""
        self.store.write_context("task_1", None, "draft")

        outcomes = self._race(lambda i: self.store.update_context("task_1", f"fix {i}", version="1"))

        winners = [o for o in outcomes if o[0] == "ok"]
        losers = [e for status, e in outcomes if status == "error"]
        assert len(winners) == 1
        assert len(losers) == 7
        assert all(type(e) is ConflictError for e in losers)

        latest = self.store.get_latest_version("task_1")
        assert latest.revision == 1
        assert latest.token == "1@1"
        assert latest.content == winners[0][1].content

    def test_concurrent_corrections_with_same_token(self):
        first = self.store.write_context("task_1", None, "draft")

        outcomes = self._race(lambda i: self.store.update_context("task_1", f"fix {i}", version=first.token))

        assert sum(1 for status, _ in outcomes if status == "ok") == 1
        assert self.store.get_latest_version("task_1").revision == 1

    def test_concurrent_supersedes_get_distinct_versions(self):
        self.store.write_context("task_1", None, "v1")

        outcomes = self._race(lambda i: self.store.supersede_version("task_1", f"writer {i}"), workers=10)

        version_ids = sorted(int(v.version_id) for _, v in outcomes)
        assert version_ids == list(range(2, 12))
        assert self.store.get_ledger("task_1").next_sequence == 12

    def test_events_follow_commit_order(self):
        self.store.write_context("task_1", None, "v1")
        seen = []
        self.store.events.subscribe(
            "version_superseded",
            lambda e: seen.append((int(e.previous_latest), int(e.latest_version))),
            "order"
        )

        self._race(lambda i: self.store.supersede_version("task_1", f"writer {i}"), workers=10)

        # Each event continues from the one before it
        assert [latest for _, latest in seen] == list(range(2, 12))
        assert all(prev == latest - 1 for prev, latest in seen)

    def test_distinct_tasks_do_not_block(self):
        """A held lock on one task never delays another task's mutation."""
        self.store.write_context("busy", None, "x")
        handle = self.store.backend.acquire_task_lock("busy", 0.1)
        try:
            started = time.monotonic()
            self.store.write_context("free", None, "y")
            self.store.supersede_version("free", "z")
            assert time.monotonic() - started < 1.0

            # Reads of the locked task are not blocked either
            assert self.store.read_context("busy") == "x"
        finally:
            self.store.backend.release_task_lock("busy", handle)

    def test_reads_see_consistent_latest(self):
        self.store.write_context("task_1", None, "content 1")
        stop = threading.Event()
        mismatches = []

        def reader():
            while not stop.is_set():
                version = self.store.get_latest_version("task_1")
                if version.content != f"content {version.version_id}":
                    mismatches.append(version)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(2, 50):
                self.store.supersede_version("task_1", f"content {i}")
                if i % 5 == 0:
                    self.store.set_version_latest("task_1", str(i - 3))
        finally:
            stop.set()
            thread.join(timeout=5)

        assert mismatches == []
