"""
Request context - caller deadline and cancellation scope

Every store operation accepts an optional RequestContext describing the
lifetime of the surrounding request. The store checks it before waiting on a
task lock and again right before mutating, so an expired or cancelled request
never leaves a partial write behind.
"""

import threading
import time
from typing import Optional

from context_store.utils.exceptions import DeadlineExceededError, OperationCancelledError


class RequestContext:
    """
    Deadline + cancellation flag for one caller request.

    Usage:
        ctx = RequestContext.with_timeout(2.0)
        store.write_context("task_1", None, "notes", ctx=ctx)

        # From another thread
        ctx.cancel()
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                request is expired; None means no deadline
        """
        self.deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "RequestContext":
        """A context that never expires (until cancelled)."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "RequestContext":
        """A context expiring *seconds* from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, operation: str, task_id: Optional[str] = None) -> None:
        """Raise if the request was cancelled or its deadline passed."""
        if self.cancelled:
            raise OperationCancelledError(operation, task_id=task_id)
        if self.expired:
            raise DeadlineExceededError(operation, task_id=task_id)

    def __repr__(self) -> str:
        return f"RequestContext(remaining={self.remaining()}, cancelled={self.cancelled})"
