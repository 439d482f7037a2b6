"""
Context Store - Versioned, auditable context storage for task execution records

Every task has a textual context (notes, reasoning trace, intermediate
state) that evolves through explicit versions instead of silent overwrites.

Features:
- Per-task version ledger with a movable latest pointer
- Superseding writes and audited in-place corrections
- Non-destructive rollback to any recorded version
- Whole-task and single-version deletion
- Per-task locking with caller deadlines and cancellation
- In-memory and Redis persistence backends
- Audit events and parent/child task lookups

Installation:
pip install redis python-dotenv

Configuration:
    Create a config.properties (or .env) file:

    CONTEXT_STORE_BACKEND=redis
    CONTEXT_STORE_REDIS_HOST=localhost
    CONTEXT_STORE_LOCK_TIMEOUT=5.0

Example:
    >>> from context_store import ContextVersionStore
    >>>
    >>> store = ContextVersionStore.from_env()
    >>> store.write_context("task_1", None, "plan: collect district list")
    >>> v2 = store.supersede_version("task_1", "plan: collect district list + population")
    >>> store.set_version_latest("task_1", "1")   # roll back
    >>> store.read_context("task_1")
    'plan: collect district list'
"""

__version__ = "1.0.0"
__all__ = [
    'ContextManager',
    'ContextVersionStore',
    'RequestContext',
    'TaskTree',
    'EventBus',
    'StoreConfig',
    'RedisConfig',
    'ConfigProperties',
    'ContextVersion',
    'TaskLedger',
    'ContextEvent',
    'ContextEventType',
    'UpdateMode',
    'InMemoryLedgerBackend',
    'RedisLedgerBackend',
    'ContextStoreError',
    'AlreadyExistsError',
    'NotFoundError',
    'ConflictError',
    'InvalidArgumentError',
    'DeadlineExceededError',
    'OperationCancelledError',
]

from context_store.core import ContextManager, ContextVersionStore, RequestContext, TaskTree, EventBus
from context_store.config import StoreConfig, RedisConfig, ConfigProperties
from context_store.models import ContextVersion, TaskLedger, ContextEvent, ContextEventType, UpdateMode
from context_store.storage import InMemoryLedgerBackend, RedisLedgerBackend
from context_store.utils.exceptions import (
    ContextStoreError,
    AlreadyExistsError,
    NotFoundError,
    ConflictError,
    InvalidArgumentError,
    DeadlineExceededError,
    OperationCancelledError,
)
