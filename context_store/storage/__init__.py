"""
Storage module - Persistence backends for task ledgers
"""

from typing import Optional

from context_store.config import StoreConfig, BackendType
from .base import LedgerBackend
from .memory_backend import InMemoryLedgerBackend
from .redis_backend import RedisLedgerBackend


def create_backend(config: Optional[StoreConfig] = None) -> LedgerBackend:
    """
    Build the backend named by ``config.backend``.

    Args:
        config: Store configuration (defaults to the in-memory backend)

    Returns:
        A ready-to-use LedgerBackend
    """
    config = config or StoreConfig()

    if config.backend == BackendType.REDIS.value:
        return RedisLedgerBackend(config.redis, lock_lease=config.lock_lease)

    return InMemoryLedgerBackend()


__all__ = [
    'LedgerBackend',
    'InMemoryLedgerBackend',
    'RedisLedgerBackend',
    'create_backend',
]
