"""
Shared fixtures: a store per backend so ledger semantics are checked
against both the in-memory and the Redis implementation.
"""

import pytest

from context_store import ContextVersionStore, StoreConfig
from context_store.config import RedisConfig
from context_store.storage import InMemoryLedgerBackend, RedisLedgerBackend


@pytest.fixture
def memory_backend():
    return InMemoryLedgerBackend()


@pytest.fixture
def fake_redis_client():
    fakeredis = pytest.importorskip("fakeredis")
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    client.close()


@pytest.fixture
def redis_backend(fake_redis_client):
    return RedisLedgerBackend(RedisConfig(key_prefix="test"), client=fake_redis_client, lock_lease=5.0)


@pytest.fixture(params=["memory", "redis"])
def backend(request):
    return request.getfixturevalue(f"{request.param}_backend")


@pytest.fixture
def store(backend):
    config = StoreConfig(lock_timeout=1.0, lock_lease=5.0)
    with ContextVersionStore(backend=backend, config=config) as s:
        yield s
