"""
Redis Ledger Backend - task ledgers shared across processes

Key layout (``{p}`` is the configured key prefix):

    {p}:tasks                        Set of live task ids
    {p}:task:{id}:meta               Hash: parent_task_id, latest_version,
                                     next_sequence, created_at, updated_at
    {p}:task:{id}:versions           Sorted set: version_id scored by sequence
    {p}:task:{id}:v:{version_id}     Hash: content, sequence, created_at,
                                     updated_at, revision, patched
    {p}:lock:{id}                    Per-task lock (redis-py Lock)

Every mutation touches the meta hash inside the same MULTI/EXEC block, so a
reader that WATCHes the meta key and retries on WatchError always sees the
latest pointer together with the matching version content.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import LockError

from context_store.config import RedisConfig
from context_store.models import ContextVersion, TaskLedger, now_iso
from context_store.storage.base import LedgerBackend
from context_store.utils.exceptions import wrap_exception
from context_store.utils.logger import get_logger

logger = get_logger(__name__)


class RedisLedgerBackend(LedgerBackend):
    """
    Redis-based ledger storage with cross-process task locks.

    Usage:
        backend = RedisLedgerBackend(RedisConfig(host="localhost", key_prefix="ctx"))
        store = ContextVersionStore(backend=backend)

        # Or reuse an existing client
        backend = RedisLedgerBackend(client=redis.Redis(decode_responses=True))
    """

    name = "redis"

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[redis.Redis] = None,
        lock_lease: float = 30.0
    ):
        """
        Initialize the Redis backend.

        Args:
            config: Connection settings (ignored for connection when *client* is given)
            client: Pre-built client; must be created with decode_responses=True
            lock_lease: Seconds a task lock lives before Redis expires it
        """
        self.config = config or RedisConfig()
        self.prefix = self.config.key_prefix
        self.lock_lease = lock_lease

        if client is not None:
            self.client = client
        else:
            self.client = redis.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                decode_responses=True,
                socket_connect_timeout=self.config.socket_timeout,
                socket_timeout=self.config.socket_timeout,
                retry_on_timeout=True,
                health_check_interval=30
            )

        with self._redis_errors("connect"):
            self.client.ping()
        logger.info(f"[REDIS] Connected ledger backend (prefix={self.prefix})")

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _index_key(self) -> str:
        return f"{self.prefix}:tasks"

    def _meta_key(self, task_id: str) -> str:
        return f"{self.prefix}:task:{task_id}:meta"

    def _versions_key(self, task_id: str) -> str:
        return f"{self.prefix}:task:{task_id}:versions"

    def _version_key(self, task_id: str, version_id: str) -> str:
        return f"{self.prefix}:task:{task_id}:v:{version_id}"

    def _lock_key(self, task_id: str) -> str:
        return f"{self.prefix}:lock:{task_id}"

    @contextmanager
    def _redis_errors(self, operation: str, task_id: Optional[str] = None):
        try:
            yield
        except redis.RedisError as e:
            logger.error(f"[REDIS] {operation} failed for task {task_id}: {str(e)}")
            raise wrap_exception(e, operation, {"backend": self.name}) from e

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def _version_to_hash(version: ContextVersion) -> Dict[str, Any]:
        return {
            "content": version.content,
            "sequence": version.sequence,
            "created_at": version.created_at,
            "updated_at": version.updated_at,
            "revision": version.revision,
            "patched": int(version.patched),
        }

    @staticmethod
    def _version_from_hash(task_id: str, version_id: str, data: Dict[str, str]) -> ContextVersion:
        return ContextVersion.from_dict({**data, "task_id": task_id, "version_id": version_id})

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def acquire_task_lock(self, task_id: str, timeout: float) -> Optional[Any]:
        lock = self.client.lock(
            self._lock_key(task_id),
            timeout=self.lock_lease,
            thread_local=False
        )
        with self._redis_errors("acquire_lock", task_id):
            acquired = lock.acquire(blocking=True, blocking_timeout=max(timeout, 0.001))
        return lock if acquired else None

    def release_task_lock(self, task_id: str, handle: Any) -> None:
        try:
            handle.release()
        except LockError as e:
            # The lease ran out while the mutation was running; the write itself was atomic
            logger.warning(f"[REDIS] Task lock for {task_id} expired before release: {str(e)}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_ledger(self, task_id: str) -> Optional[TaskLedger]:
        meta_key = self._meta_key(task_id)

        def _read(pipe) -> Optional[TaskLedger]:
            meta = pipe.hgetall(meta_key)
            if not meta:
                pipe.multi()
                return None

            versions: Dict[str, ContextVersion] = {}
            for version_id in pipe.zrange(self._versions_key(task_id), 0, -1):
                data = pipe.hgetall(self._version_key(task_id, version_id))
                versions[version_id] = self._version_from_hash(task_id, version_id, data)
            pipe.multi()

            return TaskLedger(
                task_id=task_id,
                parent_task_id=meta.get("parent_task_id") or None,
                latest_version=meta["latest_version"],
                next_sequence=int(meta["next_sequence"]),
                created_at=meta["created_at"],
                versions=versions,
            )

        with self._redis_errors("get_ledger", task_id):
            return self.client.transaction(_read, meta_key, value_from_callable=True)

    def read_latest(self, task_id: str) -> Optional[ContextVersion]:
        meta_key = self._meta_key(task_id)

        def _read(pipe) -> Optional[ContextVersion]:
            latest = pipe.hget(meta_key, "latest_version")
            data = pipe.hgetall(self._version_key(task_id, latest)) if latest else None
            pipe.multi()
            if not data:
                return None
            return self._version_from_hash(task_id, latest, data)

        with self._redis_errors("read_latest", task_id):
            return self.client.transaction(_read, meta_key, value_from_callable=True)

    def get_version(self, task_id: str, version_id: str) -> Optional[ContextVersion]:
        with self._redis_errors("get_version", task_id):
            data = self.client.hgetall(self._version_key(task_id, version_id))
        if not data:
            return None
        return self._version_from_hash(task_id, version_id, data)

    def list_task_ids(self) -> List[str]:
        with self._redis_errors("list_task_ids"):
            return sorted(self.client.smembers(self._index_key()))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_ledger(self, ledger: TaskLedger) -> bool:
        task_id = ledger.task_id
        meta_key = self._meta_key(task_id)

        def _create(pipe) -> bool:
            if pipe.exists(meta_key):
                pipe.multi()
                return False

            pipe.multi()
            pipe.hset(meta_key, mapping={
                "parent_task_id": ledger.parent_task_id or "",
                "latest_version": ledger.latest_version,
                "next_sequence": ledger.next_sequence,
                "created_at": ledger.created_at,
                "updated_at": ledger.created_at,
            })
            for version in ledger.versions.values():
                pipe.zadd(self._versions_key(task_id), {version.version_id: version.sequence})
                pipe.hset(
                    self._version_key(task_id, version.version_id),
                    mapping=self._version_to_hash(version)
                )
            pipe.sadd(self._index_key(), task_id)
            return True

        with self._redis_errors("create_ledger", task_id):
            created = self.client.transaction(_create, meta_key, value_from_callable=True)

        if created:
            logger.debug(f"[REDIS] ✓ Created ledger {meta_key}")
        return created

    def append_version(self, task_id: str, version: ContextVersion, next_sequence: int) -> None:
        with self._redis_errors("append_version", task_id):
            pipe = self.client.pipeline(transaction=True)
            pipe.hset(
                self._version_key(task_id, version.version_id),
                mapping=self._version_to_hash(version)
            )
            pipe.zadd(self._versions_key(task_id), {version.version_id: version.sequence})
            pipe.hset(self._meta_key(task_id), mapping={
                "latest_version": version.version_id,
                "next_sequence": next_sequence,
                "updated_at": now_iso(),
            })
            pipe.execute()

    def replace_version(self, task_id: str, version: ContextVersion) -> None:
        with self._redis_errors("replace_version", task_id):
            pipe = self.client.pipeline(transaction=True)
            pipe.hset(
                self._version_key(task_id, version.version_id),
                mapping=self._version_to_hash(version)
            )
            pipe.hset(self._meta_key(task_id), "updated_at", now_iso())
            pipe.execute()

    def set_latest(self, task_id: str, version_id: str) -> None:
        with self._redis_errors("set_latest", task_id):
            self.client.hset(self._meta_key(task_id), mapping={
                "latest_version": version_id,
                "updated_at": now_iso(),
            })

    def delete_ledger(self, task_id: str) -> bool:
        meta_key = self._meta_key(task_id)
        versions_key = self._versions_key(task_id)

        def _delete(pipe) -> bool:
            if not pipe.exists(meta_key):
                pipe.multi()
                return False

            version_keys = [
                self._version_key(task_id, version_id)
                for version_id in pipe.zrange(versions_key, 0, -1)
            ]
            pipe.multi()
            pipe.delete(meta_key, versions_key, *version_keys)
            pipe.srem(self._index_key(), task_id)
            return True

        with self._redis_errors("delete_ledger", task_id):
            deleted = self.client.transaction(_delete, meta_key, value_from_callable=True)

        if deleted:
            logger.debug(f"[REDIS] ✓ Deleted ledger {meta_key}")
        return deleted

    def delete_version(self, task_id: str, version_id: str, new_latest: str) -> None:
        with self._redis_errors("delete_version", task_id):
            pipe = self.client.pipeline(transaction=True)
            pipe.delete(self._version_key(task_id, version_id))
            pipe.zrem(self._versions_key(task_id), version_id)
            pipe.hset(self._meta_key(task_id), mapping={
                "latest_version": new_latest,
                "updated_at": now_iso(),
            })
            pipe.execute()

    def close(self) -> None:
        """
        Close Redis connection and cleanup resources.
        """
        try:
            self.client.close()
            logger.info("[REDIS] Connection closed")
        except redis.RedisError as e:
            logger.error(f"[REDIS] Error closing connection: {str(e)}")
