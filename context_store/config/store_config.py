"""
Store configuration - Settings for the Context Version Store
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum

from .config_properties import ConfigProperties


class BackendType(str, Enum):
    """Supported persistence backends"""
    MEMORY = "memory"
    REDIS = "redis"


@dataclass
class RedisConfig:
    """
    Connection settings for the Redis ledger backend.

    Attributes:
        host: Redis server host
        port: Redis server port
        db: Redis database number
        password: Redis password if authentication required
        key_prefix: Namespace prepended to every key the store writes
        socket_timeout: Socket connect/read timeout in seconds
    """
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = "ctx"
    socket_timeout: float = 5.0

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError(f"Redis port must be between 1 and 65535, got {self.port}")
        if self.db < 0:
            raise ValueError("Redis db cannot be negative")
        if not self.key_prefix or ":" in self.key_prefix:
            raise ValueError(f"key_prefix must be non-empty and contain no ':', got {self.key_prefix!r}")

    @classmethod
    def from_env(cls, prefix: str = "CONTEXT_STORE_") -> "RedisConfig":
        """Create Redis config from environment variables."""
        return cls(
            host=ConfigProperties.get_env(f"{prefix}REDIS_HOST", "localhost"),
            port=ConfigProperties.get_int_env(f"{prefix}REDIS_PORT", 6379),
            db=ConfigProperties.get_int_env(f"{prefix}REDIS_DB", 0),
            password=ConfigProperties.get_env(f"{prefix}REDIS_PASSWORD") or None,
            key_prefix=ConfigProperties.get_env(f"{prefix}REDIS_KEY_PREFIX", "ctx"),
            socket_timeout=ConfigProperties.get_float_env(f"{prefix}REDIS_SOCKET_TIMEOUT", 5.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding password for security."""
        return {
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "key_prefix": self.key_prefix,
            "socket_timeout": self.socket_timeout,
        }


@dataclass
class StoreConfig:
    """
    Configuration settings for the Context Version Store.

    Attributes:
        backend: Persistence backend ("memory" or "redis")
        redis: Redis connection settings (used when backend is "redis")
        lock_timeout: Seconds to wait for a per-task lock before failing
        lock_lease: Seconds a Redis task lock lives before it auto-expires
        max_content_length: Upper bound on context size in characters
        allow_empty_content: Whether an empty string is accepted as content
        max_task_id_length: Upper bound on task identifier length
        event_history_size: Number of audit events kept in memory
    """

    backend: str = BackendType.MEMORY.value
    redis: RedisConfig = field(default_factory=RedisConfig)
    lock_timeout: float = 5.0
    lock_lease: float = 30.0
    max_content_length: int = 1024 * 1024
    allow_empty_content: bool = False
    max_task_id_length: int = 256
    event_history_size: int = 1000

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_backends = [b.value for b in BackendType]
        if isinstance(self.backend, BackendType):
            self.backend = self.backend.value
        if self.backend not in valid_backends:
            raise ValueError(f"backend must be one of {valid_backends}, got {self.backend}")

        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")

        if self.lock_lease < self.lock_timeout:
            raise ValueError("lock_lease must be at least lock_timeout")

        if self.max_content_length < 1:
            raise ValueError("max_content_length must be at least 1")

        if self.max_task_id_length < 1:
            raise ValueError("max_task_id_length must be at least 1")

        if self.event_history_size < 0:
            raise ValueError("event_history_size cannot be negative")

        if isinstance(self.redis, dict):
            self.redis = RedisConfig(**self.redis)

    @classmethod
    def from_env(cls, prefix: str = "CONTEXT_STORE_") -> "StoreConfig":
        """
        Create configuration from environment variables.

        Call ``ConfigProperties.load_env_file()`` first to pick up
        config.properties and .env values.

        Args:
            prefix: Environment variable prefix (default: "CONTEXT_STORE_")

        Returns:
            StoreConfig instance
        """
        return cls(
            backend=ConfigProperties.get_env(f"{prefix}BACKEND", BackendType.MEMORY.value).lower(),
            redis=RedisConfig.from_env(prefix),
            lock_timeout=ConfigProperties.get_float_env(f"{prefix}LOCK_TIMEOUT", 5.0),
            lock_lease=ConfigProperties.get_float_env(f"{prefix}LOCK_LEASE", 30.0),
            max_content_length=ConfigProperties.get_int_env(f"{prefix}MAX_CONTENT_LENGTH", 1024 * 1024),
            allow_empty_content=ConfigProperties.get_bool_env(f"{prefix}ALLOW_EMPTY_CONTENT", False),
            max_task_id_length=ConfigProperties.get_int_env(f"{prefix}MAX_TASK_ID_LENGTH", 256),
            event_history_size=ConfigProperties.get_int_env(f"{prefix}EVENT_HISTORY_SIZE", 1000),
        )

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "StoreConfig":
        """Create configuration from a dictionary, ignoring unknown keys."""
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in config_dict.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "backend": self.backend,
            "redis": self.redis.to_dict(),
            "lock_timeout": self.lock_timeout,
            "lock_lease": self.lock_lease,
            "max_content_length": self.max_content_length,
            "allow_empty_content": self.allow_empty_content,
            "max_task_id_length": self.max_task_id_length,
            "event_history_size": self.event_history_size,
        }
