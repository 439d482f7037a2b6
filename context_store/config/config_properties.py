"""
Configuration Properties - single source of truth for store configuration.

Reads config.properties (and an optional .env file) and provides access to
every setting. Plain keys are injected into os.environ so the dataclass
``from_env`` constructors see them.
"""

import os
from pathlib import Path
from typing import Optional, Dict, Any

from dotenv import load_dotenv


class ConfigProperties:
    """
    Unified configuration loader and accessor.

    Reads config.properties once at startup, injects all plain-key values
    into os.environ, and exposes typed env-var accessors.

    Quick usage::

        # Env-var accessors (reads os.environ, respects OS overrides)
        ConfigProperties.get_env("CONTEXT_STORE_BACKEND")
        ConfigProperties.get_logging_config()

        # Bootstrap (call once at process start)
        ConfigProperties.load_env_file()   # load + inject into os.environ
    """

    _instance: Optional["ConfigProperties"] = None
    _properties: Dict[str, str] = {}
    _loaded: bool = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ConfigProperties":
        """
        Parse config.properties and return the singleton instance.

        Args:
            path: Explicit path to config.properties; auto-discovered if omitted.
        """
        if cls._instance and cls._loaded:
            return cls._instance

        cls._instance = cls()
        cls._properties = {}

        config_path = Path(path) if path else cls._find_file("config.properties")

        if config_path and config_path.exists():
            cls._parse_file(config_path)

        cls._loaded = True
        return cls._instance

    @classmethod
    def load_env_file(cls, path: Optional[str] = None) -> bool:
        """
        Load config.properties and .env, injecting plain keys into os.environ.

        OS/container env vars already set are never overwritten.

        Args:
            path: Explicit path to config.properties; auto-discovered if omitted.

        Returns:
            True if either file was found and loaded.
        """
        cls.load(path)
        cls.load_to_env()

        dotenv_path = cls._find_file(".env")
        loaded_dotenv = bool(dotenv_path) and load_dotenv(dotenv_path, override=False)

        return bool(cls._properties) or loaded_dotenv

    @classmethod
    def load_to_env(cls) -> None:
        """
        Populate os.environ from config.properties (plain keys only).

        Dot-notation keys (e.g. ``redis.host``) are skipped; they are not
        valid env-var identifiers.
        """
        if not cls._loaded:
            cls.load()

        for key, value in cls._properties.items():
            if "." in key:
                continue
            if key not in os.environ:
                os.environ[key] = value

    # ------------------------------------------------------------------
    # Env-var-style accessors (reads os.environ, respects OS overrides)
    # ------------------------------------------------------------------

    @staticmethod
    def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
        """Get an environment variable (same as ``os.getenv``)."""
        return os.getenv(key, default)

    @staticmethod
    def get_bool_env(key: str, default: bool = False) -> bool:
        """Get a boolean from an environment variable."""
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes", "on")

    @staticmethod
    def get_int_env(key: str, default: int = 0) -> int:
        """Get an integer from an environment variable."""
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    @staticmethod
    def get_float_env(key: str, default: float = 0.0) -> float:
        """Get a float from an environment variable."""
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    # ------------------------------------------------------------------
    # Logging configuration helper
    # ------------------------------------------------------------------

    @classmethod
    def get_logging_config(cls) -> Dict[str, Any]:
        """
        Return a ``ComprehensiveLogger.initialize()``-compatible dict
        built from the current environment (populated by ``load_to_env``).
        """
        return {
            "log_folder":     cls.get_env("CONTEXT_STORE_LOG_FOLDER", "./logs"),
            "log_level":      cls.get_env("CONTEXT_STORE_LOG_LEVEL", "INFO"),
            "enable_console": cls.get_bool_env("CONTEXT_STORE_ENABLE_CONSOLE_LOGGING", True),
            "enable_file":    cls.get_bool_env("CONTEXT_STORE_ENABLE_FILE_LOGGING", False),
            "max_bytes":      cls.get_int_env("CONTEXT_STORE_LOG_MAX_BYTES", 10485760),
            "backup_count":   cls.get_int_env("CONTEXT_STORE_LOG_BACKUP_COUNT", 5),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @classmethod
    def _find_file(cls, filename: str) -> Optional[Path]:
        """Search for *filename* starting from the working directory upwards."""
        fixed = Path(__file__).parent.parent.parent / filename
        if fixed.exists():
            return fixed

        current = Path.cwd()
        for _ in range(4):
            candidate = current / filename
            if candidate.exists():
                return candidate
            if current.parent == current:
                break
            current = current.parent

        return None

    @classmethod
    def _parse_file(cls, path: Path) -> None:
        """Parse a Java-style .properties file into ``_properties``."""
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or line.startswith("!"):
                    continue
                for sep in ("=", ":"):
                    if sep in line:
                        key, value = line.split(sep, 1)
                        cls._properties[key.strip()] = value.strip()
                        break
