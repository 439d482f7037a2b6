"""
Enums module - Update modes and event types
"""

from enum import Enum


class UpdateMode(str, Enum):
    """How new content is applied to an existing ledger"""
    SUPERSEDE = "supersede"  # append a new immutable version
    PATCH = "patch"          # correct an existing version in place


class ContextEventType(str, Enum):
    """Audit events published after every successful mutation"""
    CONTEXT_WRITTEN = "context_written"
    VERSION_SUPERSEDED = "version_superseded"
    VERSION_PATCHED = "version_patched"
    LATEST_CHANGED = "latest_changed"
    CONTEXT_DELETED = "context_deleted"
    VERSION_DELETED = "version_deleted"
