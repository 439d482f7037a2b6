"""
Events module - Audit event structure published by the store
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from .context import now_iso
from .enums import ContextEventType


@dataclass
class ContextEvent:
    """Record of one applied mutation."""
    event_type: ContextEventType
    task_id: str
    version_id: Optional[str] = None
    previous_latest: Optional[str] = None
    latest_version: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "task_id": self.task_id,
            "version_id": self.version_id,
            "previous_latest": self.previous_latest,
            "latest_version": self.latest_version,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }
