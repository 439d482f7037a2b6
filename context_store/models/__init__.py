"""
Models module - Data structures and enums for the Context Version Store
"""

from .enums import UpdateMode, ContextEventType
from .context import ContextVersion, TaskLedger, now_iso
from .events import ContextEvent

__all__ = [
    'UpdateMode',
    'ContextEventType',
    'ContextVersion',
    'TaskLedger',
    'ContextEvent',
    'now_iso',
]
