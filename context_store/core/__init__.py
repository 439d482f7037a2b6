"""
Core module - Version store, concurrency gate and supporting services
"""

from .request_context import RequestContext
from .concurrency import ConcurrencyGate
from .event_bus import EventBus, EventRecord, EventSubscription
from .context_manager import ContextManager, ContextVersionStore
from .task_tree import TaskTree

__all__ = [
    'RequestContext',
    'ConcurrencyGate',
    'EventBus',
    'EventRecord',
    'EventSubscription',
    'ContextManager',
    'ContextVersionStore',
    'TaskTree',
]
