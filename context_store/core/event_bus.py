"""
Event Bus - audit trail for context mutations

This module implements a small pub-sub bus. The store publishes one
ContextEvent after every successful mutation; subscribers (audit sinks,
cache invalidators, task-tree indexes) react without the store knowing them.

Features:
- Subscription per event type or "*" for all events
- Priority-based handler ordering and optional filters
- Bounded event history for inspection
- Dead letter queue for events whose handlers failed

Handler and filter failures are logged, counted and queued as dead
letters; they never fail the store operation that already committed. The
dead letter queue keeps at most dead_letter_max_size entries.
"""

import threading
import time
import traceback
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Optional, Any, Dict, List, Tuple

from context_store.models import ContextEvent, ContextEventType, now_iso
from context_store.utils.logger import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[ContextEvent], Any]


@dataclass
class EventSubscription:
    """Represents a subscription to an event type."""
    subscription_id: str
    event_type: str
    handler: EventHandler
    filter_func: Optional[Callable[[ContextEvent], bool]] = None
    priority: int = 5  # 1=highest, 10=lowest
    subscriber_name: str = "unknown"
    created_at: str = field(default_factory=now_iso)


@dataclass
class EventRecord:
    """Record of an event that was published."""
    event: ContextEvent
    published_at: str
    handlers_notified: List[str]
    handlers_succeeded: List[str]
    handlers_failed: List[str]
    processing_time_ms: float


class EventBus:
    """
    Centralized event bus for context mutation events.

    Usage:
        bus = EventBus()

        def on_patch(event: ContextEvent):
            audit_log.write(event.to_dict())

        bus.subscribe(
            event_type=ContextEventType.VERSION_PATCHED,
            handler=on_patch,
            subscriber_name="audit_log"
        )
    """

    def __init__(
        self,
        enable_history: bool = True,
        history_max_size: int = 1000,
        dead_letter_max_size: Optional[int] = None
    ):
        """
        Initialize the event bus.

        Args:
            enable_history: Whether to keep event history
            history_max_size: Maximum number of events to keep in history
            dead_letter_max_size: Maximum failed deliveries kept (defaults to history_max_size)
        """
        self._lock = threading.RLock()
        self.subscriptions: Dict[str, List[EventSubscription]] = defaultdict(list)
        self.wildcard_subscriptions: List[EventSubscription] = []

        self.enable_history = enable_history and history_max_size > 0
        self.history_max_size = history_max_size
        self.event_history: List[EventRecord] = []

        self.dead_letter_max_size = history_max_size if dead_letter_max_size is None else dead_letter_max_size
        self.dead_letter_queue: List[Tuple[ContextEvent, str]] = []

        self.stats = {
            "events_published": 0,
            "events_delivered": 0,
            "events_failed": 0,
            "handlers_executed": 0,
            "handlers_failed": 0,
            "dead_letters_dropped": 0
        }

        logger.debug("[EVENTS] Event bus initialized")

    def subscribe(
        self,
        event_type: Any,
        handler: EventHandler,
        subscriber_name: str = "unknown",
        filter_func: Optional[Callable[[ContextEvent], bool]] = None,
        priority: int = 5
    ) -> str:
        """
        Subscribe to an event type.

        Args:
            event_type: ContextEventType (or its value), or "*" for all events
            handler: Function to call when event occurs
            subscriber_name: Name of the subscriber (for logging)
            filter_func: Optional filter function (return True to receive event)
            priority: Handler priority (1=highest, 10=lowest)

        Returns:
            subscription_id: Unique subscription ID (for unsubscribing)
        """
        key = event_type.value if isinstance(event_type, ContextEventType) else str(event_type)
        subscription = EventSubscription(
            subscription_id=str(uuid.uuid4()),
            event_type=key,
            handler=handler,
            filter_func=filter_func,
            priority=priority,
            subscriber_name=subscriber_name
        )

        with self._lock:
            if key == "*":
                self.wildcard_subscriptions.append(subscription)
                self.wildcard_subscriptions.sort(key=lambda s: s.priority)
            else:
                self.subscriptions[key].append(subscription)
                self.subscriptions[key].sort(key=lambda s: s.priority)

        logger.debug(f"[EVENTS] Subscription added: {subscriber_name} → {key}")
        return subscription.subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Unsubscribe from events.

        Args:
            subscription_id: ID returned from subscribe()

        Returns:
            True if subscription was found and removed
        """
        with self._lock:
            for subs in [self.wildcard_subscriptions, *self.subscriptions.values()]:
                for i, sub in enumerate(subs):
                    if sub.subscription_id == subscription_id:
                        subs.pop(i)
                        logger.debug(f"[EVENTS] Subscription removed: {sub.subscriber_name}")
                        return True
        return False

    def publish(self, event: ContextEvent) -> EventRecord:
        """
        Publish an event to all subscribers.

        Args:
            event: Event to publish

        Returns:
            The EventRecord describing delivery
        """
        started = time.perf_counter()
        published_at = now_iso()
        event_type = event.event_type.value

        with self._lock:
            self.stats["events_published"] += 1
            subscribers = list(self.subscriptions.get(event_type, [])) + list(self.wildcard_subscriptions)

        handlers_notified: List[str] = []
        handlers_succeeded: List[str] = []
        handlers_failed: List[str] = []

        for subscription in subscribers:
            notified = False
            try:
                if subscription.filter_func and not subscription.filter_func(event):
                    continue
                notified = True
                handlers_notified.append(subscription.subscriber_name)
                subscription.handler(event)
                handlers_succeeded.append(subscription.subscriber_name)
            except Exception as e:
                # A raising filter counts as a failed delivery
                if not notified:
                    handlers_notified.append(subscription.subscriber_name)
                handlers_failed.append(subscription.subscriber_name)
                logger.error(
                    f"[EVENTS] Handler {subscription.subscriber_name} failed for {event_type} "
                    f"on task {event.task_id}: {e}"
                )
                logger.debug(traceback.format_exc())
                self._dead_letter(event, str(e))

        record = EventRecord(
            event=event,
            published_at=published_at,
            handlers_notified=handlers_notified,
            handlers_succeeded=handlers_succeeded,
            handlers_failed=handlers_failed,
            processing_time_ms=(time.perf_counter() - started) * 1000
        )

        with self._lock:
            self.stats["handlers_executed"] += len(handlers_succeeded)
            self.stats["handlers_failed"] += len(handlers_failed)
            if handlers_succeeded:
                self.stats["events_delivered"] += 1
            if handlers_failed:
                self.stats["events_failed"] += 1

            if self.enable_history:
                self.event_history.append(record)
                if len(self.event_history) > self.history_max_size:
                    self.event_history = self.event_history[-self.history_max_size:]

        logger.debug(
            f"[EVENTS] {event_type} for task {event.task_id} delivered to "
            f"{len(handlers_succeeded)}/{len(handlers_notified)} handlers"
        )
        return record

    def _dead_letter(self, event: ContextEvent, error: str) -> None:
        """Queue a failed delivery, dropping the oldest beyond dead_letter_max_size."""
        with self._lock:
            self.dead_letter_queue.append((event, error))
            overflow = len(self.dead_letter_queue) - max(self.dead_letter_max_size, 0)
            if overflow > 0:
                del self.dead_letter_queue[:overflow]
                self.stats["dead_letters_dropped"] += overflow

    def get_event_history(
        self,
        event_type: Optional[Any] = None,
        task_id: Optional[str] = None,
        limit: int = 100
    ) -> List[ContextEvent]:
        """
        Get event history, optionally filtered.

        Args:
            event_type: Optional event type to filter by
            task_id: Optional task to filter by
            limit: Maximum number of events to return

        Returns:
            List of events (most recent first)
        """
        if event_type is not None and not isinstance(event_type, ContextEventType):
            event_type = ContextEventType(event_type)

        with self._lock:
            history = [record.event for record in reversed(self.event_history)]

        if event_type is not None:
            history = [e for e in history if e.event_type == event_type]
        if task_id is not None:
            history = [e for e in history if e.task_id == task_id]

        return history[:limit]

    def get_statistics(self) -> Dict[str, Any]:
        """Get event bus statistics."""
        with self._lock:
            return {
                **self.stats,
                "active_subscriptions": sum(len(subs) for subs in self.subscriptions.values()),
                "wildcard_subscriptions": len(self.wildcard_subscriptions),
                "dead_letter_queue_size": len(self.dead_letter_queue),
                "history_size": len(self.event_history)
            }

    def clear_dead_letter_queue(self) -> int:
        """Clear the dead letter queue."""
        with self._lock:
            cleared = len(self.dead_letter_queue)
            self.dead_letter_queue.clear()
        logger.info(f"[EVENTS] Dead letter queue cleared ({cleared} events)")
        return cleared
