"""
Change events emitted by the graph store.

GraphStore describes every successful mutation as a GraphEvent and hands it
to an injected sink. A sink is any callable taking one GraphEvent. The store
never waits on a sink and never lets a sink failure undo a mutation.

EventBus is the in-process sink: it fans events out to subscribers with
optional event-type filters.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from knowgraph.graph.models import utc_now


logger = logging.getLogger(__name__)


class GraphEventType(str, Enum):
    """Kinds of graph mutation."""

    NODE_ADDED = "node.added"
    NODE_UPDATED = "node.updated"
    NODE_DELETED = "node.deleted"
    EDGE_ADDED = "edge.added"
    EDGE_DELETED = "edge.deleted"


@dataclass(frozen=True)
class GraphEvent:
    """
    Description of a single graph mutation.

    Attributes:
        event_type: What happened
        payload: The node or edge as a dictionary (full record, not a diff)
        timestamp: When the mutation was applied
    """

    event_type: GraphEventType
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_type": self.event_type.value,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class EventSink(Protocol):
    """Anything that can receive graph events."""

    def __call__(self, event: GraphEvent) -> None: ...


@dataclass
class Subscription:
    """A subscription to graph events."""

    subscription_id: str
    callback: Callable[[GraphEvent], None]
    event_types: Optional[frozenset[GraphEventType]] = None
    created_at: datetime = field(default_factory=utc_now)
    active: bool = True

    def matches(self, event: GraphEvent) -> bool:
        """Check if an event matches this subscription."""
        if not self.active:
            return False

        if self.event_types and event.event_type not in self.event_types:
            return False

        return True


@dataclass
class EventBusStats:
    """Delivery statistics for the event bus."""

    total_published: int = 0
    total_delivered: int = 0
    total_failed: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)

    def record_published(self, event: GraphEvent) -> None:
        """Record a published event."""
        self.total_published += 1
        event_type = event.event_type.value
        self.events_by_type[event_type] = self.events_by_type.get(event_type, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "total_published": self.total_published,
            "total_delivered": self.total_delivered,
            "total_failed": self.total_failed,
            "events_by_type": dict(self.events_by_type),
        }


class EventBus:
    """
    Synchronous in-process event fan-out.

    The bus instance is itself a valid EventSink, so it can be passed
    directly to GraphStore.

    Example:
        bus = EventBus()
        bus.subscribe(print, event_types=[GraphEventType.NODE_ADDED])
        store = GraphStore(event_sink=bus)
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._stats = EventBusStats()

    @property
    def stats(self) -> EventBusStats:
        """Return delivery statistics."""
        return self._stats

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return sum(1 for s in self._subscriptions.values() if s.active)

    def subscribe(
        self,
        callback: Callable[[GraphEvent], None],
        event_types: Optional[list[GraphEventType]] = None,
    ) -> str:
        """
        Register a callback.

        Args:
            callback: Called with each matching event
            event_types: Restrict delivery to these types (all types if None)

        Returns:
            Subscription id usable with unsubscribe()
        """
        subscription_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[subscription_id] = Subscription(
            subscription_id=subscription_id,
            callback=callback,
            event_types=frozenset(event_types) if event_types else None,
        )
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if it was unknown."""
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False
        subscription.active = False
        return True

    def publish(self, event: GraphEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        A failing subscriber is logged and does not prevent delivery to
        the others.

        Returns:
            Number of successful deliveries
        """
        self._stats.record_published(event)
        delivered = 0

        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            try:
                subscription.callback(event)
                delivered += 1
                self._stats.total_delivered += 1
            except Exception:
                self._stats.total_failed += 1
                logger.exception(
                    f"Subscriber {subscription.subscription_id} failed on {event.event_type.value}"
                )

        return delivered

    def __call__(self, event: GraphEvent) -> None:
        self.publish(event)
