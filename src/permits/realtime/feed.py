"""
Publish/subscribe change feed.

The review core only talks to the ChangeFeed interface; a hosted database
change stream, a message broker or the in-process LocalChangeFeed can sit
behind it. Delivery is at-least-once and unordered per subscriber, so
consumers de-duplicate by row id (see NotificationInbox).
"""
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'
EVENT_TYPES = (INSERT, UPDATE, DELETE)

RowCallback = Callable[[Dict], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int
    table: str
    filter: Dict = field(default_factory=dict, hash=False, compare=False)


class ChangeFeed(ABC):
    """Table-scoped publish/subscribe channel."""

    @abstractmethod
    def subscribe(self, table: str, filter: Optional[Dict] = None,
                  on_insert: Optional[RowCallback] = None,
                  on_update: Optional[RowCallback] = None,
                  on_delete: Optional[RowCallback] = None) -> SubscriptionHandle:
        """
        Register callbacks for row changes on ``table``.

        Args:
            table: Table name (e.g. 'notifications')
            filter: Column equality filter, e.g. {'target_unit': 'compliance'}
            on_insert/on_update/on_delete: Called with the row dict

        Returns:
            SubscriptionHandle to pass to unsubscribe()
        """

    @abstractmethod
    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop delivering to a subscription. Unknown handles are ignored."""

    @abstractmethod
    def publish(self, table: str, event_type: str, row: Dict) -> int:
        """Deliver a row change to matching subscribers; returns the delivery count."""


@dataclass
class _Subscription:
    handle: SubscriptionHandle
    callbacks: Dict[str, Optional[RowCallback]]

    def matches(self, table: str, row: Dict) -> bool:
        if table != self.handle.table:
            return False
        return all(row.get(column) == value for column, value in self.handle.filter.items())


class LocalChangeFeed(ChangeFeed):
    """
    In-process, thread-safe change feed.

    Callbacks run on the publishing thread, outside the feed lock. A failing
    subscriber is logged and skipped; it never fails the publisher.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._subscriptions: Dict[int, _Subscription] = {}

    def subscribe(self, table, filter=None, on_insert=None, on_update=None, on_delete=None):
        handle = SubscriptionHandle(next(self._ids), table, dict(filter or {}))
        subscription = _Subscription(handle, {INSERT: on_insert, UPDATE: on_update, DELETE: on_delete})
        with self._lock:
            self._subscriptions[handle.id] = subscription
        logger.debug(f"Subscribed #{handle.id} to {table} where {handle.filter}")
        return handle

    def unsubscribe(self, handle):
        with self._lock:
            self._subscriptions.pop(handle.id, None)

    def publish(self, table, event_type, row):
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(table, row)]

        delivered = 0
        for subscription in targets:
            callback = subscription.callbacks.get(event_type)
            if callback is None:
                continue
            try:
                callback(dict(row))
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber #{subscription.handle.id} failed on {event_type} {table}")
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscriptions(self) -> List[SubscriptionHandle]:
        with self._lock:
            return [s.handle for s in self._subscriptions.values()]
