"""
Client-side notification projection.

Holds the rows a client has seen for one scope (a unit or a user) and
derives the unread count from them on every read. Deliveries may repeat or
arrive out of order: rows are keyed by id, ``is_read`` only ever moves from
False to True, and a deleted id stays deleted.
"""
import logging
import threading
from typing import Dict, Iterable, List, Optional

from permits.notifications.models import Notification
from .feed import ChangeFeed, SubscriptionHandle

logger = logging.getLogger(__name__)


class NotificationInbox:

    def __init__(self, unit: Optional[str] = None, user_id: Optional[int] = None):
        if (unit is None) == (user_id is None):
            raise ValueError("Exactly one of unit or user_id must be given")
        self.unit = getattr(unit, 'value', unit)
        self.user_id = user_id
        self._rows: Dict[int, Dict] = {}
        self._deleted = set()
        self._lock = threading.Lock()
        self._feed: Optional[ChangeFeed] = None
        self._handle: Optional[SubscriptionHandle] = None

    @property
    def scope(self) -> Dict:
        if self.unit is not None:
            return {'target_unit': self.unit}
        return {'target_user_id': self.user_id}

    def _in_scope(self, row: Dict) -> bool:
        return all(row.get(k) == v for k, v in self.scope.items())

    def load(self, rows: Iterable[Dict]):
        """Replace the projection with a fresh snapshot from the record store."""
        with self._lock:
            self._rows = {}
            self._deleted = set()
        for row in rows:
            self.on_insert(row)

    def _merge(self, row: Dict):
        if not self._in_scope(row):
            return
        with self._lock:
            row_id = row['id']
            if row_id in self._deleted:
                return
            existing = self._rows.get(row_id)
            if existing is None:
                self._rows[row_id] = dict(row)
            else:
                merged = {**existing, **row}
                merged['is_read'] = bool(existing.get('is_read')) or bool(row.get('is_read'))
                self._rows[row_id] = merged

    def on_insert(self, row: Dict):
        self._merge(row)

    def on_update(self, row: Dict):
        self._merge(row)

    def on_delete(self, row: Dict):
        with self._lock:
            self._deleted.add(row['id'])
            self._rows.pop(row['id'], None)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for row in self._rows.values() if not row.get('is_read'))

    @property
    def notifications(self) -> List[Dict]:
        """Rows newest first."""
        with self._lock:
            rows = list(self._rows.values())
        return sorted(rows, key=lambda r: (r.get('created_at') or '', r['id']), reverse=True)

    def attach(self, feed: ChangeFeed) -> SubscriptionHandle:
        """Subscribe to notification changes in this inbox's scope."""
        self.detach()
        self._feed = feed
        self._handle = feed.subscribe(
            Notification.__tablename__, self.scope,
            on_insert=self.on_insert, on_update=self.on_update, on_delete=self.on_delete,
        )
        return self._handle

    def detach(self):
        if self._feed is not None and self._handle is not None:
            self._feed.unsubscribe(self._handle)
        self._feed = None
        self._handle = None

    def __len__(self):
        with self._lock:
            return len(self._rows)
