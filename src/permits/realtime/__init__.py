"""
Real-time delivery of notification changes.

Usage:
    from permits.realtime import LocalChangeFeed, NotificationInbox, init_realtime_events

    feed = LocalChangeFeed()
    init_realtime_events(feed, target=SessionLocal)

    inbox = NotificationInbox(unit='compliance')
    inbox.load(rows)
    inbox.attach(feed)
    inbox.unread_count
"""
from .feed import (
    ChangeFeed,
    LocalChangeFeed,
    SubscriptionHandle,
    INSERT,
    UPDATE,
    DELETE,
)
from .events import (
    init_realtime_events,
    reset_realtime_events,
    queue_change,
    pending_changes,
)
from .inbox import NotificationInbox
