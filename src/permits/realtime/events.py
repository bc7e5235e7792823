"""
SQLAlchemy session hooks that push Notification changes to a ChangeFeed.

Changes are collected at flush time and published only after the
transaction commits; a rollback discards them, so subscribers never see a
notification that was not persisted.
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import Session

from permits.notifications.models import Notification
from .feed import ChangeFeed, INSERT, UPDATE, DELETE

logger = logging.getLogger(__name__)

PENDING_KEY = 'realtime_pending'

# target -> _FeedPublisher, so reset_realtime_events() can detach them
_REGISTERED_PUBLISHERS = {}


def queue_change(session, table, event_type, row):
    """
    Queue a row change for publication when the session commits.

    Used for changes made with bulk UPDATE statements, which bypass the
    flush hooks.
    """
    session.info.setdefault(PENDING_KEY, []).append((table, event_type, row))


def pending_changes(session):
    return list(session.info.get(PENDING_KEY, ()))


class _FeedPublisher:

    def __init__(self, feed: ChangeFeed):
        self.feed = feed

    def after_flush(self, session, flush_context):
        table = Notification.__tablename__
        for obj in session.new:
            if isinstance(obj, Notification):
                queue_change(session, table, INSERT, obj.to_dict())
        for obj in session.dirty:
            if isinstance(obj, Notification) and session.is_modified(obj, include_collections=False):
                queue_change(session, table, UPDATE, obj.to_dict())
        for obj in session.deleted:
            if isinstance(obj, Notification):
                queue_change(session, table, DELETE, obj.to_dict())

    def after_commit(self, session):
        changes = session.info.pop(PENDING_KEY, [])
        for table, event_type, row in changes:
            try:
                self.feed.publish(table, event_type, row)
            except Exception:
                # Already committed; clients re-sync from the record store
                logger.exception(f"Failed to publish {event_type} {table} id={row.get('id')}")

    def after_rollback(self, session):
        discarded = session.info.pop(PENDING_KEY, [])
        if discarded:
            logger.debug(f"Discarded {len(discarded)} unpublished changes on rollback")


def init_realtime_events(feed: ChangeFeed, target=Session):
    """
    Publish committed Notification changes from sessions of ``target``.

    Args:
        feed: ChangeFeed to publish to
        target: Session class, sessionmaker or scoped_session to listen on.
                Registering twice on the same target is a no-op.
    """
    if target in _REGISTERED_PUBLISHERS:
        return _REGISTERED_PUBLISHERS[target]

    publisher = _FeedPublisher(feed)
    event.listen(target, 'after_flush', publisher.after_flush)
    event.listen(target, 'after_commit', publisher.after_commit)
    event.listen(target, 'after_rollback', publisher.after_rollback)
    _REGISTERED_PUBLISHERS[target] = publisher
    return publisher


def reset_realtime_events():
    """Detach all realtime publishers."""
    for target, publisher in list(_REGISTERED_PUBLISHERS.items()):
        event.remove(target, 'after_flush', publisher.after_flush)
        event.remove(target, 'after_commit', publisher.after_commit)
        event.remove(target, 'after_rollback', publisher.after_rollback)
    _REGISTERED_PUBLISHERS.clear()
