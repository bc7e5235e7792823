"""
SQLAlchemy event handlers for the audit trail.

Registers a before_flush listener that appends an AuditLogEntry row for
every INSERT, UPDATE and DELETE of an Application or ReviewRecord. The
rows are flushed with the change they describe, so they commit or roll
back together with it.
"""
import json
from contextlib import contextmanager
from datetime import date, datetime

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from permits.applications import Application, ReviewRecord
from permits.audit.models import AuditLogEntry, AuditAction
from permits.audit.logger import get_audit_logger


AUDITED_MODELS = (Application, ReviewRecord)

# Bookkeeping columns maintained by the store; the audit row carries its own timestamp
IGNORED_ATTRIBUTES = {'created_at', 'updated_at', 'version'}

# target -> listener, so reset_audit_events() can detach them
_REGISTERED_LISTENERS = {}


@contextmanager
def acting_as(session, actor, ip_address=None):
    """
    Attribute changes flushed inside the block to ``actor``.

    Usage:
        with acting_as(session, identity, request.remote_addr):
            application.status = 'submitted'
            session.flush()
    """
    previous = (session.info.get('audit_actor'), session.info.get('audit_ip'))
    session.info['audit_actor'] = actor
    session.info['audit_ip'] = ip_address
    try:
        yield session
    finally:
        session.info['audit_actor'], session.info['audit_ip'] = previous


def responsible_user(session):
    """
    Determine who is responsible for the pending changes.

    Returns:
        tuple: (actor_id or None, ip_address or None)
    """
    actor = session.info.get('audit_actor')
    if actor is not None:
        return getattr(actor, 'user_id', actor), session.info.get('audit_ip')

    try:
        from flask import request
        from flask_login import current_user

        if current_user and current_user.is_authenticated:
            return current_user.user_id, request.remote_addr
    except RuntimeError:
        # No Flask request context (CLI, background job)
        pass

    return None, None


def _serialize(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot_for_object(obj):
    """Column values of a new or deleted object."""
    return {
        column_attr.key: _serialize(getattr(obj, column_attr.key))
        for column_attr in inspect(obj).mapper.column_attrs
        if column_attr.key not in IGNORED_ATTRIBUTES
    }


def diff_for_object(obj):
    """
    Extract changed attributes and their old/new values.

    Returns:
        dict: {attribute: {'old': value, 'new': value}}
    """
    insp = inspect(obj)
    changes = {}

    for column_attr in insp.mapper.column_attrs:
        if column_attr.key in IGNORED_ATTRIBUTES:
            continue
        attr = insp.attrs[column_attr.key]
        hist = attr.history
        if hist.has_changes():
            old_value = hist.deleted[0] if hist.deleted else None
            new_value = hist.added[0] if hist.added else None
            changes[attr.key] = {'old': _serialize(old_value), 'new': _serialize(new_value)}

    return changes


def before_flush(session, flush_context, instances):
    """
    Append audit rows for tracked objects in the pending flush.

    Errors propagate: a change that cannot be audited is not flushed.
    """
    logger = get_audit_logger()
    actor_id, ip_address = responsible_user(session)
    entries = []

    for obj in list(session.new):
        if isinstance(obj, AUDITED_MODELS):
            entries.append((AuditAction.CREATE, obj, snapshot_for_object(obj)))

    for obj in list(session.dirty):
        if isinstance(obj, AUDITED_MODELS) and session.is_modified(obj, include_collections=False):
            changes = diff_for_object(obj)
            if changes:
                entries.append((AuditAction.UPDATE, obj, changes))

    for obj in list(session.deleted):
        if isinstance(obj, AUDITED_MODELS):
            entries.append((AuditAction.DELETE, obj, snapshot_for_object(obj)))

    for action, obj, changes in entries:
        model_name = obj.__class__.__name__
        session.add(AuditLogEntry(
            actor_id=actor_id,
            action=action.value,
            target_type=model_name,
            target_id=obj.id,
            changes=json.dumps(changes, default=str, sort_keys=True),
            ip_address=ip_address,
        ))
        logger.info(
            f"user={actor_id or 'anonymous'} action={action.value} model={model_name} "
            f"pk={obj.id} changes={changes}"
        )


def init_audit_events(logfile_path=None, target=Session):
    """
    Initialize audit trail event handlers.

    Args:
        logfile_path: Path to audit log file (default from environment)
        target: Session class, sessionmaker or scoped_session to listen on.
                Registering twice on the same target is a no-op.
    """
    if target in _REGISTERED_LISTENERS:
        return

    get_audit_logger(logfile_path)
    event.listen(target, 'before_flush', before_flush)
    _REGISTERED_LISTENERS[target] = before_flush


def reset_audit_events():
    """
    Detach all audit event handlers.

    Primarily for tests that build a fresh session factory per test.
    """
    for target, listener in list(_REGISTERED_LISTENERS.items()):
        event.remove(target, 'before_flush', listener)
    _REGISTERED_LISTENERS.clear()
