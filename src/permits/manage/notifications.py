"""
Notification fan-out and read-state management.

Notifications are created as a side effect of workflow transitions and
reviewer assignment. Afterwards only ``is_read`` changes, and only from
False to True.

NOTE: Functions here flush but do NOT commit. Run them inside
management_transaction() together with the transition that caused them.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from permits.audit.logger import log_denied
from permits.core.identity import Identity, StaffUnit
from permits.exceptions import Forbidden, NotFound
from permits.notifications.models import Notification
from permits.notifications.templates import (
    UNIT_TEMPLATES, SUBMITTER_TEMPLATES, ASSIGNMENT_TEMPLATE, NotificationTemplate, lookup, render
)
from permits.realtime.events import queue_change
from permits.realtime.feed import UPDATE
from permits.workflow.events import WorkflowTransitionEvent
from permits.workflow.transitions import is_terminal, owning_unit
from permits.applications.applications import ApplicationStatus
from .transaction import store_errors

logger = logging.getLogger(__name__)


__all__ = [
    'on_workflow_transition',
    'notify_assignment',
    'can_access',
    'mark_as_read',
    'mark_all_as_read',
    'list_notifications',
    'unread_count',
]


def _build(template: NotificationTemplate, application_id: str, context: dict,
           target_unit: Optional[str] = None, target_user_id: Optional[int] = None) -> Notification:
    title, message = render(template, **context)
    return Notification(
        target_unit=target_unit,
        target_user_id=target_user_id,
        type=template.type,
        title=title,
        message=message,
        priority=template.priority.value,
        action_required=template.action_required,
        related_application_id=application_id,
        is_read=False,
    )


def on_workflow_transition(session: Session, event: Optional[WorkflowTransitionEvent]) -> List[Notification]:
    """
    Create the notifications that follow an applied transition.

    Recipients:
        - the staff unit owning the new state (unit-wide), unless terminal
        - the original submitter, on terminal states and requires_clarification

    Args:
        session: SQLAlchemy session
        event: Event returned by transition(); None (an idempotent replay)
               creates nothing

    Returns:
        Created notifications (flushed, so ids are assigned)
    """
    if event is None:
        return []

    context = {
        'reference': event.reference,
        'application_type': event.application_type,
        'title': event.title,
        'entity_name': event.entity_name,
        'from_state': event.from_state,
        'to_state': event.to_state,
        'action': event.action,
    }
    created = []

    unit = owning_unit(event.to_state) if not is_terminal(event.to_state) else None
    if unit is not None:
        template = lookup(UNIT_TEMPLATES, event.from_state, event.to_state, event.application_type)
        if template is not None:
            created.append(_build(template, event.application_id, context, target_unit=unit.value))

    if is_terminal(event.to_state) or event.to_state == ApplicationStatus.REQUIRES_CLARIFICATION.value:
        template = lookup(SUBMITTER_TEMPLATES, event.from_state, event.to_state, event.application_type)
        if template is not None:
            created.append(_build(template, event.application_id, context,
                                  target_user_id=event.submitted_by))

    if created:
        session.add_all(created)
        with store_errors():
            session.flush()
        logger.info(f"{event.reference}: {event.from_state} -> {event.to_state} notified "
                    + ', '.join(n.target_unit or f"user {n.target_user_id}" for n in created))

    return created


def notify_assignment(session: Session, application, reviewer_id: int) -> Notification:
    """Tell a reviewer an application was assigned to them. Flushes; does not commit."""
    context = {
        'reference': application.reference,
        'application_type': application.application_type,
        'title': application.title,
        'entity_name': application.entity_name,
    }
    notification = _build(ASSIGNMENT_TEMPLATE, application.id, context, target_user_id=reviewer_id)
    session.add(notification)
    with store_errors():
        session.flush()
    return notification


def can_access(actor: Optional[Identity], target_unit: Optional[str] = None,
               target_user_id: Optional[int] = None) -> bool:
    """
    Check whether an actor may read or mark notifications of a target.

    User-specific notifications belong to that user; unit-wide ones to the
    staff of that unit. super_admin may access every notification.
    """
    if actor is None:
        return False
    if actor.is_super_admin:
        return True
    if target_user_id is not None:
        return actor.user_id == target_user_id
    if target_unit is not None:
        return actor.is_staff and actor.staff_unit is not None and actor.staff_unit.value == target_unit
    return False


def _scope(unit, user_id):
    """Normalize a (unit, user_id) pair; exactly one must be given."""
    if (unit is None) == (user_id is None):
        raise ValueError("Exactly one of unit or user_id must be given")
    if unit is not None:
        unit = StaffUnit(unit).value
    return unit, user_id


def _check_scope(actor, unit, user_id, attempted):
    unit, user_id = _scope(unit, user_id)
    if not can_access(actor, unit, user_id):
        target = f"unit:{unit}" if unit is not None else f"user:{user_id}"
        log_denied(actor, attempted, 'Notification', target, Forbidden.code)
        raise Forbidden(f"Not permitted to access notifications for {target}")
    return unit, user_id


def _scope_clause(unit, user_id):
    if unit is not None:
        return Notification.target_unit == unit
    return Notification.target_user_id == user_id


def mark_as_read(session: Session, notification_id: int, actor: Identity) -> Notification:
    """
    Mark one notification as read.

    Raises:
        NotFound: If the notification does not exist
        Forbidden: If the actor is neither the target user nor in the target unit
    """
    notification = session.get(Notification, notification_id)
    if notification is None:
        raise NotFound(f"Notification {notification_id} not found", notification_id=notification_id)

    if not can_access(actor, notification.target_unit, notification.target_user_id):
        log_denied(actor, 'mark_as_read', 'Notification', notification_id, Forbidden.code)
        raise Forbidden(f"Not permitted to mark notification {notification_id} as read",
                        notification_id=notification_id)

    if not notification.is_read:
        notification.is_read = True
        with store_errors():
            session.flush()

    return notification


def _unread_ids(session: Session, unit=None, user_id=None) -> List[int]:
    stmt = select(Notification.id).where(_scope_clause(unit, user_id), Notification.is_read.is_(False))
    return list(session.scalars(stmt))


def mark_all_as_read(session: Session, actor: Identity, *, unit=None, user_id=None) -> int:
    """
    Mark every notification that is unread in a scope as read.

    The unread ids are snapshotted first and only those rows are flipped, so
    a notification created while the call is running stays unread.

    Args:
        session: SQLAlchemy session
        actor: Identity performing the action
        unit: Staff unit scope (unit-wide notifications)
        user_id: User scope (user-specific notifications)

    Returns:
        Number of notifications flipped to read

    Raises:
        Forbidden: If the actor may not access the scope
        ValueError: Unless exactly one of unit and user_id is given
    """
    unit, user_id = _check_scope(actor, unit, user_id, 'mark_all_as_read')

    snapshot = _unread_ids(session, unit=unit, user_id=user_id)
    if not snapshot:
        return 0

    with store_errors():
        result = session.execute(
            update(Notification)
            .where(Notification.id.in_(snapshot), Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        flipped = session.scalars(
            select(Notification)
            .where(Notification.id.in_(snapshot))
            .execution_options(populate_existing=True)
        ).all()

    # Bulk UPDATE bypasses the flush hooks
    for notification in flipped:
        queue_change(session, Notification.__tablename__, UPDATE, notification.to_dict())

    logger.info(f"{actor} marked {result.rowcount} notifications read "
                f"({'unit ' + unit if unit else 'user ' + str(user_id)})")
    return result.rowcount


def list_notifications(session: Session, actor: Identity, *, unit=None, user_id=None,
                       unread_only: bool = False, limit: Optional[int] = None) -> List[Notification]:
    """Notifications in a scope, newest first. Same authorization as mark_all_as_read()."""
    unit, user_id = _check_scope(actor, unit, user_id, 'list_notifications')

    stmt = select(Notification).where(_scope_clause(unit, user_id))
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def unread_count(session: Session, actor: Identity, *, unit=None, user_id=None) -> int:
    unit, user_id = _check_scope(actor, unit, user_id, 'unread_count')
    stmt = select(func.count(Notification.id)).where(
        _scope_clause(unit, user_id), Notification.is_read.is_(False))
    return session.scalar(stmt)
