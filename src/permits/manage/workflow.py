"""
Application workflow management functions.

Loads an application, checks the actor against the owning unit's policy
and the transition table, and applies the transition with its review
record, history row and audit entries.

NOTE: These functions flush but do NOT commit. Wrap them, together with
notification fan-out, in management_transaction() so state change, audit
rows and notifications commit or roll back as one.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from permits.applications.applications import (
    Application, ApplicationStatus, ApplicationTransition, ApplicationType, REFERENCE_PREFIXES
)
from permits.applications.reviews import ReviewRecord
from permits.audit.events import acting_as
from permits.audit.logger import log_denied
from permits.core.identity import Identity, Profile, StaffPosition, UserType
from permits.exceptions import (
    ConcurrentModification, InvalidTransition, NotFound, Unauthorized
)
from permits.security.access import authorize, get_route_policy, position_at_least
from permits.workflow.events import WorkflowTransitionEvent
from permits.workflow.transitions import (
    WorkflowAction, is_terminal, may_act_in_state, may_reject_or_revoke, owning_unit, resolve
)
from .notifications import notify_assignment
from .transaction import store_errors

logger = logging.getLogger(__name__)


__all__ = [
    'TransitionResult',
    'create_application',
    'transition',
    'assign_reviewer',
    'get_application',
    'get_review_records',
    'get_transition_history',
]


# ReviewRecord.assessment_status written by each action
ASSESSMENT_STATUS = {
    WorkflowAction.BEGIN_ASSESSMENT: 'in_progress',
    WorkflowAction.RESUME_ASSESSMENT: 'in_progress',
    WorkflowAction.ACCEPT_REFERRAL: 'pending',
    WorkflowAction.BEGIN_REVIEW: 'in_progress',
    WorkflowAction.ASSESS_PASS: 'passed',
    WorkflowAction.REQUEST_CLARIFICATION: 'requires_clarification',
    WorkflowAction.APPROVE: 'approved',
    WorkflowAction.SIGN_LETTER: 'letter_signed',
    WorkflowAction.REJECT: 'rejected',
    WorkflowAction.REVOKE: 'revoked',
}


@dataclass
class TransitionResult:
    """
    Outcome of transition().

    ``applied`` is False for an idempotent replay, in which case ``event``
    is None and nothing was written. ``notifications`` is filled in by
    callers that run fan-out (see ReviewService.apply_transition).
    """
    application: Application
    event: Optional[WorkflowTransitionEvent]
    applied: bool = True
    notifications: List = field(default_factory=list)

    @property
    def status(self) -> str:
        return self.application.status

    @property
    def version(self) -> int:
        return self.application.version


def _denied(exc_cls, message, actor, action, application_id, **details):
    """Log a refused attempt to the audit log and build the exception to raise."""
    log_denied(actor, action, 'Application', application_id, exc_cls.code)
    return exc_cls(message, application_id=application_id, action=action, **details)


def get_application(session: Session, application_id: str) -> Application:
    """
    Raises:
        NotFound: If no application has this id
    """
    application = session.get(Application, application_id)
    if application is None:
        raise NotFound(f"Application {application_id} not found", application_id=application_id)
    return application


def _next_reference(session: Session, application_type: ApplicationType, year: int) -> str:
    prefix = f"{REFERENCE_PREFIXES[application_type]}-{year}-"
    count = session.scalar(
        select(func.count(Application.id)).where(Application.reference.like(prefix + '%'))
    )
    return f"{prefix}{count + 1:05d}"


def create_application(
    session: Session,
    actor: Identity,
    *,
    title: str,
    application_type,
    entity_name: Optional[str] = None,
    description: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Application:
    """
    Create a draft application owned by the actor.

    NOTE: This function does NOT commit the session.

    Args:
        session: SQLAlchemy session
        actor: Applicant (public user) or admin creating on their behalf
        title: Project title
        application_type: ApplicationType or its value
        entity_name: Operating entity
        description: Free text

    Returns:
        Application: The new draft, reference e.g. 'NEW-2026-00001'

    Raises:
        Unauthorized: If the actor may not submit applications
        ValueError: For an unknown application type or empty title
        ConcurrentModification: If a concurrent submission took the same reference
    """
    if not authorize(actor, get_route_policy('submit_application')):
        log_denied(actor, 'create_application', 'Application', None, Unauthorized.code)
        raise Unauthorized("Not permitted to create applications")

    application_type = ApplicationType(application_type)
    if not title or not title.strip():
        raise ValueError("Application title is required")

    application = Application(
        reference=_next_reference(session, application_type, datetime.now().year),
        title=title.strip(),
        description=description,
        application_type=application_type.value,
        status=ApplicationStatus.DRAFT.value,
        entity_name=entity_name,
        submitted_by=actor.user_id,
    )
    session.add(application)

    try:
        with acting_as(session, actor, ip_address), store_errors():
            session.flush()
    except IntegrityError as e:
        # Another submission of the same type took this reference first
        raise ConcurrentModification(
            f"Reference {application.reference} is already taken; retry the submission",
            reference=application.reference,
        ) from e

    logger.info(f"{actor} created {application.reference} ({application_type.value})")
    return application


def _params_digest(**params) -> str:
    """sha256 over the review parameters of a transition request."""
    payload = json.dumps(params, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def _is_replay(session, application, action, actor, expected_version, digest) -> bool:
    """
    Check whether the latest applied transition is this exact request.

    A replay names the version the transition was applied against, by the
    same actor with the same action and review parameters, and nothing has
    changed since.
    """
    latest = session.scalars(
        select(ApplicationTransition)
        .where(ApplicationTransition.application_id == application.id)
        .order_by(ApplicationTransition.version.desc())
        .limit(1)
    ).first()
    return (latest is not None
            and latest.version == application.version
            and latest.version == expected_version + 1
            and latest.action == action.value
            and latest.actor_id == actor.user_id
            and latest.params_digest == digest)


def _record_review(session, application, action, actor, from_state, to_state, *,
                   notes=None, recommendations=None, requires_eia=None, requires_workplan=None,
                   eia_due_date=None, workplan_due_date=None) -> Optional[ReviewRecord]:
    """Create or update the acting unit's ReviewRecord. None for applicant actions."""
    unit = actor.staff_unit if actor.is_staff else owning_unit(from_state)
    if unit is None:
        return None

    record = session.scalars(
        select(ReviewRecord).where(ReviewRecord.application_id == application.id,
                                   ReviewRecord.unit == unit.value)
    ).one_or_none()
    if record is None:
        record = ReviewRecord(application=application, unit=unit.value)
        session.add(record)

    record.assessed_by = actor.user_id
    record.assessment_status = ASSESSMENT_STATUS.get(action, 'in_progress')
    next_unit = owning_unit(to_state)
    record.forwarded_to_next_unit = next_unit is not None and next_unit != unit

    if notes is not None:
        record.notes = notes
    if recommendations is not None:
        record.recommendations = recommendations
    if requires_eia is not None:
        record.requires_eia = requires_eia
    if requires_workplan is not None:
        record.requires_workplan = requires_workplan
    if eia_due_date is not None:
        record.eia_due_date = eia_due_date
    if workplan_due_date is not None:
        record.workplan_due_date = workplan_due_date
    return record


def transition(
    session: Session,
    application_id: str,
    action,
    actor: Identity,
    expected_version: int,
    *,
    notes: Optional[str] = None,
    recommendations: Optional[str] = None,
    requires_eia: Optional[bool] = None,
    requires_workplan: Optional[bool] = None,
    eia_due_date: Optional[date] = None,
    workplan_due_date: Optional[date] = None,
    ip_address: Optional[str] = None,
) -> TransitionResult:
    """
    Apply a workflow action to an application.

    Checks, in order: the application exists; ``expected_version`` is
    current (or the call replays the transition that produced the current
    version, which is a no-op); the state is not terminal; the actor may act
    for the owning party (reject/revoke: admins and managers of the owning
    unit); the action is an edge from the current state and the actor meets
    the edge policy.

    NOTE: This function does NOT commit the session. Failed checks are
    written to the audit log before raising.

    Args:
        session: SQLAlchemy session
        application_id: Application primary key
        action: WorkflowAction or its value
        actor: Identity performing the action
        expected_version: Application version the actor last read
        notes/recommendations/requires_*/..._due_date: Stored on the acting
            unit's ReviewRecord when given

    Returns:
        TransitionResult with the event for notification fan-out

    Raises:
        NotFound: If the application does not exist
        ConcurrentModification: If the version is stale, here or at flush
        InvalidTransition: If the state is terminal or no such edge exists
        Unauthorized: If the actor fails the state or edge policy
        UpstreamUnavailable: If the record store failed or timed out

    Example:
        with management_transaction(session):
            result = transition(session, app.id, 'assess_pass', officer, expected_version=2)
            on_workflow_transition(session, result.event)
    """
    application = get_application(session, application_id)

    try:
        action = WorkflowAction(action)
    except ValueError:
        raise _denied(InvalidTransition, f"Unknown workflow action '{action}'",
                      actor, action, application_id)

    if actor is None:
        raise _denied(Unauthorized, "Anonymous actors may not change applications",
                      actor, action.value, application_id)

    digest = _params_digest(notes=notes, recommendations=recommendations,
                            requires_eia=requires_eia, requires_workplan=requires_workplan,
                            eia_due_date=eia_due_date, workplan_due_date=workplan_due_date)

    if expected_version != application.version:
        if _is_replay(session, application, action, actor, expected_version, digest):
            logger.info(f"{actor} replayed '{action.value}' on {application.reference}; already applied")
            return TransitionResult(application, event=None, applied=False)
        raise ConcurrentModification(
            f"{application.reference} is at version {application.version}, not {expected_version}",
            application_id=application_id, current_version=application.version,
        )

    state = application.status_enum

    if is_terminal(state):
        raise _denied(InvalidTransition,
                      f"{application.reference} is in terminal state '{state.value}'",
                      actor, action.value, application_id, state=state.value)

    if action in (WorkflowAction.REJECT, WorkflowAction.REVOKE):
        if not may_reject_or_revoke(actor, state):
            raise _denied(Unauthorized,
                          f"{actor} may not {action.value} {application.reference} in '{state.value}'",
                          actor, action.value, application_id, state=state.value)
    else:
        if not may_act_in_state(actor, state):
            raise _denied(Unauthorized,
                          f"{actor} may not act on {application.reference} in '{state.value}'",
                          actor, action.value, application_id, state=state.value)
        if state == ApplicationStatus.DRAFT and not actor.is_super_admin \
                and actor.user_id != application.submitted_by:
            raise _denied(Unauthorized,
                          f"Only the submitter may {action.value} draft {application.reference}",
                          actor, action.value, application_id, state=state.value)

    try:
        edge = resolve(state, action)
    except InvalidTransition as e:
        log_denied(actor, action.value, 'Application', application_id, e.code)
        raise

    if edge.policy is not None and not authorize(actor, edge.policy):
        raise _denied(Unauthorized,
                      f"{actor} does not meet '{edge.policy.name}' for {action.value}",
                      actor, action.value, application_id, state=state.value)

    from_state = state.value
    to_state = edge.next_state.value
    now = datetime.now()

    with acting_as(session, actor, ip_address), store_errors():
        application.status = to_state
        if action == WorkflowAction.SUBMIT:
            application.submitted_at = now

        _record_review(session, application, action, actor, state, edge.next_state,
                       notes=notes, recommendations=recommendations,
                       requires_eia=requires_eia, requires_workplan=requires_workplan,
                       eia_due_date=eia_due_date, workplan_due_date=workplan_due_date)

        # version_id_col bumps the version by one on this flush
        session.add(ApplicationTransition(
            application=application,
            from_state=from_state,
            to_state=to_state,
            action=action.value,
            actor_id=actor.user_id,
            version=expected_version + 1,
            params_digest=digest,
            created_at=now,
        ))
        session.flush()

    event = WorkflowTransitionEvent(
        application_id=application.id,
        reference=application.reference,
        application_type=application.application_type,
        title=application.title,
        entity_name=application.entity_name,
        submitted_by=application.submitted_by,
        from_state=from_state,
        to_state=to_state,
        action=action.value,
        actor_id=actor.user_id,
        version=application.version,
        timestamp=now,
    )
    logger.info(f"{actor} {action.value}: {application.reference} {from_state} -> {to_state} "
                f"(version {application.version})")
    return TransitionResult(application, event)


def assign_reviewer(
    session: Session,
    application_id: str,
    reviewer_id: int,
    actor: Identity,
    *,
    ip_address: Optional[str] = None,
) -> Application:
    """
    Assign a staff reviewer from the unit that currently owns the application.

    Managers and above of the owning unit, and admins, may assign. The
    reviewer receives a user-specific notification. Assignment bumps the
    application version.

    NOTE: This function does NOT commit the session.

    Raises:
        NotFound: If the application or reviewer does not exist
        InvalidTransition: If no staff unit owns the current state
        Unauthorized: If the actor may not assign, or the reviewer is not
                      active staff of the owning unit
    """
    application = get_application(session, application_id)
    unit = owning_unit(application.status)
    if unit is None:
        raise _denied(InvalidTransition,
                      f"{application.reference} in '{application.status}' has no reviewing unit",
                      actor, 'assign_reviewer', application_id)

    allowed = actor is not None and (
        actor.is_admin
        or (actor.is_staff and actor.staff_unit == unit and position_at_least(actor, StaffPosition.MANAGER))
    )
    if not allowed:
        raise _denied(Unauthorized, f"{actor} may not assign reviewers for {unit.value}",
                      actor, 'assign_reviewer', application_id)

    reviewer = session.get(Profile, reviewer_id)
    if reviewer is None:
        raise NotFound(f"Reviewer {reviewer_id} not found", reviewer_id=reviewer_id)
    if not reviewer.is_active or reviewer.user_type != UserType.STAFF.value or reviewer.staff_unit != unit.value:
        raise _denied(Unauthorized, f"{reviewer} is not active {unit.value} staff",
                      actor, 'assign_reviewer', application_id, reviewer_id=reviewer_id)

    with acting_as(session, actor, ip_address), store_errors():
        application.assigned_reviewer_id = reviewer.user_id
        session.flush()

    notify_assignment(session, application, reviewer.user_id)
    logger.info(f"{actor} assigned {application.reference} to {reviewer}")
    return application


def get_review_records(session: Session, application_id: str) -> List[ReviewRecord]:
    """All unit review records for an application, oldest first."""
    get_application(session, application_id)
    return list(session.scalars(
        select(ReviewRecord)
        .where(ReviewRecord.application_id == application_id)
        .order_by(ReviewRecord.created_at)
    ))


def get_transition_history(session: Session, application_id: str) -> List[ApplicationTransition]:
    """Applied transitions for an application in version order."""
    get_application(session, application_id)
    return list(session.scalars(
        select(ApplicationTransition)
        .where(ApplicationTransition.application_id == application_id)
        .order_by(ApplicationTransition.version)
    ))
