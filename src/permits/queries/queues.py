"""
Work queue queries.

Functions:
    get_unit_queue: Open applications in states owned by a staff unit
    get_assigned_applications: Open applications assigned to a reviewer
    get_applications_by_submitter: An applicant's own applications
    get_status_counts: Application counts per status
"""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from permits.applications.applications import Application
from permits.core.identity import StaffUnit
from permits.workflow.transitions import STATE_OWNERS, TERMINAL_STATES


def states_owned_by(unit) -> List[str]:
    unit = StaffUnit(unit)
    return [state.value for state, owner in STATE_OWNERS.items() if owner == unit]


def get_unit_queue(session: Session, unit, unassigned_only: bool = False,
                   limit: Optional[int] = None) -> List[Application]:
    """
    Applications waiting on a unit, oldest first.

    Args:
        unit: StaffUnit or its value
        unassigned_only: Only applications without an assigned reviewer
        limit: Maximum number of rows
    """
    states = states_owned_by(unit)
    if not states:
        return []

    query = session.query(Application).filter(Application.status.in_(states))
    if unassigned_only:
        query = query.filter(Application.assigned_reviewer_id.is_(None))
    query = query.order_by(Application.submitted_at, Application.created_at)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_assigned_applications(session: Session, reviewer_id: int) -> List[Application]:
    terminal = [s.value for s in TERMINAL_STATES]
    return session.query(Application)\
        .filter(Application.assigned_reviewer_id == reviewer_id)\
        .filter(Application.status.notin_(terminal))\
        .order_by(Application.updated_at.desc())\
        .all()


def get_applications_by_submitter(session: Session, user_id: int) -> List[Application]:
    return session.query(Application)\
        .filter(Application.submitted_by == user_id)\
        .order_by(Application.created_at.desc())\
        .all()


def get_status_counts(session: Session) -> Dict[str, int]:
    """
    Returns:
        Dict mapping status value to number of applications
    """
    results = session.query(Application.status, func.count(Application.id))\
        .group_by(Application.status)\
        .all()
    return {status: count for status, count in results}
