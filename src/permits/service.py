"""
One-call review operations with a single commit boundary.

Each method runs the management functions it needs inside
management_transaction(): a transition, its review record, history row,
audit rows and notifications commit together or not at all.

Usage:
    service = ReviewService(session)
    result = service.apply_transition(app_id, 'assess_pass', officer, expected_version=2)
    result.notifications  # fan-out created with the transition
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from permits.applications.applications import Application
from permits.core.identity import Identity
from permits.manage.notifications import (
    on_workflow_transition, mark_as_read, mark_all_as_read
)
from permits.manage.transaction import management_transaction
from permits.manage.workflow import (
    TransitionResult, create_application, transition, assign_reviewer
)
from permits.notifications.models import Notification

logger = logging.getLogger(__name__)


class ReviewService:

    def __init__(self, session: Session):
        self.session = session

    def create_application(self, actor: Identity, **kwargs) -> Application:
        with management_transaction(self.session):
            return create_application(self.session, actor, **kwargs)

    def apply_transition(self, application_id: str, action, actor: Identity,
                         expected_version: int, **kwargs) -> TransitionResult:
        """
        Transition an application and fan out its notifications in one commit.

        An idempotent replay commits nothing and creates no notifications.
        """
        with management_transaction(self.session):
            result = transition(self.session, application_id, action, actor, expected_version, **kwargs)
            result.notifications = on_workflow_transition(self.session, result.event)
        return result

    def assign_reviewer(self, application_id: str, reviewer_id: int, actor: Identity,
                        **kwargs) -> Application:
        with management_transaction(self.session):
            return assign_reviewer(self.session, application_id, reviewer_id, actor, **kwargs)

    def mark_as_read(self, notification_id: int, actor: Identity) -> Notification:
        with management_transaction(self.session):
            return mark_as_read(self.session, notification_id, actor)

    def mark_all_as_read(self, actor: Identity, *, unit=None, user_id: Optional[int] = None) -> int:
        with management_transaction(self.session):
            return mark_all_as_read(self.session, actor, unit=unit, user_id=user_id)
