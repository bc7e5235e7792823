"""
Management functions for the review workflow and notifications.

All functions flush but never commit; use management_transaction() or
permits.service.ReviewService for a single commit boundary.
"""
from .transaction import management_transaction, store_errors
from .workflow import (
    TransitionResult,
    create_application,
    transition,
    assign_reviewer,
    get_application,
    get_review_records,
    get_transition_history,
)
from .notifications import (
    on_workflow_transition,
    notify_assignment,
    can_access,
    mark_as_read,
    mark_all_as_read,
    list_notifications,
    unread_count,
)
