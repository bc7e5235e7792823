"""
Permits Query Helpers

Usage:
    from permits.queries import get_unit_queue, get_status_counts
"""

from .queues import (
    states_owned_by,
    get_unit_queue,
    get_assigned_applications,
    get_applications_by_submitter,
    get_status_counts,
)
