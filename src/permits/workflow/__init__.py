"""
Review workflow state machine: static transition tables and the event
emitted for every applied transition.

The operations that load, check and persist transitions live in
permits.manage.workflow.
"""
from permits.applications.applications import ApplicationStatus
from .transitions import (
    WorkflowAction,
    APPLICANT,
    TERMINAL_STATES,
    STATE_OWNERS,
    STATE_POLICIES,
    Edge,
    TRANSITIONS,
    is_terminal,
    owner_of,
    owning_unit,
    legal_actions,
    resolve,
    next_state,
    may_act_in_state,
    may_reject_or_revoke,
    reachable_states,
)
from .events import WorkflowTransitionEvent
