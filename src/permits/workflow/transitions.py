"""
Authoritative review workflow tables.

An application's status is a state in a finite-state machine. Every legal
move is an entry in TRANSITIONS keyed by (state, action); anything not in
the table is rejected structurally. Reject and revoke are the only moves
not listed per state: they are legal from every non-terminal state.

Pipeline:

    draft -> submitted -> under_assessment -> passed_initial_review
          -> forwarded_to_compliance -> compliance_review
          -> directorate_review -> approved -> letter_signed

with requires_clarification as the registry/compliance side loop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from permits.applications.applications import ApplicationStatus
from permits.core.identity import Identity, StaffUnit, StaffPosition, UserType
from permits.exceptions import InvalidTransition
from permits.security.access import AccessPolicy, authorize, position_at_least


class WorkflowAction(str, Enum):
    SUBMIT = 'submit'
    CANCEL = 'cancel'
    BEGIN_ASSESSMENT = 'begin_assessment'
    ASSESS_PASS = 'assess_pass'
    REQUEST_CLARIFICATION = 'request_clarification'
    RESUME_ASSESSMENT = 'resume_assessment'
    ACCEPT_REFERRAL = 'accept_referral'
    BEGIN_REVIEW = 'begin_review'
    APPROVE = 'approve'
    SIGN_LETTER = 'sign_letter'
    REJECT = 'reject'
    REVOKE = 'revoke'


APPLICANT = 'applicant'

S = ApplicationStatus
A = WorkflowAction

TERMINAL_STATES = frozenset({S.LETTER_SIGNED, S.REJECTED, S.REVOKED, S.CANCELLED})

# Actions available from every non-terminal state
UNIVERSAL_ACTIONS = (A.REJECT, A.REVOKE)

# Party responsible for moving the application out of each state
STATE_OWNERS: Dict[ApplicationStatus, Union[str, StaffUnit]] = {
    S.DRAFT: APPLICANT,
    S.SUBMITTED: StaffUnit.REGISTRY,
    S.UNDER_ASSESSMENT: StaffUnit.REGISTRY,
    S.REQUIRES_CLARIFICATION: StaffUnit.REGISTRY,
    S.PASSED_INITIAL_REVIEW: StaffUnit.COMPLIANCE,
    S.FORWARDED_TO_COMPLIANCE: StaffUnit.COMPLIANCE,
    S.COMPLIANCE_REVIEW: StaffUnit.COMPLIANCE,
    S.DIRECTORATE_REVIEW: StaffUnit.DIRECTORATE,
    S.APPROVED: StaffUnit.DIRECTORATE,
}

SENIOR_POSITIONS = (StaffPosition.MANAGER, StaffPosition.DIRECTOR, StaffPosition.MANAGING_DIRECTOR)

STATE_POLICIES: Dict[Union[str, StaffUnit], AccessPolicy] = {
    APPLICANT: AccessPolicy('applicant', allowed_roles=[UserType.PUBLIC]),
    StaffUnit.REGISTRY: AccessPolicy(
        'registry_review', allowed_roles=[UserType.STAFF], allowed_units=[StaffUnit.REGISTRY]),
    StaffUnit.COMPLIANCE: AccessPolicy(
        'compliance_review', allowed_roles=[UserType.STAFF], allowed_units=[StaffUnit.COMPLIANCE]),
    StaffUnit.DIRECTORATE: AccessPolicy(
        'directorate_review', allowed_roles=[UserType.STAFF], allowed_units=[StaffUnit.DIRECTORATE],
        allowed_positions=[StaffPosition.DIRECTOR, StaffPosition.MANAGING_DIRECTOR]),
}

SENIOR_STAFF = AccessPolicy('senior_staff', allowed_positions=SENIOR_POSITIONS)
MANAGING_DIRECTOR = AccessPolicy('managing_director', allowed_positions=[StaffPosition.MANAGING_DIRECTOR])


@dataclass(frozen=True)
class Edge:
    """Target state plus an optional edge-level policy on top of the state owner's."""
    next_state: ApplicationStatus
    policy: Optional[AccessPolicy] = None


TRANSITIONS: Dict[Tuple[ApplicationStatus, WorkflowAction], Edge] = {
    # Applicant
    (S.DRAFT, A.SUBMIT): Edge(S.SUBMITTED),
    (S.DRAFT, A.CANCEL): Edge(S.CANCELLED),

    # Registry: initial assessment
    (S.SUBMITTED, A.BEGIN_ASSESSMENT): Edge(S.UNDER_ASSESSMENT),
    (S.SUBMITTED, A.ASSESS_PASS): Edge(S.PASSED_INITIAL_REVIEW),
    (S.SUBMITTED, A.REQUEST_CLARIFICATION): Edge(S.REQUIRES_CLARIFICATION),
    (S.UNDER_ASSESSMENT, A.ASSESS_PASS): Edge(S.PASSED_INITIAL_REVIEW),
    (S.UNDER_ASSESSMENT, A.REQUEST_CLARIFICATION): Edge(S.REQUIRES_CLARIFICATION),
    (S.REQUIRES_CLARIFICATION, A.RESUME_ASSESSMENT): Edge(S.UNDER_ASSESSMENT),
    (S.REQUIRES_CLARIFICATION, A.ASSESS_PASS): Edge(S.PASSED_INITIAL_REVIEW),

    # Compliance: referral intake is a manager decision, review by any officer
    (S.PASSED_INITIAL_REVIEW, A.ACCEPT_REFERRAL): Edge(S.FORWARDED_TO_COMPLIANCE, SENIOR_STAFF),
    (S.FORWARDED_TO_COMPLIANCE, A.BEGIN_REVIEW): Edge(S.COMPLIANCE_REVIEW),
    (S.COMPLIANCE_REVIEW, A.APPROVE): Edge(S.DIRECTORATE_REVIEW),
    (S.COMPLIANCE_REVIEW, A.REQUEST_CLARIFICATION): Edge(S.REQUIRES_CLARIFICATION),

    # Directorate
    (S.DIRECTORATE_REVIEW, A.APPROVE): Edge(S.APPROVED),
    (S.APPROVED, A.SIGN_LETTER): Edge(S.LETTER_SIGNED, MANAGING_DIRECTOR),
}

UNIVERSAL_TARGETS = {
    A.REJECT: S.REJECTED,
    A.REVOKE: S.REVOKED,
}


def is_terminal(state) -> bool:
    return ApplicationStatus(state) in TERMINAL_STATES


def owner_of(state) -> Optional[Union[str, StaffUnit]]:
    """Owning party of a state, or None for terminal states."""
    return STATE_OWNERS.get(ApplicationStatus(state))


def owning_unit(state) -> Optional[StaffUnit]:
    """Staff unit owning a state, or None for applicant-owned and terminal states."""
    owner = owner_of(state)
    return owner if isinstance(owner, StaffUnit) else None


def legal_actions(state) -> List[WorkflowAction]:
    """All actions with an edge out of ``state``."""
    state = ApplicationStatus(state)
    if state in TERMINAL_STATES:
        return []
    actions = [action for (from_state, action) in TRANSITIONS if from_state == state]
    return actions + list(UNIVERSAL_ACTIONS)


def resolve(state, action) -> Edge:
    """
    Look up the edge for (state, action).

    Raises:
        InvalidTransition: If the state is terminal or no such edge exists
    """
    try:
        state = ApplicationStatus(state)
        action = WorkflowAction(action)
    except ValueError as e:
        raise InvalidTransition(str(e), state=state, action=action)

    if state in TERMINAL_STATES:
        raise InvalidTransition(f"Application is in terminal state '{state.value}'",
                                state=state.value, action=action.value)

    if action in UNIVERSAL_TARGETS:
        return Edge(UNIVERSAL_TARGETS[action])

    edge = TRANSITIONS.get((state, action))
    if edge is None:
        raise InvalidTransition(f"Cannot '{action.value}' an application in state '{state.value}'",
                                state=state.value, action=action.value)
    return edge


def next_state(state, action) -> ApplicationStatus:
    return resolve(state, action).next_state


def may_act_in_state(identity: Optional[Identity], state) -> bool:
    """Check the identity satisfies the policy of the party owning ``state``."""
    owner = owner_of(state)
    if owner is None:
        return False
    return authorize(identity, STATE_POLICIES[owner])


def may_reject_or_revoke(identity: Optional[Identity], state) -> bool:
    """
    Check the identity may reject or revoke in ``state``.

    Allowed for admins and super admins, and for managers and above of the
    unit currently owning the application.
    """
    if identity is None:
        return False
    if identity.is_admin:
        return True
    unit = owning_unit(state)
    return (identity.is_staff
            and unit is not None
            and identity.staff_unit == unit
            and position_at_least(identity, StaffPosition.MANAGER))


def reachable_states(start=S.DRAFT) -> List[ApplicationStatus]:
    """States reachable from ``start`` through the transition table."""
    seen = [ApplicationStatus(start)]
    frontier = list(seen)
    while frontier:
        state = frontier.pop()
        for action in legal_actions(state):
            target = next_state(state, action)
            if target not in seen:
                seen.append(target)
                frontier.append(target)
    return seen
