"""
Unit tests for the workflow transition table.

These exercise the pure table functions only; nothing touches the database.
"""
import pytest

from permits.applications.applications import ApplicationStatus
from permits.core.identity import Identity, StaffUnit
from permits.exceptions import InvalidTransition
from permits.workflow.transitions import (
    TERMINAL_STATES, TRANSITIONS, WorkflowAction, APPLICANT,
    is_terminal, owner_of, owning_unit, legal_actions, resolve, next_state,
    may_act_in_state, may_reject_or_revoke, reachable_states,
)


NON_TERMINAL = [s for s in ApplicationStatus if s not in TERMINAL_STATES]


class TestTableShape:

    def test_thirteen_states(self):
        assert len(ApplicationStatus) == 13

    def test_every_state_reachable_from_draft(self):
        assert set(reachable_states()) == set(ApplicationStatus)

    def test_terminal_states(self):
        assert {s.value for s in TERMINAL_STATES} == {'letter_signed', 'rejected', 'revoked', 'cancelled'}
        for state in TERMINAL_STATES:
            assert is_terminal(state)
            assert owner_of(state) is None

    def test_no_edges_leave_terminal_states(self):
        for (from_state, _action) in TRANSITIONS:
            assert from_state not in TERMINAL_STATES

    @pytest.mark.parametrize('state', NON_TERMINAL, ids=lambda s: s.value)
    def test_reject_and_revoke_available_until_terminal(self, state):
        actions = legal_actions(state)
        assert WorkflowAction.REJECT in actions
        assert WorkflowAction.REVOKE in actions
        assert next_state(state, 'reject') == ApplicationStatus.REJECTED
        assert next_state(state, 'revoke') == ApplicationStatus.REVOKED

    @pytest.mark.parametrize('state', sorted(TERMINAL_STATES), ids=lambda s: s.value)
    def test_terminal_states_have_no_actions(self, state):
        assert legal_actions(state) == []


class TestOwnership:

    def test_draft_owned_by_applicant(self):
        assert owner_of('draft') == APPLICANT
        assert owning_unit('draft') is None

    @pytest.mark.parametrize('state,unit', [
        ('submitted', StaffUnit.REGISTRY),
        ('under_assessment', StaffUnit.REGISTRY),
        ('requires_clarification', StaffUnit.REGISTRY),
        ('passed_initial_review', StaffUnit.COMPLIANCE),
        ('forwarded_to_compliance', StaffUnit.COMPLIANCE),
        ('compliance_review', StaffUnit.COMPLIANCE),
        ('directorate_review', StaffUnit.DIRECTORATE),
        ('approved', StaffUnit.DIRECTORATE),
    ])
    def test_owning_unit(self, state, unit):
        assert owning_unit(state) == unit


class TestResolve:

    def test_happy_path_edges(self):
        assert next_state('draft', 'submit') == ApplicationStatus.SUBMITTED
        assert next_state('under_assessment', 'assess_pass') == ApplicationStatus.PASSED_INITIAL_REVIEW
        assert next_state('compliance_review', 'approve') == ApplicationStatus.DIRECTORATE_REVIEW
        assert next_state('approved', 'sign_letter') == ApplicationStatus.LETTER_SIGNED

    def test_clarification_loop(self):
        assert next_state('under_assessment', 'request_clarification') == ApplicationStatus.REQUIRES_CLARIFICATION
        assert next_state('requires_clarification', 'resume_assessment') == ApplicationStatus.UNDER_ASSESSMENT

    def test_missing_edge_raises(self):
        with pytest.raises(InvalidTransition):
            resolve('draft', 'approve')

    def test_terminal_state_raises(self):
        with pytest.raises(InvalidTransition, match='terminal'):
            resolve('letter_signed', 'reject')

    def test_unknown_action_raises(self):
        with pytest.raises(InvalidTransition):
            resolve('submitted', 'teleport')

    def test_edge_policies(self):
        assert resolve('passed_initial_review', 'accept_referral').policy.name == 'senior_staff'
        assert resolve('approved', 'sign_letter').policy.name == 'managing_director'
        assert resolve('submitted', 'begin_assessment').policy is None


class TestStatePermissions:

    def test_state_owner_policy(self):
        officer = Identity(1, 'staff', 'registry', 'officer')
        assert may_act_in_state(officer, 'under_assessment')
        assert not may_act_in_state(officer, 'compliance_review')
        assert may_act_in_state(Identity(2, 'public'), 'draft')
        assert not may_act_in_state(officer, 'letter_signed')

    def test_directorate_requires_director(self):
        assert not may_act_in_state(Identity(1, 'staff', 'directorate', 'officer'), 'directorate_review')
        assert may_act_in_state(Identity(2, 'staff', 'directorate', 'director'), 'directorate_review')

    def test_reject_requires_manager_of_owning_unit(self):
        assert may_reject_or_revoke(Identity(1, 'staff', 'compliance', 'manager'), 'compliance_review')
        assert not may_reject_or_revoke(Identity(2, 'staff', 'compliance', 'officer'), 'compliance_review')
        assert not may_reject_or_revoke(Identity(3, 'staff', 'registry', 'manager'), 'compliance_review')

    def test_admins_may_reject_anywhere(self):
        for state in NON_TERMINAL:
            assert may_reject_or_revoke(Identity(1, 'admin'), state)

    def test_applicant_may_not_reject(self):
        assert not may_reject_or_revoke(Identity(1, 'public'), 'draft')
        assert not may_reject_or_revoke(None, 'submitted')
