"""
Unit tests for workflow transitions through ReviewService.

Covers state changes, review records, authorization failures, idempotent
replay, reject/revoke, reviewer assignment and the audit trail.
"""
import json
from datetime import date, datetime

import pytest
from sqlalchemy import select

from permits.applications import Application, ApplicationTransition, ReviewRecord
from permits.audit.models import AuditLogEntry
from permits.core.identity import Profile
from permits.exceptions import ConcurrentModification, InvalidTransition, NotFound, Unauthorized
from permits.manage.workflow import get_review_records, get_transition_history, transition
from permits.notifications.models import Notification


def _notifications(session, application_id):
    return list(session.scalars(
        select(Notification)
        .where(Notification.related_application_id == application_id)
        .order_by(Notification.id)
    ))


class TestCreateApplication:

    def test_creates_draft_with_reference(self, service, people):
        app = service.create_application(people.applicant, title='  Quarry expansion ',
                                         application_type='new', entity_name='Highland Ltd')
        assert app.status == 'draft'
        assert app.version == 1
        assert app.title == 'Quarry expansion'
        assert app.submitted_by == people.applicant.user_id
        assert app.reference == f"NEW-{datetime.now().year}-00001"

    def test_references_count_per_type(self, service, people):
        service.create_application(people.applicant, title='A', application_type='renewal')
        second = service.create_application(people.applicant, title='B', application_type='renewal')
        other = service.create_application(people.applicant, title='C', application_type='transfer')
        assert second.reference.startswith('REN-') and second.reference.endswith('00002')
        assert other.reference.endswith('00001')

    def test_taken_reference_is_retryable_conflict(self, service, people, session):
        taken = f"NEW-{datetime.now().year}-00002"
        session.add(Application(reference=taken, title='Imported', application_type='new',
                                status='draft', submitted_by=people.other_applicant.user_id))
        session.commit()

        with pytest.raises(ConcurrentModification) as exc_info:
            service.create_application(people.applicant, title='Quarry expansion', application_type='new')

        assert exc_info.value.retryable
        assert session.scalars(select(Application.reference)).all() == [taken]

    def test_staff_may_not_create(self, service, people, session):
        with pytest.raises(Unauthorized):
            service.create_application(people.registry_officer, title='X', application_type='new')
        assert session.scalar(select(Application.id)) is None

    def test_unknown_type_rejected(self, service, people):
        with pytest.raises(ValueError):
            service.create_application(people.applicant, title='X', application_type='lease')

    def test_blank_title_rejected(self, service, people):
        with pytest.raises(ValueError):
            service.create_application(people.applicant, title='   ', application_type='new')


class TestTransitions:

    def test_happy_path_reaches_letter_signed(self, make_application, session):
        app = make_application('letter_signed')
        assert app.version == 9
        history = get_transition_history(session, app.id)
        assert [t.to_state for t in history] == [
            'submitted', 'under_assessment', 'passed_initial_review', 'forwarded_to_compliance',
            'compliance_review', 'directorate_review', 'approved', 'letter_signed',
        ]
        assert [t.version for t in history] == list(range(2, 10))

    def test_submit_sets_submitted_at(self, make_application):
        app = make_application('submitted')
        assert app.submitted_at is not None

    def test_assess_pass_refers_to_compliance(self, make_application, service, people, session):
        app = make_application('under_assessment')

        result = service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3,
                                          notes='Complete dossier')

        assert result.applied
        assert result.status == 'passed_initial_review'
        assert result.version == 4
        assert result.event.from_state == 'under_assessment'
        assert result.event.to_state == 'passed_initial_review'
        assert result.event.version == 4

        record = session.scalars(
            select(ReviewRecord).where(ReviewRecord.application_id == app.id, ReviewRecord.unit == 'registry')
        ).one()
        assert record.assessed_by == people.registry_officer.user_id
        assert record.assessment_status == 'passed'
        assert record.forwarded_to_next_unit is True
        assert record.notes == 'Complete dossier'

        assert len(result.notifications) == 1
        notification = result.notifications[0]
        assert notification.target_unit == 'compliance'
        assert notification.target_user_id is None
        assert notification.type == 'compliance_referral'
        assert notification.action_required is True
        assert notification.priority == 'high'
        assert app.reference in notification.title
        assert notification.is_read is False

    def test_review_fields_stored(self, make_application, service, people, session):
        app = make_application('compliance_review')
        service.apply_transition(app.id, 'approve', people.compliance_officer, 6,
                                 requires_eia=True, eia_due_date=date(2026, 12, 1),
                                 recommendations='Quarterly monitoring')
        records = {r.unit: r for r in get_review_records(session, app.id)}
        assert set(records) == {'registry', 'compliance'}
        compliance = records['compliance']
        assert compliance.requires_eia is True
        assert compliance.requires_workplan is False
        assert compliance.eia_due_date == date(2026, 12, 1)
        assert compliance.assessment_status == 'approved'

    def test_wrong_unit_denied_without_side_effects(self, make_application, service, people, session, audit_log):
        app = make_application('compliance_review')
        before = len(_notifications(session, app.id))

        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'approve', people.revenue_officer, 6)

        session.refresh(app)
        assert app.status == 'compliance_review'
        assert app.version == 6
        assert len(_notifications(session, app.id)) == before

        lines = audit_log.read_text().splitlines()
        denied = [line for line in lines if 'action=DENIED' in line]
        assert denied
        assert 'attempted=approve' in denied[-1]
        assert f"pk={app.id}" in denied[-1]
        assert 'reason=UNAUTHORIZED' in denied[-1]

    @pytest.mark.parametrize('unit, position', [('revenue', None), (None, None)])
    def test_incomplete_staff_profile_denied_and_logged(self, make_application, service, session,
                                                        audit_log, unit, position):
        profile = Profile(email='half-provisioned@example.org', user_type='staff',
                          staff_unit=unit, staff_position=position)
        session.add(profile)
        session.commit()
        app = make_application('submitted')

        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'begin_assessment', profile.to_identity(), app.version)

        denied = [line for line in audit_log.read_text().splitlines() if 'action=DENIED' in line]
        assert f"user={profile.user_id}:" in denied[-1]
        assert 'attempted=begin_assessment' in denied[-1]

    def test_missing_edge_raises_invalid_transition(self, make_application, service, people):
        app = make_application('submitted')
        with pytest.raises(InvalidTransition):
            service.apply_transition(app.id, 'sign_letter', people.registry_officer, 2)

    def test_unknown_action(self, make_application, service, people):
        app = make_application('submitted')
        with pytest.raises(InvalidTransition):
            service.apply_transition(app.id, 'fast_track', people.registry_officer, 2)

    def test_unknown_application(self, service, people):
        with pytest.raises(NotFound):
            service.apply_transition('no-such-id', 'submit', people.applicant, 1)

    def test_anonymous_actor(self, make_application, service):
        app = make_application('draft')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'submit', None, 1)

    def test_only_submitter_moves_draft(self, make_application, service, people):
        app = make_application('draft')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'submit', people.other_applicant, 1)

    def test_super_admin_may_submit_any_draft(self, make_application, service, people):
        app = make_application('draft')
        result = service.apply_transition(app.id, 'submit', people.super_admin, 1)
        assert result.status == 'submitted'

    def test_referral_intake_requires_manager(self, make_application, service, people):
        app = make_application('passed_initial_review')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'accept_referral', people.compliance_officer, 4)
        result = service.apply_transition(app.id, 'accept_referral', people.compliance_manager, 4)
        assert result.status == 'forwarded_to_compliance'

    def test_only_managing_director_signs(self, make_application, service, people):
        app = make_application('approved')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'sign_letter', people.director, 8)

    def test_directorate_officer_may_not_approve(self, make_application, service, people):
        app = make_application('directorate_review')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'approve', people.directorate_officer, 7)

    def test_clarification_loop_notifies_submitter(self, make_application, service, people):
        app = make_application('under_assessment')
        result = service.apply_transition(app.id, 'request_clarification', people.registry_officer, 3)
        assert result.status == 'requires_clarification'
        targets = {(n.target_unit, n.target_user_id) for n in result.notifications}
        assert (None, people.applicant.user_id) in targets
        assert ('registry', None) in targets

        result = service.apply_transition(app.id, 'resume_assessment', people.registry_officer, 4)
        assert result.status == 'under_assessment'
        assert [n.type for n in result.notifications] == ['assessment_resumed']


class TestReplay:

    def test_same_request_twice_is_a_noop(self, make_application, service, people, session):
        app = make_application('under_assessment')
        first = service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3)
        notified = len(_notifications(session, app.id))

        second = service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3)

        assert first.applied and not second.applied
        assert second.event is None
        assert second.notifications == []
        assert second.version == 4
        assert len(_notifications(session, app.id)) == notified
        assert len(get_transition_history(session, app.id)) == 3

    def test_same_review_data_is_a_noop(self, make_application, service, people):
        app = make_application('under_assessment')
        service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3,
                                 notes='Site visit complete', requires_eia=False)
        again = service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3,
                                         notes='Site visit complete', requires_eia=False)
        assert not again.applied

    def test_retry_with_different_review_data_conflicts(self, make_application, service, people, session):
        app = make_application('under_assessment')
        service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3,
                                 notes='Site visit complete')

        with pytest.raises(ConcurrentModification):
            service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3,
                                     notes='Requires EIA', requires_eia=True)

        registry, = [r for r in get_review_records(session, app.id) if r.unit == 'registry']
        assert (registry.notes, registry.requires_eia) == ('Site visit complete', False)

    def test_stale_version_from_other_actor(self, make_application, service, people):
        app = make_application('under_assessment')
        service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3)
        with pytest.raises(ConcurrentModification) as exc_info:
            service.apply_transition(app.id, 'assess_pass', people.registry_manager, 3)
        assert exc_info.value.retryable

    def test_stale_version_with_other_action(self, make_application, service, people):
        app = make_application('under_assessment')
        service.apply_transition(app.id, 'assess_pass', people.registry_officer, 3)
        with pytest.raises(ConcurrentModification):
            service.apply_transition(app.id, 'request_clarification', people.registry_officer, 3)

    def test_future_version_rejected(self, make_application, service, people):
        app = make_application('submitted')
        with pytest.raises(ConcurrentModification):
            service.apply_transition(app.id, 'begin_assessment', people.registry_officer, 7)


class TestRejectRevoke:

    def test_owning_unit_manager_rejects(self, make_application, service, people):
        app = make_application('compliance_review')
        result = service.apply_transition(app.id, 'reject', people.compliance_manager, 6,
                                          notes='Incomplete EIA')
        assert result.status == 'rejected'
        assert [(n.target_user_id, n.type) for n in result.notifications] == [
            (people.applicant.user_id, 'application_rejected')
        ]

    def test_officer_may_not_reject(self, make_application, service, people):
        app = make_application('compliance_review')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'reject', people.compliance_officer, 6)

    def test_other_unit_manager_may_not_reject(self, make_application, service, people):
        app = make_application('compliance_review')
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'reject', people.registry_manager, 6)

    def test_admin_revokes_from_any_state(self, make_application, service, people):
        app = make_application('approved')
        result = service.apply_transition(app.id, 'revoke', people.admin, 8)
        assert result.status == 'revoked'
        assert result.notifications[0].priority == 'urgent'

    def test_applicant_cancels_draft(self, make_application, service, people):
        app = make_application('draft')
        result = service.apply_transition(app.id, 'cancel', people.applicant, 1)
        assert result.status == 'cancelled'
        assert result.notifications[0].type == 'application_cancelled'

    @pytest.mark.parametrize('action', ['reject', 'revoke', 'approve'])
    def test_terminal_state_refuses_everything(self, make_application, service, people, action):
        app = make_application('letter_signed')
        with pytest.raises(InvalidTransition):
            service.apply_transition(app.id, action, people.super_admin, 9)


class TestAssignReviewer:

    def test_manager_assigns_unit_officer(self, make_application, service, people, session):
        app = make_application('compliance_review')
        officer_id = people.compliance_officer.user_id

        assigned = service.assign_reviewer(app.id, officer_id, people.compliance_manager)

        assert assigned.assigned_reviewer_id == officer_id
        assert assigned.version == 7
        notification = _notifications(session, app.id)[-1]
        assert notification.type == 'review_assigned'
        assert notification.target_user_id == officer_id
        assert notification.target_unit is None

    def test_assignment_invalidates_stale_transition(self, make_application, service, people):
        app = make_application('compliance_review')
        service.assign_reviewer(app.id, people.compliance_officer.user_id, people.compliance_manager)
        with pytest.raises(ConcurrentModification):
            service.apply_transition(app.id, 'approve', people.compliance_officer, 6)

    def test_officer_may_not_assign(self, make_application, service, people):
        app = make_application('compliance_review')
        with pytest.raises(Unauthorized):
            service.assign_reviewer(app.id, people.compliance_officer.user_id, people.compliance_officer)

    def test_reviewer_must_belong_to_owning_unit(self, make_application, service, people):
        app = make_application('compliance_review')
        with pytest.raises(Unauthorized):
            service.assign_reviewer(app.id, people.registry_officer.user_id, people.admin)

    def test_inactive_reviewer_refused(self, make_application, service, people, session):
        app = make_application('compliance_review')
        people.profiles['compliance_officer'].active = False
        session.commit()
        with pytest.raises(Unauthorized):
            service.assign_reviewer(app.id, people.compliance_officer.user_id, people.compliance_manager)

    def test_unknown_reviewer(self, make_application, service, people):
        app = make_application('compliance_review')
        with pytest.raises(NotFound):
            service.assign_reviewer(app.id, 99999, people.compliance_manager)

    def test_draft_has_no_reviewing_unit(self, make_application, service, people):
        app = make_application('draft')
        with pytest.raises(InvalidTransition):
            service.assign_reviewer(app.id, people.registry_officer.user_id, people.admin)


class TestAuditTrail:

    def test_transition_writes_audit_rows(self, make_application, session, people):
        app = make_application('submitted')

        entries = list(session.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.target_type == 'Application', AuditLogEntry.target_id == app.id)
            .order_by(AuditLogEntry.audit_id)
        ))
        assert [e.action for e in entries] == ['CREATE', 'UPDATE']
        assert all(e.actor_id == people.applicant.user_id for e in entries)

        changes = json.loads(entries[-1].changes)
        assert changes['status'] == {'old': 'draft', 'new': 'submitted'}
        assert 'version' not in changes

    def test_review_record_changes_audited(self, make_application, session, people):
        app = make_application('under_assessment')
        entries = list(session.scalars(
            select(AuditLogEntry).where(AuditLogEntry.target_type == 'ReviewRecord')
        ))
        assert len(entries) == 1
        assert entries[0].action == 'CREATE'
        assert entries[0].actor_id == people.registry_officer.user_id

    def test_denied_attempt_leaves_no_audit_row(self, make_application, service, session, people):
        app = make_application('submitted')
        count = len(list(session.scalars(select(AuditLogEntry))))
        with pytest.raises(Unauthorized):
            service.apply_transition(app.id, 'begin_assessment', people.compliance_officer, 2)
        assert len(list(session.scalars(select(AuditLogEntry)))) == count

    def test_audit_log_file_mirrors_rows(self, make_application, audit_log):
        app = make_application('submitted')
        text = audit_log.read_text()
        assert 'action=CREATE model=Application' in text
        assert f"action=UPDATE model=Application pk={app.id}" in text


class TestDirectCalls:
    """Management functions flush without committing."""

    def test_transition_then_rollback(self, make_application, session, people):
        app = make_application('submitted')
        result = transition(session, app.id, 'begin_assessment', people.registry_officer, 2)
        assert result.version == 3
        session.rollback()

        assert session.get(Application, app.id).version == 2
        assert session.scalar(
            select(ApplicationTransition.version)
            .where(ApplicationTransition.application_id == app.id)
            .order_by(ApplicationTransition.version.desc())
        ) == 2
