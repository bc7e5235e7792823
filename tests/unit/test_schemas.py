"""
Marshmallow schema serialization tests.
"""
from permits.audit.models import AuditLogEntry
from permits.notifications.models import Notification
from permits.schemas import (
    ApplicationSchema, ApplicationSummarySchema, AuditLogEntrySchema, NotificationSchema, TransitionSchema
)


class TestApplicationSchemas:

    def test_full_schema(self, make_application):
        app = make_application('under_assessment')
        data = ApplicationSchema().dump(app)

        assert data['reference'] == app.reference
        assert data['status'] == 'under_assessment'
        assert data['version'] == 3
        assert data['submitted_by'] == app.submitted_by
        assert [r['unit'] for r in data['review_records']] == ['registry']
        assert set(data['legal_actions']) == {'assess_pass', 'request_clarification', 'reject', 'revoke'}

    def test_terminal_has_no_legal_actions(self, make_application):
        assert ApplicationSchema().dump(make_application('letter_signed'))['legal_actions'] == []

    def test_summary_fields(self, make_application):
        data = ApplicationSummarySchema().dump(make_application('submitted'))
        assert set(data) == {'id', 'reference', 'title', 'application_type', 'status', 'entity_name',
                             'assigned_reviewer_id', 'submitted_at', 'version'}

    def test_transition_schema(self, make_application):
        app = make_application('submitted')
        data = TransitionSchema(many=True).dump(app.transitions)
        assert data[0]['action'] == 'submit'
        assert data[0]['version'] == 2
        assert set(data[0]) == {'from_state', 'to_state', 'action', 'actor_id', 'version', 'created_at'}


class TestOtherSchemas:

    def test_notification_schema(self, session):
        notification = Notification(target_unit='registry', type='t', title='T', message='M')
        session.add(notification)
        session.commit()

        data = NotificationSchema().dump(notification)
        assert data['target_unit'] == 'registry'
        assert data['is_read'] is False
        assert data['related_application_id'] is None

    def test_audit_changes_parsed(self):
        entry = AuditLogEntry(action='UPDATE', target_type='Application', target_id='x',
                              changes='{"status": {"old": "draft", "new": "submitted"}}')
        data = AuditLogEntrySchema().dump(entry)
        assert data['changes']['status']['new'] == 'submitted'
        assert AuditLogEntrySchema().dump(AuditLogEntry(action='DELETE', target_type='X'))['changes'] is None
