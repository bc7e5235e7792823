"""
Application schemas.

- ApplicationSchema: Full details with review records and legal next actions
- ApplicationSummarySchema: Queue rows
- ReviewRecordSchema, TransitionSchema: Nested history
"""

from marshmallow import fields

from permits.applications import Application, ApplicationTransition, ReviewRecord
from permits.workflow.transitions import legal_actions
from . import BaseSchema


class ReviewRecordSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = ReviewRecord


class TransitionSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = ApplicationTransition
        fields = ('from_state', 'to_state', 'action', 'actor_id', 'version', 'created_at')


class ApplicationSummarySchema(BaseSchema):
    """Queue and list rows."""
    class Meta(BaseSchema.Meta):
        model = Application
        fields = ('id', 'reference', 'title', 'application_type', 'status', 'entity_name',
                  'assigned_reviewer_id', 'submitted_at', 'version')


class ApplicationSchema(BaseSchema):
    """
    Full application details.

    ``legal_actions`` lists the actions the transition table allows from
    the current state; the caller may still be unauthorized for them.
    """
    class Meta(BaseSchema.Meta):
        model = Application

    review_records = fields.Nested(ReviewRecordSchema, many=True, dump_only=True)
    legal_actions = fields.Method('get_legal_actions', dump_only=True)

    def get_legal_actions(self, obj):
        return [action.value for action in legal_actions(obj.status)]
