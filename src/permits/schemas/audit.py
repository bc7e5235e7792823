import json

from marshmallow import fields

from permits.audit.models import AuditLogEntry
from . import BaseSchema


class AuditLogEntrySchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = AuditLogEntry

    changes = fields.Method('get_changes', dump_only=True)

    def get_changes(self, obj):
        """Stored as JSON text; expose as an object."""
        return json.loads(obj.changes) if obj.changes else None
