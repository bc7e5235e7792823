"""
Marshmallow-SQLAlchemy schemas for API serialization.

Usage:
    from permits.schemas import ApplicationSchema, NotificationSchema

    # Serialize a single object
    data = ApplicationSchema().dump(application)

    # Serialize multiple objects
    data = NotificationSchema(many=True).dump(notifications)
"""

from marshmallow_sqlalchemy import SQLAlchemyAutoSchema


class BaseSchema(SQLAlchemyAutoSchema):
    """
    Base schema class for all permits schemas.

    Provides shared configuration:
    - load_instance=True: Load SQLAlchemy model instances (pass session= to load())
    - include_fk=True: Include foreign key fields in serialization
    """
    class Meta:
        load_instance = True
        include_fk = True


from .applications import (
    ApplicationSchema,
    ApplicationSummarySchema,
    ReviewRecordSchema,
    TransitionSchema,
)
from .notifications import NotificationSchema
from .audit import AuditLogEntrySchema

__all__ = [
    'BaseSchema',
    'ApplicationSchema',
    'ApplicationSummarySchema',
    'ReviewRecordSchema',
    'TransitionSchema',
    'NotificationSchema',
    'AuditLogEntrySchema',
]
