#-------------------------------------------------------------------------bh-
#-------------------------------------------------------------------------eh-

import uuid
from datetime import datetime
from typing import List, Optional, Dict, Set
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Text,
    ForeignKey, Index, UniqueConstraint, CheckConstraint, text, and_, or_, select
)
from sqlalchemy.orm import relationship, declarative_base, declared_attr, Session
from sqlalchemy.sql import func


#-------------------------------------------------------------------------bm-
Base = declarative_base()


def new_id() -> str:
    """Generate a string primary key for client-identified records."""
    return str(uuid.uuid4())


# ============================================================================
# Mixins - Common patterns extracted
# ============================================================================
class UUIDPrimaryKeyMixin:
    """
    String UUID primary key assigned at construction time.

    Assigning the key before the first flush lets the audit hook record
    target ids for brand new rows.
    """

    @declared_attr
    def id(cls):
        return Column(String(36), primary_key=True, default=new_id)

    def __init__(self, **kwargs):
        kwargs.setdefault('id', new_id())
        super().__init__(**kwargs)


class TimestampMixin:
    """Provides creation and modification timestamps."""

    @declared_attr
    def created_at(cls):
        return Column(DateTime, nullable=False, default=datetime.now)

    @declared_attr
    def updated_at(cls):
        return Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class ActiveFlagMixin:
    """Provides active status flag."""

    @declared_attr
    def active(cls):
        return Column(Boolean, nullable=False, default=True)

    @property
    def is_active(self) -> bool:
        """Check if this record is active."""
        return bool(self.active)


class SessionMixin:
    @property
    def session(self) -> Session:
        return Session.object_session(self)
#-------------------------------------------------------------------------em-
