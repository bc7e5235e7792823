#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
from enum import Enum
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class NotificationPriority(str, Enum):
    LOW = 'low'
    NORMAL = 'normal'
    HIGH = 'high'
    URGENT = 'urgent'


#----------------------------------------------------------------------------
class Notification(Base):
    """
    Unit-wide or user-specific notification.

    Exactly one of ``target_unit`` and ``target_user_id`` is set. Only
    ``is_read`` changes after creation, and only from False to True.
    """
    __tablename__ = 'notifications'

    __table_args__ = (
        CheckConstraint(
            '(target_unit IS NULL) <> (target_user_id IS NULL)',
            name='ck_notifications_single_target'
        ),
        Index('ix_notifications_target_unit', 'target_unit', 'is_read'),
        Index('ix_notifications_target_user', 'target_user_id', 'is_read'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_unit = Column(String(20))
    target_user_id = Column(Integer, ForeignKey('profiles.user_id'))
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(10), nullable=False, default=NotificationPriority.NORMAL.value)
    action_required = Column(Boolean, nullable=False, default=False)
    related_application_id = Column(String(36), ForeignKey('permit_applications.id'))
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    related_application = relationship('Application')

    @property
    def is_unit_wide(self) -> bool:
        return self.target_unit is not None

    def to_dict(self) -> Dict:
        """Row payload as pushed over the change feed."""
        return {
            'id': self.id,
            'target_unit': self.target_unit,
            'target_user_id': self.target_user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'priority': self.priority,
            'action_required': bool(self.action_required),
            'related_application_id': self.related_application_id,
            'is_read': bool(self.is_read),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        target = f"unit={self.target_unit}" if self.target_unit else f"user={self.target_user_id}"
        return f"<Notification(id={self.id}, {target}, type='{self.type}', is_read={self.is_read})>"
#-------------------------------------------------------------------------em-
