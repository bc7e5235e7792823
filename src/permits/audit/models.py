#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
from enum import Enum
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class AuditAction(str, Enum):
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    LOGIN = 'LOGIN'
    LOGOUT = 'LOGOUT'


#----------------------------------------------------------------------------
class AuditLogEntry(Base):
    """
    Append-only audit trail row.

    Written by the before_flush hook in permits.audit.events for every
    Application/ReviewRecord change; never updated or deleted.
    """
    __tablename__ = 'audit_log'

    __table_args__ = (
        Index('ix_audit_log_target', 'target_type', 'target_id'),
        Index('ix_audit_log_actor', 'actor_id'),
    )

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer)
    action = Column(String(10), nullable=False)
    target_type = Column(String(50), nullable=False)
    target_id = Column(String(36))
    changes = Column(Text)
    timestamp = Column(DateTime, nullable=False, default=datetime.now)
    ip_address = Column(String(45))

    def __repr__(self):
        return (f"<AuditLogEntry(actor_id={self.actor_id}, action='{self.action}', "
                f"target={self.target_type}:{self.target_id})>")
#-------------------------------------------------------------------------em-
