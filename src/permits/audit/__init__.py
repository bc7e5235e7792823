"""
Audit trail for permit review changes.

AuditLogEntry rows are appended automatically by the before_flush hook
(see events.init_audit_events); the rotating file logger mirrors them and
records refused attempts.
"""
from .models import AuditLogEntry, AuditAction
from .logger import get_audit_logger, reset_audit_logger, log_denied
