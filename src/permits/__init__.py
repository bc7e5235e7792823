"""
Environmental permit review core.

Access policy evaluation, the application review workflow and
notification fan-out with read-state tracking.
"""
from .base import Base
from .exceptions import (
    PermitsError,
    Unauthorized,
    Forbidden,
    InvalidTransition,
    ConcurrentModification,
    NotFound,
    UpstreamUnavailable,
    ConfigError,
)
from .core import Identity, Profile, UserType, StaffUnit, StaffPosition
from .applications import (
    Application, ApplicationStatus, ApplicationType, ApplicationTransition, ReviewRecord
)
from .notifications import Notification, NotificationPriority
from .audit import AuditLogEntry, AuditAction
from .security import AccessPolicy, authorize, get_route_policy

__version__ = '0.3.0'
