from .models import Notification, NotificationPriority
from .templates import (
    NotificationTemplate,
    UNIT_TEMPLATES,
    SUBMITTER_TEMPLATES,
    ASSIGNMENT_TEMPLATE,
    lookup,
    render,
)
