from permits.notifications.models import Notification
from . import BaseSchema


class NotificationSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = Notification
