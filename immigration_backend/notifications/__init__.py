"""
Notifications Package
=====================

In-app notification records, Expo push delivery and the multi-channel fan-out.
"""

from .fanout import NotificationEvent, FanoutResult, dispatch
from .push import ExpoPushClient, PushMessage, get_push_client, set_push_client, send_push_to_user
from .service import (
    create_notification,
    count_unread,
    list_notifications,
    mark_read,
    register_push_device,
    notification_to_dict,
)

__all__ = [
    "NotificationEvent",
    "FanoutResult",
    "dispatch",
    "ExpoPushClient",
    "PushMessage",
    "get_push_client",
    "set_push_client",
    "send_push_to_user",
    "create_notification",
    "count_unread",
    "list_notifications",
    "mark_read",
    "register_push_device",
    "notification_to_dict",
]
