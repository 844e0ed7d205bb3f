"""
Realtime Package
================

Firebase Realtime Database access: call signaling and web notifications.
"""

from .client import RealtimeDatabase, get_realtime_db, set_realtime_db
from .call_invitations import (
    create_call_invitation,
    accept_call_invitation,
    reject_call_invitation,
    cancel_call_invitation,
    end_call,
    get_call_room_id,
    InvitationNotFound,
    InvitationForbidden,
    InvitationConflict,
)
from .notifications import create_realtime_notification

__all__ = [
    "RealtimeDatabase",
    "get_realtime_db",
    "set_realtime_db",
    "create_call_invitation",
    "accept_call_invitation",
    "reject_call_invitation",
    "cancel_call_invitation",
    "end_call",
    "get_call_room_id",
    "InvitationNotFound",
    "InvitationForbidden",
    "InvitationConflict",
    "create_realtime_notification",
]
