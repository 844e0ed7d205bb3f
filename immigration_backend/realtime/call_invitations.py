"""
Call Invitations
================

Call signaling records stored at `callInvitations/{invitationId}` in the
realtime database. This module owns the invitation state machine:

    pending -> ringing -> accepted -> ended
                       -> rejected
                       -> cancelled
                       -> ended

Every transition reads the record with its ETag, checks the participant and
the source state, and writes back conditionally. Two concurrent transitions
on the same invitation cannot both succeed; the loser gets a 409.
"""

import time
import logging
from typing import Any, Dict, Optional, Tuple

from ..errors import AuthorizationError, ConflictError, NotFoundError
from .client import RealtimeDatabase, get_realtime_db

logger = logging.getLogger(__name__)

COLLECTION = "callInvitations"

PENDING = "pending"
RINGING = "ringing"
ACCEPTED = "accepted"
REJECTED = "rejected"
CANCELLED = "cancelled"
ENDED = "ended"

OPEN_STATES = (PENDING, RINGING)
LIVE_STATES = (PENDING, RINGING, ACCEPTED)


class InvitationNotFound(NotFoundError):
    default_message = "Call invitation not found"


class InvitationForbidden(AuthorizationError):
    default_message = "Not a participant allowed to perform this action"


class InvitationConflict(ConflictError):
    default_message = "Call invitation is no longer in a state that allows this action"


def now_ms() -> int:
    return int(time.time() * 1000)


def get_call_room_id(user_id_1: str, user_id_2: str) -> str:
    """Deterministic room id for a pair of realtime ids."""
    return "-".join(sorted([user_id_1, user_id_2]))


def invitation_path(invitation_id: str) -> str:
    return f"{COLLECTION}/{invitation_id}"


def _short(value: str) -> str:
    return value[:8] + "..." if value and len(value) > 8 else value


async def create_call_invitation(
    from_user_id: str,
    from_user_name: str,
    to_user_id: str,
    to_user_name: str,
    call_mode: str,
    db: Optional[RealtimeDatabase] = None,
) -> Dict[str, Any]:
    """
    Write a new invitation for the pair and mark it ringing.

    The id is derived from the room, so a new call between the same two users
    replaces the previous record.
    """
    db = db or get_realtime_db()

    room_id = get_call_room_id(from_user_id, to_user_id)
    invitation_id = f"call-{room_id}"
    invitation = {
        "id": invitation_id,
        "fromUserId": from_user_id,
        "fromUserName": from_user_name,
        "toUserId": to_user_id,
        "toUserName": to_user_name,
        "roomId": room_id,
        "callMode": call_mode,
        "status": PENDING,
        "createdAt": now_ms(),
    }

    path = invitation_path(invitation_id)
    await db.put(path, invitation)
    await db.patch(path, {"status": RINGING})

    logger.info(
        f"Call invitation created: {invitation_id} room={_short(room_id)} "
        f"from={_short(from_user_id)} to={_short(to_user_id)} mode={call_mode}"
    )
    return {**invitation, "status": RINGING}


async def get_call_invitation(invitation_id: str, db: Optional[RealtimeDatabase] = None) -> Tuple[Dict[str, Any], str]:
    """Return (invitation, etag) or raise InvitationNotFound."""
    db = db or get_realtime_db()
    invitation, etag = await db.get_with_etag(invitation_path(invitation_id))
    if not invitation:
        raise InvitationNotFound()
    return invitation, etag


async def _transition(
    invitation_id: str,
    user_id: str,
    target: str,
    allowed_from: Tuple[str, ...],
    participants: Tuple[str, ...],
    timestamp_field: str,
    db: Optional[RealtimeDatabase],
) -> Dict[str, Any]:
    db = db or get_realtime_db()
    invitation, etag = await get_call_invitation(invitation_id, db)

    if user_id not in [invitation.get(field) for field in participants]:
        logger.warning(f"Invitation {invitation_id}: {_short(user_id)} may not set status {target}")
        raise InvitationForbidden()

    current = invitation.get("status")
    if current not in allowed_from:
        logger.info(f"Invitation {invitation_id}: rejected {current} -> {target}")
        raise InvitationConflict(f"Cannot change call from {current} to {target}")

    updated = {**invitation, "status": target, timestamp_field: now_ms()}
    if not await db.put(invitation_path(invitation_id), updated, etag=etag):
        raise InvitationConflict("Call invitation was changed concurrently")

    logger.info(f"Invitation {invitation_id}: {current} -> {target}")
    return updated


async def accept_call_invitation(invitation_id: str, user_id: str, db: Optional[RealtimeDatabase] = None) -> Dict[str, Any]:
    return await _transition(invitation_id, user_id, ACCEPTED, OPEN_STATES, ("toUserId",), "answeredAt", db)


async def reject_call_invitation(invitation_id: str, user_id: str, db: Optional[RealtimeDatabase] = None) -> Dict[str, Any]:
    return await _transition(invitation_id, user_id, REJECTED, OPEN_STATES, ("toUserId",), "answeredAt", db)


async def cancel_call_invitation(invitation_id: str, user_id: str, db: Optional[RealtimeDatabase] = None) -> Dict[str, Any]:
    return await _transition(invitation_id, user_id, CANCELLED, OPEN_STATES, ("fromUserId",), "endedAt", db)


async def end_call(invitation_id: str, user_id: str, db: Optional[RealtimeDatabase] = None) -> Dict[str, Any]:
    return await _transition(invitation_id, user_id, ENDED, LIVE_STATES, ("fromUserId", "toUserId"), "endedAt", db)
