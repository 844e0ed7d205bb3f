"""
Call API Endpoints
==================

Call invitations between users. The realtime database holds the invitation
and decides which transitions are legal; these endpoints only resolve who
the caller is and pass the action through.

    POST   /api/calls/invite            create + notify recipient
    POST   /api/calls/{invitationId}    accept
    DELETE /api/calls/{invitationId}    reject
    PATCH  /api/calls/{invitationId}    cancel
    PUT    /api/calls/{invitationId}    end
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import AuthContext, get_auth_context
from .db.models import NotificationType, User
from .db.session import get_db
from .errors import NotFoundError
from .identity import find_user_by_realtime_id, resolve_realtime_id
from .middleware.rate_limit import LIMIT_CALL_ACTION, LIMIT_CALL_INVITE, rate_limit
from .notifications.fanout import NotificationEvent, dispatch
from .realtime import call_invitations
from .sanitize import sanitize_user_input
from .schemas import CallInviteRequest, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calls", tags=["calls"])

CALLS_ACTION_URL = "/dashboard/messages"

call_action_limit = Depends(rate_limit("calls:action", LIMIT_CALL_ACTION))


@router.post("/invite", dependencies=[Depends(rate_limit("calls:invite", LIMIT_CALL_INVITE))])
async def invite(
    body: CallInviteRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Ring another user and notify them on push and web."""
    caller = db.query(User).filter(User.id == auth.user_id).first()
    if not caller or not caller.firebase_uid:
        raise NotFoundError("Caller not found or not configured")

    recipient = find_user_by_realtime_id(db, body.toFirebaseId)

    caller_name = sanitize_user_input(caller.display_name)
    invitation = await call_invitations.create_call_invitation(
        caller.firebase_uid,
        caller_name,
        body.toFirebaseId,
        sanitize_user_input(body.toUserName),
        body.callMode,
    )

    call_type = "Video" if body.callMode == "video" else "Audio"
    title = f"Incoming {call_type} Call"
    message = f"{caller_name} is calling you"
    call_data = {
        "invitationId": invitation["id"],
        "roomId": invitation["roomId"],
        "callMode": body.callMode,
        "fromUserName": caller_name,
    }

    await dispatch(NotificationEvent(
        user_id=recipient.id,
        type=NotificationType.INCOMING_CALL.value,
        title=title,
        body=message,
        action_url=CALLS_ACTION_URL,
        push_data={**call_data, "fromUserId": caller.firebase_uid},
        realtime_extra=call_data,
        channel_id="calls",
        priority="high",
    ), db)

    return success_response({
        "invitationId": invitation["id"],
        "roomId": invitation["roomId"],
        "status": invitation["status"],
    })


def _result(invitation: dict) -> dict:
    return success_response({"invitationId": invitation["id"], "status": invitation["status"]})


@router.post("/{invitation_id}", dependencies=[call_action_limit])
async def accept(
    invitation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user_id = resolve_realtime_id(db, auth.user_id)
    return _result(await call_invitations.accept_call_invitation(invitation_id, user_id))


@router.delete("/{invitation_id}", dependencies=[call_action_limit])
async def reject(
    invitation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user_id = resolve_realtime_id(db, auth.user_id)
    return _result(await call_invitations.reject_call_invitation(invitation_id, user_id))


@router.patch("/{invitation_id}", dependencies=[call_action_limit])
async def cancel(
    invitation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user_id = resolve_realtime_id(db, auth.user_id)
    return _result(await call_invitations.cancel_call_invitation(invitation_id, user_id))


@router.put("/{invitation_id}", dependencies=[call_action_limit])
async def end(
    invitation_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user_id = resolve_realtime_id(db, auth.user_id)
    return _result(await call_invitations.end_call(invitation_id, user_id))
