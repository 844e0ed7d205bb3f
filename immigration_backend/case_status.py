"""
Case Status Transitions
=======================

Agents and administrators move a case through its lifecycle. Each change
writes the new status and one StatusHistory row together, then tells the
client on every channel.

Rules, checked in this order:
1. Only AGENT and ADMIN may change a status (403)
2. The status must be one of CaseStatus (400)
3. The case must exist (404)
4. An APPROVED case may only be changed by an ADMIN (400)
5. An AGENT may only change cases assigned to them (403)

Notification delivery is best-effort: once the status is committed the
request succeeds regardless of what happens to notifications.
"""

import logging
from functools import partial
from typing import Optional

from sqlalchemy.orm import Session

from .auth import AuthContext
from .config import get_settings
from .db.models import Case, CaseStatus, NotificationType, StatusHistory
from .email_utils import send_case_status_email
from .errors import AuthorizationError, NotFoundError, ValidationError
from .notifications.fanout import NotificationEvent, dispatch
from .notifications.service import count_unread, create_notification
from .sanitize import sanitize_message

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Case Status Updated"


def case_action_url(case_id: str) -> str:
    return f"/dashboard/cases/{case_id}"


def _parse_status(status: Optional[str]) -> CaseStatus:
    if not status:
        raise ValidationError("Status is required")
    try:
        return CaseStatus(status)
    except ValueError:
        raise ValidationError("Invalid status value")


def apply_status_change(
    db: Session,
    auth: AuthContext,
    case_id: str,
    status: Optional[str],
    note: Optional[str] = None,
) -> Case:
    """Validate, authorize and persist a status change with its history row."""
    if not auth.is_staff:
        raise AuthorizationError()

    new_status = _parse_status(status)

    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFoundError("Case not found")

    if case.status == CaseStatus.APPROVED and not auth.is_admin:
        raise ValidationError(
            "Cannot update status of an approved case. Only administrators can modify approved cases."
        )

    if not auth.is_admin and case.assigned_agent_id != auth.user_id:
        raise AuthorizationError()

    previous = case.status
    case.status = new_status
    db.add(StatusHistory(
        case_id=case.id,
        status=new_status,
        changed_by=auth.user_id,
        notes=sanitize_message(note) or None,
    ))
    db.commit()
    db.refresh(case)

    logger.info(f"Case {case.id} status {previous.value} -> {new_status.value} by {auth.user_id}")
    return case


async def notify_status_change(db: Session, case: Case, note: Optional[str] = None):
    """
    Record the in-app notification and fan out push, realtime and email.

    Returns the FanoutResult, or None when the notification row itself could
    not be written. Never raises.
    """
    client = case.client
    readable = case.status.value.replace("_", " ").lower()
    message = f"Your case {case.reference_number} is now {readable}"
    action_url = case_action_url(case.id)

    try:
        notification = create_notification(
            db,
            user_id=client.id,
            type=NotificationType.CASE_STATUS_UPDATE,
            title=NOTIFICATION_TITLE,
            message=message,
            case_id=case.id,
            action_url=action_url,
        )
    except Exception as e:
        db.rollback()
        logger.warning(f"Notification failed but status updated (case {case.id}): {e}")
        return None

    badge = None
    try:
        unread = count_unread(db, client.id)
        badge = unread if unread > 0 else None
    except Exception as e:
        logger.warning(f"Failed to compute badge count for user {client.id}: {e}")

    case_url = f"{get_settings().app_url.rstrip('/')}{action_url}"
    event = NotificationEvent(
        user_id=client.id,
        type=NotificationType.CASE_STATUS_UPDATE.value,
        title=NOTIFICATION_TITLE,
        body=message,
        action_url=action_url,
        push_data={
            "caseId": case.id,
            "notificationId": notification.id,
            "screen": "cases",
            "params": {"caseId": case.id},
        },
        badge=badge,
        channel_id="cases",
        email=partial(
            send_case_status_email,
            client.email,
            client.display_name,
            case.reference_number,
            case.status.value,
            sanitize_message(note) or None,
            case_url,
        ),
    )
    return await dispatch(event, db)


def case_to_dict(case: Case) -> dict:
    return {
        "id": case.id,
        "referenceNumber": case.reference_number,
        "serviceType": case.service_type.value,
        "status": case.status.value,
        "clientId": case.client_id,
        "assignedAgentId": case.assigned_agent_id,
        "submissionDate": case.submission_date.isoformat() if case.submission_date else None,
        "lastUpdated": case.last_updated.isoformat() if case.last_updated else None,
    }


async def update_case_status(
    db: Session,
    auth: AuthContext,
    case_id: str,
    status: Optional[str],
    note: Optional[str] = None,
) -> Case:
    """Change a case's status and notify its client."""
    case = apply_status_change(db, auth, case_id, status, note)
    await notify_status_change(db, case, note)
    return case
