"""
In-app notifications stored in the relational database.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..db.models import Notification, NotificationType, PushDevice
from ..errors import NotFoundError

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    case_id: Optional[str] = None,
    action_url: Optional[str] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        case_id=case_id,
        type=type,
        title=title,
        message=message,
        action_url=action_url,
        is_read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def count_unread(db: Session, user_id: str) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False,  # noqa: E712
    ).count()


def list_notifications(
    db: Session,
    user_id: str,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Notification], int]:
    """Newest first. Returns (page items, total matching)."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def mark_read(db: Session, user_id: str, notification_id: str) -> Notification:
    """Acknowledge a notification. Other users' notifications look missing."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def register_push_device(db: Session, user_id: str, token: str, platform: Optional[str] = None) -> PushDevice:
    """Register a push token; a token seen before is moved to `user_id`."""
    device = db.query(PushDevice).filter(PushDevice.token == token).first()
    if device:
        if device.user_id != user_id:
            logger.info(f"Push token moved from user {device.user_id} to {user_id}")
        device.user_id = user_id
        device.platform = platform or device.platform
    else:
        device = PushDevice(user_id=user_id, token=token, platform=platform)
        db.add(device)
    db.commit()
    db.refresh(device)
    return device


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "caseId": notification.case_id,
        "actionUrl": notification.action_url,
        "isRead": notification.is_read,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
        "readAt": notification.read_at.isoformat() if notification.read_at else None,
    }
