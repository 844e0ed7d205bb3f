"""
Notification API Endpoints
==========================

The caller's in-app notifications and push device registration.
"""

import math
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import AuthContext, get_auth_context
from .config import get_settings
from .db.session import get_db
from .middleware.rate_limit import LIMIT_NOTIFICATIONS, rate_limit
from .notifications import service
from .schemas import PushTokenRequest, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

notifications_limit = Depends(rate_limit("notifications", LIMIT_NOTIFICATIONS))


@router.get("", dependencies=[notifications_limit])
async def list_notifications(
    unread: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(None, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    page_size = min(limit or settings.default_page_size, settings.max_page_size)

    items, total = service.list_notifications(db, auth.user_id, unread_only=unread, page=page, limit=page_size)
    return success_response({
        "notifications": [service.notification_to_dict(n) for n in items],
        "unreadCount": service.count_unread(db, auth.user_id),
        "pagination": {
            "page": page,
            "limit": page_size,
            "total": total,
            "totalPages": math.ceil(total / page_size),
        },
    })


@router.patch("/{notification_id}/read", dependencies=[notifications_limit])
async def mark_notification_read(
    notification_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    notification = service.mark_read(db, auth.user_id, notification_id)
    return success_response({"notification": service.notification_to_dict(notification)}, "Notification marked as read")


@router.post("/push-token", dependencies=[notifications_limit])
async def register_push_token(
    body: PushTokenRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Register an Expo push token for the caller's device."""
    device = service.register_push_device(db, auth.user_id, body.token, body.platform)
    logger.info(f"Push device {device.id} registered for user {auth.user_id}")
    return success_response({"deviceId": device.id}, "Push token registered")
