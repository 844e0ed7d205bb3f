"""
Realtime web notifications.

Records are appended under `notifications/{userId}` where the web dashboard
listens for them. `userId` is the relational user id.
"""

import logging
from typing import Any, Dict, Optional

from .call_invitations import now_ms
from .client import RealtimeDatabase, get_realtime_db

logger = logging.getLogger(__name__)


async def create_realtime_notification(
    user_id: str,
    type: str,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
    db: Optional[RealtimeDatabase] = None,
) -> str:
    """Append a notification for `user_id`; returns the generated key."""
    db = db or get_realtime_db()

    record = {
        "type": type,
        "title": title,
        "message": message,
        "read": False,
        "createdAt": now_ms(),
    }
    if action_url:
        record["actionUrl"] = action_url
    if extra:
        record.update({k: v for k, v in extra.items() if v is not None})

    key = await db.push(f"notifications/{user_id}", record)
    logger.info(f"Realtime notification {key} created for user {user_id} ({type})")
    return key
