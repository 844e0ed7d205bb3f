"""
Identity resolution between the relational user and the realtime database.

Call signaling addresses users by their realtime identity id
(`User.firebase_uid`), while the API authenticates by relational user id.
"""

import logging

from sqlalchemy.orm import Session

from .db.models import User
from .errors import NotFoundError

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "User not found or not configured"


def resolve_realtime_id(db: Session, user_id: str) -> str:
    """Return the realtime identity id of `user_id` or raise NotFoundError."""
    firebase_uid = db.query(User.firebase_uid).filter(User.id == user_id).scalar()
    if not firebase_uid:
        logger.warning(f"User {user_id} has no realtime identity")
        raise NotFoundError(NOT_CONFIGURED)
    return firebase_uid


def find_user_by_realtime_id(db: Session, firebase_uid: str) -> User:
    """Return the active user registered under `firebase_uid` or raise NotFoundError."""
    user = db.query(User).filter(
        User.firebase_uid == firebase_uid,
        User.is_active == True,  # noqa: E712
    ).first()
    if not user:
        raise NotFoundError("Recipient not found")
    return user
