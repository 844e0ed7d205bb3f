"""
Account Retention
=================

Scheduled erasure of inactive client accounts.

Two steps, run daily:
1. schedule_inactive_users_for_deletion: active CLIENT users with no login
   for 6 months and no case submitted for 3 months are deactivated and
   scheduled for deletion 30 days out.
2. process_scheduled_deletions: inactive users whose deletion date has passed
   are erased with their cases, documents, notifications, push devices and
   tokens. Each user is erased in its own transaction.

This is the only code path that removes status history rows; it uses bulk
deletes, which the append-only guard on loaded rows does not intercept.

Usage:
    python -m immigration_backend.retention
    GET /api/cron/scheduled-deletions  (Authorization: Bearer $CRON_SECRET)
"""

import logging
import calendar
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import AuthToken, Case, Document, Notification, PushDevice, StatusHistory, User, UserRole
from .db.session import get_db_session

logger = logging.getLogger(__name__)

BATCH_SIZE = 100


@dataclass
class SchedulingStats:
    usersScheduled: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DeletionStats:
    usersDeleted: int = 0
    casesDeleted: int = 0
    documentsDeleted: int = 0
    notificationsDeleted: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def months_ago(now: datetime, months: int) -> datetime:
    """Start of the same calendar day `months` months before `now` (day clamped)."""
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return datetime(year, month, day)


def _inactivity_reason(user: User, last_case_date: Optional[datetime], login_cutoff: datetime, case_cutoff: datetime) -> Optional[str]:
    """Why `user` qualifies for scheduling, or None if they do not."""
    last_seen = user.last_login or user.created_at
    if last_seen is None or last_seen > login_cutoff:
        return None

    if last_case_date is None:
        if user.created_at is None or user.created_at > case_cutoff:
            return None
        case_reason = "No cases created and account older than the case inactivity window"
    elif last_case_date <= case_cutoff:
        case_reason = f"Last case created {last_case_date.isoformat()}"
    else:
        return None

    if user.last_login:
        login_reason = f"Last login: {user.last_login.isoformat()}"
    else:
        login_reason = f"Never logged in, account created: {user.created_at.isoformat()}"
    return f"{login_reason}. {case_reason}."


def schedule_inactive_users_for_deletion(db: Session, now: Optional[datetime] = None) -> SchedulingStats:
    settings = get_settings()
    now = now or datetime.utcnow()
    login_cutoff = months_ago(now, settings.inactive_login_months)
    case_cutoff = months_ago(now, settings.inactive_case_months)
    deletion_date = now + timedelta(days=settings.deletion_grace_days)

    stats = SchedulingStats()
    logger.info(f"Scheduling inactive users (login <= {login_cutoff.date()}, cases <= {case_cutoff.date()})")

    last_case = (
        db.query(Case.client_id, func.max(Case.submission_date).label("last_case"))
        .group_by(Case.client_id)
        .subquery()
    )
    candidates = (
        db.query(User, last_case.c.last_case)
        .outerjoin(last_case, last_case.c.client_id == User.id)
        .filter(
            User.role == UserRole.CLIENT,
            User.is_active == True,  # noqa: E712
            User.deletion_scheduled_for == None,  # noqa: E711
        )
        .order_by(User.created_at)
    )

    to_schedule = []
    offset = 0
    while True:
        batch = candidates.offset(offset).limit(BATCH_SIZE).all()
        if not batch:
            break
        for user, last_case_date in batch:
            reason = _inactivity_reason(user, last_case_date, login_cutoff, case_cutoff)
            if reason:
                to_schedule.append((user.id, reason))
        offset += BATCH_SIZE

    for user_id, reason in to_schedule:
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if not user or not user.is_active or user.deletion_scheduled_for:
                logger.warning(f"User {user_id} no longer eligible for scheduling")
                continue
            user.is_active = False
            user.deletion_scheduled_for = deletion_date
            user.deletion_reason = f"Automatic scheduling: {reason}"[:255]
            db.commit()
            stats.usersScheduled += 1
            logger.info(f"User {user_id} scheduled for deletion on {deletion_date.date()}")
        except Exception as e:
            db.rollback()
            stats.errors += 1
            logger.error(f"Error scheduling user {user_id} for deletion: {e}")

    logger.info(f"Inactive users scheduling completed: {stats.to_dict()}")
    return stats


def _erase_user(db: Session, user_id: str, stats: DeletionStats):
    case_ids = [row.id for row in db.query(Case.id).filter(Case.client_id == user_id)]

    stats.notificationsDeleted += db.query(Notification).filter(
        Notification.user_id == user_id
    ).delete(synchronize_session=False)

    documents = db.query(Document).filter(Document.uploaded_by_id == user_id).delete(synchronize_session=False)
    if case_ids:
        documents += db.query(Document).filter(Document.case_id.in_(case_ids)).delete(synchronize_session=False)
        db.query(StatusHistory).filter(StatusHistory.case_id.in_(case_ids)).delete(synchronize_session=False)
        db.query(Notification).filter(Notification.case_id.in_(case_ids)).update(
            {Notification.case_id: None}, synchronize_session=False
        )
        stats.casesDeleted += db.query(Case).filter(Case.id.in_(case_ids)).delete(synchronize_session=False)
    stats.documentsDeleted += documents

    db.query(PushDevice).filter(PushDevice.user_id == user_id).delete(synchronize_session=False)
    db.query(AuthToken).filter(AuthToken.user_id == user_id).delete(synchronize_session=False)
    db.query(User).filter(User.id == user_id).delete(synchronize_session=False)


def process_scheduled_deletions(db: Session, now: Optional[datetime] = None) -> DeletionStats:
    now = now or datetime.utcnow()
    stats = DeletionStats()

    due = db.query(User.id, User.deletion_reason).filter(
        User.deletion_scheduled_for <= now,
        User.is_active == False,  # noqa: E712
    ).all()

    if not due:
        logger.info("No accounts scheduled for deletion")
        return stats

    logger.info(f"Found {len(due)} account(s) to delete")

    for user_id, reason in due:
        try:
            _erase_user(db, user_id, stats)
            db.commit()
            stats.usersDeleted += 1
            logger.info(f"User {user_id} permanently deleted ({reason})")
        except Exception as e:
            db.rollback()
            stats.errors += 1
            logger.error(f"Error deleting user {user_id}: {e}")

    logger.info(f"Scheduled deletions completed: {stats.to_dict()}")
    return stats


def run_retention(db: Session, now: Optional[datetime] = None) -> dict:
    """Both steps, in order. Returns the stats of each."""
    scheduling = schedule_inactive_users_for_deletion(db, now)
    deletion = process_scheduled_deletions(db, now)
    return {"scheduling": scheduling.to_dict(), "deletion": deletion.to_dict()}


def run_retention_cli():
    """CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Schedule and erase inactive client accounts")
    parser.add_argument(
        "--log-level", "-l",
        default="INFO",
        help="Logging level (default: INFO)"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    with get_db_session() as db:
        result = run_retention(db)

    logger.info(f"Retention run finished: {result}")


if __name__ == "__main__":
    run_retention_cli()
