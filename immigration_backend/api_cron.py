"""
Cron API Endpoints
==================

Trigger for the daily retention run, called by the platform scheduler.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from .config import get_settings
from .db.session import get_db
from .errors import AuthenticationError
from .retention import run_retention
from .schemas import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def require_cron_secret(authorization: Optional[str] = Header(None, alias="Authorization")):
    secret = get_settings().cron_secret
    expected = f"Bearer {secret}"
    if not secret or not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.error("Unauthorized cron request")
        raise AuthenticationError("Unauthorized")


@router.get("/scheduled-deletions", dependencies=[Depends(require_cron_secret)])
async def scheduled_deletions(db: Session = Depends(get_db)):
    logger.info("Scheduled deletions triggered")
    result = run_retention(db)
    return success_response(result, "Scheduled deletions completed")
