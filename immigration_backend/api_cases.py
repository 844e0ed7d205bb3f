"""
Case API Endpoints
==================

FastAPI router for case status transitions.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import AuthContext, get_auth_context
from .case_status import case_to_dict, update_case_status
from .db.session import get_db
from .middleware.rate_limit import LIMIT_CASE_STATUS, rate_limit
from .schemas import CaseStatusUpdateRequest, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["cases"])


@router.patch(
    "/{case_id}/status",
    dependencies=[Depends(rate_limit("cases:status", LIMIT_CASE_STATUS))],
)
async def patch_case_status(
    case_id: str,
    body: CaseStatusUpdateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Update case status (AGENT assigned to the case, or ADMIN)."""
    case = await update_case_status(db, auth, case_id, body.status, body.note)
    return success_response({"case": case_to_dict(case)}, "Status updated successfully")
