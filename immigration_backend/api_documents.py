"""
Document API Endpoints
======================

Document metadata. The files themselves are uploaded straight to external
storage by the clients; this API records where they ended up.
"""

import re
import math
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import AuthContext, get_auth_context
from .config import get_settings
from .db.models import Case, Document, DocumentStatus, DocumentType
from .db.session import get_db
from .errors import AuthorizationError, NotFoundError, ValidationError
from .middleware.rate_limit import LIMIT_DOCUMENTS, rate_limit
from .sanitize import sanitize_user_input
from .schemas import DocumentCreateRequest, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])

documents_limit = Depends(rate_limit("documents", LIMIT_DOCUMENTS))

# extensionType filter -> exact MIME type ("IMAGE" matches any image/*)
EXTENSION_MIME_TYPES = {
    "PDF": "application/pdf",
    "DOC": "application/msword",
    "DOCX": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "XLS": "application/vnd.ms-excel",
    "XLSX": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
EXTENSION_TYPES = ["ALL", "PDF", "IMAGE", "DOC", "DOCX", "XLS", "XLSX"]

LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _enum_value(v):
    return v.value if hasattr(v, "value") else v


def document_to_dict(document: Document) -> dict:
    case = document.case
    uploader = document.uploaded_by
    return {
        "id": document.id,
        "fileName": document.file_name,
        "originalName": document.original_name,
        "filePath": document.file_path,
        "fileSize": document.file_size,
        "mimeType": document.mime_type,
        "documentType": _enum_value(document.document_type),
        "status": _enum_value(document.status),
        "uploadDate": document.upload_date.isoformat() if document.upload_date else None,
        "caseId": document.case_id,
        "case": {
            "id": case.id,
            "referenceNumber": case.reference_number,
            "serviceType": _enum_value(case.service_type),
            "status": _enum_value(case.status),
        } if case else None,
        "uploadedBy": {
            "id": uploader.id,
            "firstName": uploader.first_name,
            "lastName": uploader.last_name,
        } if uploader else None,
    }


def _parse_limit(raw: Optional[str]) -> int:
    settings = get_settings()
    if raw is None:
        return settings.default_page_size
    # Leading integer, trailing characters ignored ("5abc" -> 5)
    match = LEADING_INT.match(raw)
    limit = int(match.group(1)) if match else 0
    if limit <= 0:
        raise ValidationError("Limit must be a positive integer")
    return min(limit, settings.max_page_size)


def _parse_page(raw: Optional[str]) -> int:
    try:
        return max(1, int(raw)) if raw else 1
    except ValueError:
        return 1


@router.get("", dependencies=[documents_limit])
async def list_documents(
    caseId: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    extensionType: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """
    List documents, newest first.

    Clients only see documents they uploaded. Unknown `type`,
    `extensionType` or `status` values are ignored.
    """
    page_size = _parse_limit(limit)
    page_number = _parse_page(page)

    query = db.query(Document)

    if auth.is_client:
        query = query.filter(Document.uploaded_by_id == auth.user_id)

    if caseId:
        query = query.filter(Document.case_id == caseId)

    if type:
        if type in DocumentType.__members__:
            query = query.filter(Document.document_type == DocumentType(type))
        else:
            logger.warning(f"Invalid document type filter '{type}' from user {auth.user_id}")

    if extensionType and extensionType != "ALL":
        if extensionType == "IMAGE":
            query = query.filter(Document.mime_type.like("image/%"))
        elif extensionType in EXTENSION_MIME_TYPES:
            query = query.filter(Document.mime_type == EXTENSION_MIME_TYPES[extensionType])
        else:
            logger.warning(
                f"Invalid extension type filter '{extensionType}' from user {auth.user_id} "
                f"(valid: {', '.join(EXTENSION_TYPES)})"
            )

    if status and status != "ALL":
        if status in DocumentStatus.__members__:
            query = query.filter(Document.status == DocumentStatus(status))
        else:
            logger.warning(f"Invalid document status filter '{status}' from user {auth.user_id}")

    total = query.count()
    documents = (
        query.order_by(Document.upload_date.desc())
        .offset((page_number - 1) * page_size)
        .limit(page_size)
        .all()
    )

    logger.info(f"Documents retrieved for user {auth.user_id}: {len(documents)}")

    return success_response(
        {
            "documents": [document_to_dict(d) for d in documents],
            "pagination": {
                "page": page_number,
                "limit": page_size,
                "total": total,
                "totalPages": math.ceil(total / page_size),
            },
        },
        "Documents retrieved successfully",
    )


@router.post("", status_code=201, dependencies=[documents_limit])
async def create_document(
    body: DocumentCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Save metadata of a file already uploaded to storage."""
    if not (body.fileName and body.filePath and body.mimeType and body.documentType and body.caseId):
        raise ValidationError("fileName, filePath, mimeType, documentType, and caseId are required")

    if body.documentType not in DocumentType.__members__:
        raise ValidationError("Invalid document type")

    case = db.query(Case).filter(Case.id == body.caseId).first()
    if not case:
        raise NotFoundError("Case not found")

    if auth.is_client and case.client_id != auth.user_id:
        raise AuthorizationError()

    file_name = sanitize_user_input(body.fileName)
    document = Document(
        case_id=case.id,
        uploaded_by_id=auth.user_id,
        file_name=file_name,
        original_name=sanitize_user_input(body.originalName) or file_name,
        file_path=body.filePath,
        file_size=body.fileSize or 0,
        mime_type=body.mimeType,
        document_type=DocumentType(body.documentType),
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    logger.info(f"Document metadata saved: {document.id} by user {auth.user_id}")

    return success_response({"document": document_to_dict(document)}, "Created successfully")
