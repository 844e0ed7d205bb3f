"""
Request models for the API.

Field names follow the JSON the web and mobile clients send (camelCase).
"""

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


# =============================================================================
# AUTH
# =============================================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class EmailRequest(BaseModel):
    """Body of forgot-password and resend-verification"""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")

    model_config = {"populate_by_name": True}


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# =============================================================================
# CASES
# =============================================================================

class CaseStatusUpdateRequest(BaseModel):
    # Checked against CaseStatus by the handler so missing and unknown
    # values get distinct messages.
    status: Optional[str] = None
    note: Optional[str] = None


# =============================================================================
# CALLS
# =============================================================================

class CallInviteRequest(BaseModel):
    toFirebaseId: str = Field(..., min_length=1)
    toUserName: str = Field(..., min_length=1)
    callMode: Literal["video", "audio"]


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)
    platform: Optional[Literal["ios", "android", "web"]] = None


# =============================================================================
# DOCUMENTS
# =============================================================================

class DocumentCreateRequest(BaseModel):
    fileName: Optional[str] = None
    originalName: Optional[str] = None
    filePath: Optional[str] = None
    fileSize: int = Field(0, ge=0)
    mimeType: Optional[str] = None
    documentType: Optional[str] = None
    caseId: Optional[str] = None


def success_response(data=None, message: Optional[str] = None) -> dict:
    """Success envelope shared by all endpoints"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
