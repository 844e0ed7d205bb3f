"""
Auth API Endpoints
==================

Login, current user, password reset and email verification.

forgot-password and resend-verification answer the same way whether or not
the address belongs to an account.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import (
    AuthContext,
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_LENGTH,
    consume_one_time_token,
    create_access_token,
    get_auth_context,
    get_auth_service,
    get_password_hash,
    is_password_too_long,
    issue_one_time_token,
    normalize_email,
)
from .db.models import TokenPurpose, User
from .db.session import get_db
from .email_utils import send_password_reset_email, send_verification_email
from .errors import AuthenticationError, ValidationError
from .middleware.rate_limit import LIMIT_AUTH_SENSITIVE, LIMIT_LOGIN, rate_limit
from .schemas import (
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
    success_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

sensitive_limit = Depends(rate_limit("auth:sensitive", LIMIT_AUTH_SENSITIVE))

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent"
RESEND_VERIFICATION_MESSAGE = (
    "If an account exists with this email and is not yet verified, a verification link has been sent"
)


def _find_active_user(db: Session, email: str):
    return db.query(User).filter(
        User.email == normalize_email(email),
        User.is_active == True,  # noqa: E712
    ).first()


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(rate_limit("auth:login", LIMIT_LOGIN))])
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Exchange email and password for an access token"""
    auth = get_auth_service(db).authenticate_user(request.email, request.password)
    if not auth:
        raise AuthenticationError("Invalid email or password")

    return TokenResponse(access_token=create_access_token({"sub": auth.user_id, "role": auth.role.value}))


@router.get("/me")
async def auth_me(auth: AuthContext = Depends(get_auth_context)):
    """Get current authenticated user info from token"""
    return success_response({
        "userId": auth.user_id,
        "email": auth.email,
        "name": auth.name,
        "role": auth.role.value,
        "firebaseId": auth.firebase_uid,
    })


@router.post("/forgot-password", dependencies=[sensitive_limit])
async def forgot_password(request: EmailRequest, db: Session = Depends(get_db)):
    """Send a password reset link if the account exists."""
    user = _find_active_user(db, request.email)
    if not user:
        logger.warning("Password reset attempted for unknown email")
        return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}

    token = issue_one_time_token(db, user.id, TokenPurpose.PASSWORD_RESET)
    if await asyncio.to_thread(send_password_reset_email, user.email, token, user.first_name):
        logger.info(f"Password reset email sent to user {user.id}")
    else:
        logger.error(f"Failed to send password reset email to user {user.id}")

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/resend-verification", dependencies=[sensitive_limit])
async def resend_verification(request: EmailRequest, db: Session = Depends(get_db)):
    """Send a fresh verification link to an unverified account."""
    user = _find_active_user(db, request.email)
    if not user:
        logger.warning("Verification resend attempted for unknown email")
        return {"success": True, "message": RESEND_VERIFICATION_MESSAGE}

    if user.email_verified:
        raise ValidationError("Email is already verified")

    token = issue_one_time_token(db, user.id, TokenPurpose.EMAIL_VERIFICATION)
    if await asyncio.to_thread(send_verification_email, user.email, token, user.first_name):
        logger.info(f"Verification email sent to user {user.id}")
    else:
        logger.error(f"Failed to send verification email to user {user.id}")

    return {"success": True, "message": RESEND_VERIFICATION_MESSAGE}


@router.post("/reset-password", dependencies=[sensitive_limit])
async def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Set a new password using a reset token"""
    if is_password_too_long(request.new_password):
        raise ValidationError(f"Password too long (max {MAX_PASSWORD_BYTES} bytes)")
    if len(request.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = consume_one_time_token(db, request.token, TokenPurpose.PASSWORD_RESET)
    if not user:
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = get_password_hash(request.new_password)
    db.commit()

    logger.info(f"Password reset for user {user.id}")
    return {"success": True, "message": "Password reset successfully"}


@router.post("/verify-email", dependencies=[sensitive_limit])
async def verify_email(request: VerifyEmailRequest, db: Session = Depends(get_db)):
    """Mark the account's email verified using a verification token"""
    user = consume_one_time_token(db, request.token, TokenPurpose.EMAIL_VERIFICATION)
    if not user:
        raise ValidationError("Invalid or expired verification token")

    user.email_verified = True
    db.commit()

    logger.info(f"Email verified for user {user.id}")
    return {"success": True, "message": "Email verified successfully"}
