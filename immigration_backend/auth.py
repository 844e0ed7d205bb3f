"""
Authentication & Authorization
==============================

Bearer-token authentication and role checks.

Roles:
- CLIENT: owns cases, sees own documents and notifications
- AGENT: works the cases assigned to them
- ADMIN: full control, the only role allowed to touch APPROVED cases

Authorization Flow:
1. Decode `Authorization: Bearer <jwt>` into a user id
2. Load the active user and build an AuthContext
3. Route code checks role and resource ownership
"""

import os
import hashlib
import secrets
import logging
from typing import Optional
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .db.models import User, UserRole, AuthToken, TokenPurpose
from .db.session import get_db
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

# JWT configuration
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; enforce to avoid 500s.
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 8

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None


# =============================================================================
# AUTH CONTEXT
# =============================================================================

@dataclass
class AuthContext:
    """Authorization context for a request"""
    user_id: str
    email: str
    name: str
    role: UserRole
    firebase_uid: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.AGENT, UserRole.ADMIN)


class AuthService:
    """Builds auth contexts and checks credentials"""

    def __init__(self, db: Session):
        self.db = db

    def get_auth_context(self, user_id: str) -> Optional[AuthContext]:
        """
        Build auth context for a user.

        Returns:
            AuthContext if user exists and is active, None otherwise
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            logger.warning(f"Auth failed: user {user_id} not found or inactive")
            return None

        return AuthContext(
            user_id=user.id,
            email=user.email,
            name=user.display_name,
            role=user.role,
            firebase_uid=user.firebase_uid,
        )

    def authenticate_user(self, email: str, password: str) -> Optional[AuthContext]:
        """Authenticate by email and password; updates last_login on success."""
        user = self.db.query(User).filter(
            User.email == normalize_email(email),
            User.is_active == True,  # noqa: E712
        ).first()
        if not user:
            logger.warning("Auth failed: email not found")
            return None

        if not user.password_hash:
            logger.warning(f"Auth failed: user {user.id} has no password set")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Auth failed: invalid password for user {user.id}")
            return None

        user.last_login = datetime.utcnow()
        self.db.commit()

        return self.get_auth_context(user.id)


def get_auth_service(db: Session) -> AuthService:
    """Get AuthService instance for a database session"""
    return AuthService(db)


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


async def get_auth_context(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Resolve `Authorization: Bearer <jwt>` into an AuthContext or raise 401."""
    token = _bearer_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_token(token)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")

    auth = get_auth_service(db).get_auth_context(payload["sub"])
    if not auth:
        raise AuthenticationError("User not found or inactive")
    return auth


# =============================================================================
# ONE-TIME TOKENS (password reset, email verification)
# =============================================================================

TOKEN_TTL = {
    TokenPurpose.PASSWORD_RESET: timedelta(hours=1),
    TokenPurpose.EMAIL_VERIFICATION: timedelta(hours=24),
}


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_one_time_token(db: Session, user_id: str, purpose: TokenPurpose) -> str:
    """
    Create a one-time token and return its raw value.

    Only the sha256 hash is stored. Earlier tokens of the same purpose for
    the user are discarded.
    """
    token = secrets.token_urlsafe(32)

    db.query(AuthToken).filter(
        AuthToken.user_id == user_id,
        AuthToken.purpose == purpose,
    ).delete()

    db.add(AuthToken(
        user_id=user_id,
        purpose=purpose,
        token_hash=hash_token(token),
        expires_at=datetime.utcnow() + TOKEN_TTL[purpose],
    ))
    db.commit()
    return token


def consume_one_time_token(db: Session, token: str, purpose: TokenPurpose) -> Optional[User]:
    """Mark a valid token used and return its user; None if invalid, used or expired."""
    record = db.query(AuthToken).filter(
        AuthToken.token_hash == hash_token(token or ""),
        AuthToken.purpose == purpose,
        AuthToken.used_at == None,  # noqa: E711
        AuthToken.expires_at > datetime.utcnow(),
    ).first()
    if not record:
        return None

    user = db.query(User).filter(User.id == record.user_id).first()
    if not user:
        return None

    record.used_at = datetime.utcnow()
    return user
