"""
SQLAlchemy Models for Database
==============================

Schema for the immigration-services backend:
- Users (clients, agents, administrators)
- Cases with an append-only status history
- Document metadata
- Notifications and push devices
- One-time auth tokens (password reset, email verification)

Call invitations are not stored here; they live in the realtime database.

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
import uuid
import secrets
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, BigInteger, Boolean, DateTime, Enum, ForeignKey, Index, event
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


def generate_reference_number():
    """Case reference shown to clients, e.g. IMM-2026-4F9A1C"""
    return f"IMM-{datetime.utcnow().year}-{secrets.token_hex(3).upper()}"


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Application roles"""
    CLIENT = "CLIENT"
    AGENT = "AGENT"
    ADMIN = "ADMIN"


class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    DOCUMENTS_REQUIRED = "DOCUMENTS_REQUIRED"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class ServiceType(str, enum.Enum):
    """Immigration service requested by the client"""
    STUDENT_VISA = "STUDENT_VISA"
    WORK_PERMIT = "WORK_PERMIT"
    FAMILY_REUNIFICATION = "FAMILY_REUNIFICATION"
    TOURIST_VISA = "TOURIST_VISA"
    BUSINESS_VISA = "BUSINESS_VISA"
    PERMANENT_RESIDENCY = "PERMANENT_RESIDENCY"


class DocumentType(str, enum.Enum):
    PASSPORT = "PASSPORT"
    ID_CARD = "ID_CARD"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    MARRIAGE_CERTIFICATE = "MARRIAGE_CERTIFICATE"
    DIPLOMA = "DIPLOMA"
    EMPLOYMENT_LETTER = "EMPLOYMENT_LETTER"
    BANK_STATEMENT = "BANK_STATEMENT"
    PHOTO = "PHOTO"
    OTHER = "OTHER"


class DocumentStatus(str, enum.Enum):
    """Document review status"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class NotificationType(str, enum.Enum):
    CASE_STATUS_UPDATE = "CASE_STATUS_UPDATE"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    INCOMING_CALL = "INCOMING_CALL"
    SYSTEM = "SYSTEM"


class TokenPurpose(str, enum.Enum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """Client, agent or administrator account"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CLIENT, nullable=False)
    firebase_uid = Column(String(128), nullable=True, unique=True)  # realtime identity id
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Retention
    deletion_scheduled_for = Column(DateTime, nullable=True)
    deletion_reason = Column(String(255), nullable=True)

    # Relationships
    cases = relationship("Case", back_populates="client", foreign_keys="Case.client_id")
    assigned_cases = relationship("Case", back_populates="assigned_agent", foreign_keys="Case.assigned_agent_id")
    push_devices = relationship("PushDevice", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        parts = [p.strip() for p in (self.first_name or "", self.last_name or "") if p and p.strip()]
        return " ".join(parts) if parts else (self.email or "Client")


# =============================================================================
# CASES
# =============================================================================

class Case(Base):
    """Immigration application tracked through the status lifecycle"""
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    reference_number = Column(String(32), nullable=False, unique=True, default=generate_reference_number)
    service_type = Column(Enum(ServiceType), nullable=False)
    status = Column(Enum(CaseStatus), default=CaseStatus.SUBMITTED, nullable=False)
    client_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assigned_agent_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submission_date = Column(DateTime, default=datetime.utcnow)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    client = relationship("User", back_populates="cases", foreign_keys=[client_id])
    assigned_agent = relationship("User", back_populates="assigned_cases", foreign_keys=[assigned_agent_id])
    documents = relationship("Document", back_populates="case", passive_deletes=True)
    status_history = relationship(
        "StatusHistory",
        back_populates="case",
        order_by="StatusHistory.timestamp",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_cases_client", "client_id"),
        Index("idx_cases_agent", "assigned_agent_id"),
    )


class StatusHistory(Base):
    """Audit record of one status transition. Rows are never updated or deleted by the ORM."""
    __tablename__ = "status_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(CaseStatus), nullable=False)
    changed_by = Column(String(36), nullable=False)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    case = relationship("Case", back_populates="status_history")

    __table_args__ = (
        Index("idx_status_history_case", "case_id", "timestamp"),
    )


class AppendOnlyViolation(Exception):
    """Raised when code tries to modify an audit row."""


@event.listens_for(StatusHistory, "before_update")
def _status_history_no_update(mapper, connection, target):
    raise AppendOnlyViolation("status_history rows are append-only")


@event.listens_for(StatusHistory, "before_delete")
def _status_history_no_delete(mapper, connection, target):
    raise AppendOnlyViolation("status_history rows are append-only")


# =============================================================================
# DOCUMENTS
# =============================================================================

class Document(Base):
    """Metadata of a file uploaded to external storage"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    uploaded_by_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_size = Column(BigInteger, default=0)
    mime_type = Column(String(100), nullable=False)
    document_type = Column(Enum(DocumentType), nullable=False)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    upload_date = Column(DateTime, default=datetime.utcnow)

    case = relationship("Case", back_populates="documents")
    uploaded_by = relationship("User", foreign_keys=[uploaded_by_id])

    __table_args__ = (
        Index("idx_documents_case", "case_id"),
        Index("idx_documents_uploader", "uploaded_by_id"),
    )


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class Notification(Base):
    """In-app notification for one recipient"""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(512), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    read_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read"),
    )


class PushDevice(Base):
    """Expo push token registered by a mobile client"""
    __tablename__ = "push_devices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(255), nullable=False, unique=True)
    platform = Column(String(20), nullable=True)  # ios / android
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="push_devices")


# =============================================================================
# AUTH TOKENS
# =============================================================================

class AuthToken(Base):
    """One-time token for password reset or email verification (hash only)"""
    __tablename__ = "auth_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose = Column(Enum(TokenPurpose), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
