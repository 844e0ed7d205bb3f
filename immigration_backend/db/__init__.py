"""
Database Package - SQLAlchemy
=============================

Relational persistence for users, cases, documents and notifications.
"""

from .models import (
    Base,
    User, Case, StatusHistory, Document, Notification, PushDevice, AuthToken,
    UserRole, CaseStatus, ServiceType, DocumentType, DocumentStatus,
    NotificationType, TokenPurpose, AppendOnlyViolation,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Tables
    "User", "Case", "StatusHistory", "Document", "Notification", "PushDevice", "AuthToken",
    # Enums
    "UserRole", "CaseStatus", "ServiceType", "DocumentType", "DocumentStatus",
    "NotificationType", "TokenPurpose",
    # Errors
    "AppendOnlyViolation",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
