"""Importing this package registers every model on ``Base.metadata``."""

from database.models.applications import Application
from database.models.audit import AuditAction, AuditLog
from database.models.communications import EmailLog, EmailStatus
from database.models.recruitment import (
    ApplicationReview,
    PhaseConfig,
    PhaseDecision,
    PhaseRankingSnapshot,
)
from database.models.users import User, UserRole

__all__ = [
    "Application",
    "ApplicationReview",
    "AuditAction",
    "AuditLog",
    "EmailLog",
    "EmailStatus",
    "PhaseConfig",
    "PhaseDecision",
    "PhaseRankingSnapshot",
    "User",
    "UserRole",
]
