from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, func, JSON
from database.engine import Base, BigIntPK, enum_type
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ============ Audit Enums ============ #
class AuditAction(str, PyEnum):
    """Audited state changes of the review engine."""

    PHASE_CONFIGS_INITIALIZED = "phase_configs_initialized"
    PHASE_CONFIG_UPDATED = "phase_config_updated"
    PHASE_STARTED = "phase_started"
    CUTOFF_APPLIED = "cutoff_applied"
    PHASE_FINALIZED = "phase_finalized"
    PHASE_UNLOCKED = "phase_unlocked"
    PHASE_REVERTED = "phase_reverted"
    APPLICATION_STAGE_CHANGED = "application_stage_changed"


# ==================== Models ===================== #
class AuditLog(Base):
    """
    Append-only audit trail written by the audit sink.
    """

    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    # Actor
    actor_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Action
    action: Mapped[AuditAction] = mapped_column(
        enum_type(AuditAction), nullable=False, index=True
    )
    target_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Details
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now(), index=True
    )
