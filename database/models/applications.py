"""
Application Models

Membership applications owned by the intake subsystem. The review engine
reads every field and only ever writes ``stage``.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, func, JSON, Index
from database.engine import Base, BigIntPK, enum_type
from recruitment.enums import ApplicationStage, Track
from core.utils.datetime import now
from datetime import datetime
from typing import Any


# ==================== Application Model ===================== #
class Application(Base):
    """
    A single applicant's application within a recruitment cycle.
    """

    __tablename__ = "applications"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    track: Mapped[Track] = mapped_column(enum_type(Track), nullable=False)
    stage: Mapped[ApplicationStage] = mapped_column(
        enum_type(ApplicationStage),
        nullable=False,
        default=ApplicationStage.NOT_STARTED,
        index=True,
    )

    # Applicant identity (falls back to form answers when empty)
    applicant_name: Mapped[str | None] = mapped_column(String(255))
    applicant_email: Mapped[str | None] = mapped_column(String(255), index=True)
    answers: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Timestamps
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )

    __table_args__ = (
        Index("idx_applications_cycle_stage", "cycle_id", "stage"),
        Index("idx_applications_cycle_track", "cycle_id", "track"),
    )

    @property
    def display_name(self) -> str:
        answers = self.answers or {}
        return (
            self.applicant_name
            or answers.get("name")
            or answers.get("fullName")
            or answers.get("full_name")
            or "Applicant"
        )

    @property
    def contact_email(self) -> str | None:
        return self.applicant_email or (self.answers or {}).get("email")
