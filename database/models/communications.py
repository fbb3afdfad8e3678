from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, BigInteger, DateTime, func, Text, Index
from database.engine import Base, BigIntPK, enum_type
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


class EmailStatus(str, PyEnum):
    SENT = "sent"
    FAILED = "failed"
    QUEUED = "queued"  # handed to the background retry worker


# ============ Email Log =============== #
class EmailLog(Base):
    """
    One decision-email delivery attempt.
    """

    __tablename__ = "email_logs"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False)
    application_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    recipient_email: Mapped[str | None] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    template_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[EmailStatus] = mapped_column(enum_type(EmailStatus), nullable=False)
    error: Mapped[str | None] = mapped_column(Text)

    sent_by: Mapped[str] = mapped_column(String(255), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )

    __table_args__ = (Index("idx_email_logs_cycle_template", "cycle_id", "template_id"),)
