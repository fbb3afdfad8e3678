from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean, DateTime, func
from database.engine import Base, BigIntPK, enum_type
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== User Role ===================== #
class UserRole(str, PyEnum):
    ADMIN = "admin"
    PRESIDENT = "president"
    VP_INTERNAL = "vp_internal"
    VP_EXTERNAL = "vp_external"
    VP_TECH = "vp_tech"
    VP_MARKETING = "vp_marketing"
    VP_FINANCE = "vp_finance"
    MEMBER = "member"  # organization member, not a reviewer
    APPLICANT = "applicant"


class User(Base):
    """
    Organization user. Active users holding an admin role form the reviewer
    roster that gates finalization.
    """

    __tablename__: str = "users"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole), nullable=False, default=UserRole.MEMBER, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
