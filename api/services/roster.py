"""Admin roster lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from database.models.users import User, UserRole


def _admin_roles() -> list[UserRole]:
    return [role for role in UserRole if role.value in settings.admin_roles]


async def list_admins(db: AsyncSession) -> dict[str, str | None]:
    """Active admins as ``{email: name}``, ordered by email."""
    result = await db.execute(
        select(User)
        .where(User.role.in_(_admin_roles()), User.is_active.is_(True))
        .order_by(User.email)
    )
    return {user.email.strip().lower(): user.name for user in result.scalars().all()}


async def list_admin_emails(db: AsyncSession) -> list[str]:
    """Emails of every active admin; used by the finalize gate."""
    return list(await list_admins(db))


async def get_admin(db: AsyncSession, email: str) -> User | None:
    """Active admin with this email, if any."""
    result = await db.execute(
        select(User).where(
            User.email == email.strip().lower(),
            User.role.in_(_admin_roles()),
            User.is_active.is_(True),
        )
    )
    return result.scalars().first()
