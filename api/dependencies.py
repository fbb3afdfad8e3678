"""FastAPI dependencies for dependency injection."""

from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import get_db
from database.models.users import User
from api.services.audit import AuditSink
from api.services.lifecycle import PhaseLifecycleController
from api.services.notifications import NotificationCoordinator, SmtpNotifier
from api.services.roster import get_admin


def get_actor_email(request: Request) -> Optional[str]:
    """
    Email of the caller.

    Authentication happens upstream (gateway or SSO proxy); it either sets
    ``request.state.user_email`` or forwards the ``X-User-Email`` header.
    """
    email = getattr(request.state, "user_email", None) or request.headers.get("x-user-email")
    if not email:
        return None
    return email.strip().lower()


async def require_admin_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require the caller to be an active admin on the reviewer roster."""
    email = get_actor_email(request)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    admin = await get_admin(db, email)
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return admin


def get_audit_sink() -> AuditSink:
    return AuditSink()


def get_notification_coordinator() -> NotificationCoordinator:
    return NotificationCoordinator(SmtpNotifier())


def get_lifecycle_controller(
    db: AsyncSession = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    notifications: NotificationCoordinator = Depends(get_notification_coordinator),
) -> PhaseLifecycleController:
    return PhaseLifecycleController(db, audit=audit, notifications=notifications)
