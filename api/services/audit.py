"""
Audit sink.

Write-only and fire-and-forget: entries are written through their own
session so an audit failure never rolls back or blocks the audited change.
"""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.engine import AsyncSessionLocal
from database.models.audit import AuditAction, AuditLog

logger = logging.getLogger(__name__)


class AuditSink:
    """Records state-changing operations to ``audit_logs``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def record(
        self,
        actor_email: str,
        action: AuditAction,
        target_type: str,
        target_id: Any,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Record one audit entry.

        Args:
            actor_email: Admin who performed the action
            action: What happened
            target_type: Kind of entity affected (e.g. ``PhaseConfig``)
            target_id: Identifier of the entity
            meta: Free-form details (counts, criteria, force flags)
        """
        logger.info(
            f"Audit: {actor_email} {AuditAction(action).value} {target_type}:{target_id}"
        )
        try:
            async with self.session_factory() as session:
                session.add(
                    AuditLog(
                        actor_email=actor_email,
                        action=action,
                        target_type=target_type,
                        target_id=str(target_id),
                        meta=meta,
                    )
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                f"Failed to persist audit entry {AuditAction(action).value} for "
                f"{target_type}:{target_id}"
            )
