"""
Application service functions for API endpoints.

Admin-driven stage moves outside of cutoffs (withdrawals, moving an applicant
into review, waitlisting after the final round). Cutoff-only stages are
refused here; those go through the phase lifecycle controller.
"""

from typing import Any, Dict, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationError
from database.models.applications import Application
from database.models.audit import AuditAction
from recruitment.enums import ApplicationStage
from recruitment.stages import StageTrigger, transition
from api.services.audit import AuditSink

logger = logging.getLogger(__name__)


async def get_application(db: AsyncSession, application_id: int) -> Application:
    """
    Get an application by id.

    Raises:
        NotFoundError: no such application
    """
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    return application


async def move_application_stage(
    db: AsyncSession,
    application_id: int,
    new_stage: str,
    *,
    reason: Optional[str] = None,
    moved_by: str,
    audit: Optional[AuditSink] = None,
) -> Dict[str, Any]:
    """
    Move an application to a new stage in the pipeline.

    Args:
        db: Database session
        application_id: The application to move
        new_stage: Target stage name (``"Final Review"`` and ``final-review`` are accepted)
        reason: Optional reason for the stage change
        moved_by: Email of the admin who initiated the move
        audit: Audit sink for the stage change

    Returns:
        Dictionary with success status and stage info

    Raises:
        NotFoundError: unknown application
        ValidationError: unknown stage name
        InvalidStageTransitionError: the move is not allowed for admins
    """
    target = ApplicationStage.try_parse(new_stage)
    if target is None:
        raise ValidationError(
            f"Unknown stage '{new_stage}'",
            {"allowed": [stage.value for stage in ApplicationStage]},
        )

    application = await get_application(db, application_id)
    old_stage = application.stage
    application.stage = transition(old_stage, target, StageTrigger.ADMIN)
    await db.commit()

    logger.info(
        f"Application {application_id} moved {old_stage.value} -> {target.value} by {moved_by}"
    )
    if audit is not None and old_stage != target:
        await audit.record(
            moved_by,
            AuditAction.APPLICATION_STAGE_CHANGED,
            "Application",
            application_id,
            {"old_stage": old_stage.value, "new_stage": target.value, "reason": reason},
        )

    return {
        "success": True,
        "application_id": application_id,
        "old_stage": old_stage.value,
        "new_stage": target.value,
    }
