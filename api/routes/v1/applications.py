"""
Application workflow endpoints.

Admin stage moves outside of cutoffs.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import get_db
from database.models.users import User
from api.dependencies import get_audit_sink, require_admin_user
from api.schemas.common import CONFLICT_RESPONSES
from api.schemas.recruitment import StageMoveRequest, StageMoveResponse
from api.services import applications as application_service
from api.services.audit import AuditSink

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "/{application_id}/stage",
    response_model=StageMoveResponse,
    responses=CONFLICT_RESPONSES,
    summary="Move Application Stage",
    description=(
        "Move an application to another stage. Interview rounds, accepted and "
        "rejected are only reachable through a cutoff."
    ),
)
async def move_application_stage(
    request: StageMoveRequest,
    application_id: int = Path(..., description="Application ID"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> StageMoveResponse:
    result = await application_service.move_application_stage(
        db,
        application_id,
        request.stage,
        reason=request.reason,
        moved_by=admin.email,
        audit=audit,
    )
    return StageMoveResponse(**result)
