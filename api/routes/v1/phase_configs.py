"""
Phase configuration endpoints.

Scoring setup per (cycle, phase[, track]) and the lifecycle actions that
move a phase through start, finalize, unlock and revert.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import get_db
from database.models.audit import AuditAction
from database.models.users import User
from recruitment.enums import ReviewPhase, Track
from api.dependencies import get_audit_sink, get_lifecycle_controller, require_admin_user
from api.schemas.common import CONFLICT_RESPONSES
from api.schemas.recruitment import (
    PhaseActionRequest,
    PhaseActionResponse,
    PhaseConfigInitRequest,
    PhaseConfigListResponse,
    PhaseConfigResponse,
    PhaseConfigUpdateRequest,
)
from api.services.audit import AuditSink
from api.services.lifecycle import PhaseLifecycleController
from api.services.phase_configs import (
    initialize_phase_configs,
    list_phase_configs,
    update_phase_config,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/phase-configs", tags=["phase-configs"])


@router.get(
    "",
    response_model=PhaseConfigListResponse,
    summary="List Phase Configs",
    description="List the phase configs of a cycle, optionally narrowed to a phase or track.",
)
async def get_phase_configs(
    cycle_id: str = Query(..., min_length=1, description="Recruitment cycle"),
    phase: Optional[ReviewPhase] = Query(None, description="Review phase"),
    track: Optional[Track] = Query(None, description="Track override to list"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
) -> PhaseConfigListResponse:
    configs = await list_phase_configs(db, cycle_id, phase, track)
    return PhaseConfigListResponse(
        cycle_id=cycle_id,
        configs=[PhaseConfigResponse.model_validate(c) for c in configs],
    )


@router.post(
    "/initialize",
    response_model=PhaseConfigListResponse,
    summary="Initialize Phase Configs",
    description="Create a default config for every phase of a cycle. Existing configs are kept.",
)
async def initialize_configs(
    request: PhaseConfigInitRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> PhaseConfigListResponse:
    configs, created = await initialize_phase_configs(db, request.cycle_id)
    if created:
        await audit.record(
            admin.email,
            AuditAction.PHASE_CONFIGS_INITIALIZED,
            "Cycle",
            request.cycle_id,
            {"created": created},
        )
    return PhaseConfigListResponse(
        cycle_id=request.cycle_id,
        configs=[PhaseConfigResponse.model_validate(c) for c in configs],
        created=created,
    )


@router.put(
    "",
    response_model=PhaseConfigResponse,
    summary="Update Phase Config",
    description=(
        "Update scoring categories, reviewer minimum, normalization and referral weights. "
        "Passing a track creates or edits that track's override. Finalized phases are read-only."
    ),
)
async def put_phase_config(
    request: PhaseConfigUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> PhaseConfigResponse:
    fields = request.editable_fields()
    config, created = await update_phase_config(
        db, request.cycle_id, request.phase, request.track, fields
    )
    await audit.record(
        admin.email,
        AuditAction.PHASE_CONFIG_UPDATED,
        "PhaseConfig",
        config.id,
        {
            "fields": sorted(fields),
            "created": created,
            "track": request.track.value if request.track else None,
        },
    )
    return PhaseConfigResponse.model_validate(config)


@router.put(
    "/action",
    response_model=PhaseActionResponse,
    responses=CONFLICT_RESPONSES,
    summary="Phase Lifecycle Action",
    description=(
        "start, finalize, unlock or revert a phase. finalize is refused while admins "
        "still owe reviews unless force_finalize is set."
    ),
)
async def phase_action(
    request: PhaseActionRequest,
    admin: User = Depends(require_admin_user),
    controller: PhaseLifecycleController = Depends(get_lifecycle_controller),
) -> PhaseActionResponse:
    result = await controller.perform_action(
        request.action,
        request.cycle_id,
        request.phase,
        request.track,
        actor=admin.email,
        force_finalize=request.force_finalize,
    )
    return PhaseActionResponse(
        success=result["success"],
        action=result["action"],
        config=PhaseConfigResponse.model_validate(result["config"]),
        reverted_count=result["reverted_count"],
    )
