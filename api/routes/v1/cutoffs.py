"""
Cutoff endpoints.

Preview never writes. Applying a cutoff moves every ranked applicant to the
phase's advance or reject stage, records the decisions, freezes the ranking
and (by default) finalizes the phase.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationError
from database.engine import get_db
from database.models.users import User
from recruitment.cutoff import CutoffCriteria, ManualOverride
from recruitment.enums import ReviewPhase, Track
from api.dependencies import get_lifecycle_controller, require_admin_user
from api.schemas.common import CONFLICT_RESPONSES
from api.schemas.recruitment import (
    CutoffApplyRequest,
    CutoffApplyResponse,
    CutoffPreviewRequest,
    CutoffPreviewResponse,
    CutoffStateResponse,
    PhaseDecisionResponse,
)
from api.services.lifecycle import PhaseLifecycleController
from api.services.phase_configs import require_phase_config
from api.services.rankings import build_phase_ranking, list_phase_decisions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cutoffs", tags=["cutoffs"])


def _criteria(request: CutoffPreviewRequest) -> CutoffCriteria:
    return CutoffCriteria(
        type=request.cutoff_criteria.type,
        top_n=request.cutoff_criteria.top_n,
        min_score=request.cutoff_criteria.min_score,
    )


def _overrides(request: CutoffPreviewRequest) -> list[ManualOverride]:
    return [
        ManualOverride(application_id=o.application_id, action=o.action, reason=o.reason)
        for o in request.manual_overrides
    ]


@router.get(
    "",
    response_model=CutoffStateResponse,
    summary="Get Cutoff State",
    description="Current cutoff criteria, recorded decisions and review completeness of a phase.",
)
async def get_cutoff(
    cycle_id: str = Query(..., min_length=1, description="Recruitment cycle"),
    phase: ReviewPhase = Query(..., description="Review phase"),
    track: Optional[Track] = Query(None, description="Track filter"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
) -> CutoffStateResponse:
    config = await require_phase_config(db, cycle_id, phase, track)
    ranking = await build_phase_ranking(db, cycle_id, phase, track, config=config)
    decisions = await list_phase_decisions(db, cycle_id, phase, track)
    return CutoffStateResponse(
        cycle_id=cycle_id,
        phase=phase,
        track=track,
        phase_status=config.status,
        cutoff_applied=config.cutoff_applied_at is not None,
        cutoff_criteria=config.cutoff_criteria,
        cutoff_applied_at=config.cutoff_applied_at,
        cutoff_applied_by=config.cutoff_applied_by,
        decisions=[PhaseDecisionResponse.model_validate(d) for d in decisions],
        completeness=ranking.completeness.to_dict(),
        incomplete_admins=ranking.incomplete_admins,
    )


@router.post(
    "/preview",
    response_model=CutoffPreviewResponse,
    summary="Preview Cutoff",
    description="Show who a cutoff would advance and reject. Nothing is written.",
)
async def preview_cutoff(
    request: CutoffPreviewRequest,
    admin: User = Depends(require_admin_user),
    controller: PhaseLifecycleController = Depends(get_lifecycle_controller),
) -> CutoffPreviewResponse:
    result = await controller.preview_cutoff(
        request.cycle_id,
        request.phase,
        request.track,
        _criteria(request),
        _overrides(request),
    )
    return CutoffPreviewResponse(**result)


@router.post(
    "",
    response_model=CutoffApplyResponse,
    responses=CONFLICT_RESPONSES,
    summary="Apply Cutoff",
    description=(
        "Apply a cutoff and, unless finalize_phase is false, finalize the phase. "
        "Refused while admins still owe reviews unless force_finalize is set. "
        "Without a track, confirm_all_tracks must be set."
    ),
)
async def apply_cutoff(
    request: CutoffApplyRequest,
    admin: User = Depends(require_admin_user),
    controller: PhaseLifecycleController = Depends(get_lifecycle_controller),
) -> CutoffApplyResponse:
    if request.track is None and not request.confirm_all_tracks:
        raise ValidationError(
            "No track given: set confirm_all_tracks to apply this cutoff to every track",
            {"confirm_all_tracks": False},
        )

    result = await controller.apply_cutoff(
        request.cycle_id,
        request.phase,
        request.track,
        _criteria(request),
        _overrides(request),
        actor=admin.email,
        send_emails=request.send_emails,
        finalize_after=request.finalize_phase,
        force_finalize=request.force_finalize,
    )
    return CutoffApplyResponse(**result)
