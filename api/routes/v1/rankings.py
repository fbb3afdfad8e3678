"""
Ranking and completeness endpoints.

``mode=live`` ranks from current reviews, ``mode=finalized`` returns the
ranking frozen when the cutoff was applied, and ``mode=counts`` returns the
pool size of every phase.
"""

from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationError
from database.engine import get_db
from database.models.users import User
from recruitment.enums import ReviewPhase, Track
from api.dependencies import require_admin_user
from api.schemas.recruitment import (
    CompletenessResponse,
    PhaseCountsResponse,
    RankingsResponse,
)
from api.services.phase_configs import require_phase_config
from api.services.rankings import (
    build_phase_ranking,
    count_applicants_by_phase,
    get_latest_snapshot,
)

router = APIRouter(tags=["rankings"])


@router.get(
    "/rankings",
    response_model=Union[RankingsResponse, PhaseCountsResponse],
    summary="Get Rankings",
    description="Live or finalized ranking of a phase, or applicant counts per phase.",
)
async def get_rankings(
    cycle_id: str = Query(..., min_length=1, description="Recruitment cycle"),
    phase: Optional[ReviewPhase] = Query(None, description="Review phase"),
    track: Optional[Track] = Query(None, description="Track filter"),
    mode: Literal["live", "finalized", "counts"] = Query("live"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    if mode == "counts":
        counts = await count_applicants_by_phase(db, cycle_id, track)
        return PhaseCountsResponse(cycle_id=cycle_id, track=track, counts=counts)

    if phase is None:
        raise ValidationError(f"phase is required for mode={mode}")

    if mode == "finalized":
        config = await require_phase_config(db, cycle_id, phase, track)
        snapshot = await get_latest_snapshot(db, cycle_id, phase, track)
        if snapshot is None:
            raise NotFoundError(
                f"No cutoff has been applied to {phase.value} for cycle {cycle_id}",
                {"cycle_id": cycle_id, "phase": phase.value},
            )
        return RankingsResponse(
            cycle_id=cycle_id,
            phase=phase,
            track=track,
            mode="finalized",
            phase_status=config.status,
            rankings=snapshot.rankings,
            cutoff_criteria=snapshot.cutoff_criteria,
            snapshot_created_at=snapshot.created_at,
        )

    ranking = await build_phase_ranking(db, cycle_id, phase, track)
    return RankingsResponse(
        cycle_id=cycle_id,
        phase=phase,
        track=track,
        mode="live",
        phase_status=ranking.config.status,
        rankings=[entry.to_dict() for entry in ranking.rankings],
        completeness=ranking.completeness.to_dict(),
        incomplete_admins=ranking.incomplete_admins,
        cutoff_criteria=ranking.config.cutoff_criteria,
    )


@router.get(
    "/completeness",
    response_model=CompletenessResponse,
    summary="Get Review Completeness",
    description="Per-reviewer coverage of a phase's pool and whether the phase can be finalized.",
)
async def get_completeness(
    cycle_id: str = Query(..., min_length=1, description="Recruitment cycle"),
    phase: ReviewPhase = Query(..., description="Review phase"),
    track: Optional[Track] = Query(None, description="Track filter"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
) -> CompletenessResponse:
    ranking = await build_phase_ranking(db, cycle_id, phase, track)
    return CompletenessResponse(
        cycle_id=cycle_id,
        phase=phase,
        track=track,
        completeness=ranking.completeness.to_dict(),
        incomplete_admins=ranking.incomplete_admins,
        total_admins=len(ranking.admins),
        can_finalize=ranking.is_complete,
    )
