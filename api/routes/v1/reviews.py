"""Review submission endpoints."""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import get_db
from database.models.users import User
from recruitment.enums import ReviewPhase
from api.dependencies import require_admin_user
from api.schemas.common import CONFLICT_RESPONSES
from api.schemas.recruitment import (
    ReviewListResponse,
    ReviewResponse,
    ReviewSubmitRequest,
    ReviewSummaryResponse,
)
from api.services.reviews import get_review_summary, list_reviews_for_applicant, submit_review
from api.services.roster import list_admins

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get(
    "",
    response_model=ReviewListResponse,
    summary="List Reviews",
    description="All reviews of an applicant in a phase, with aggregated scores.",
)
async def get_reviews(
    application_id: int = Query(..., description="Application ID"),
    phase: ReviewPhase = Query(..., description="Review phase"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
) -> ReviewListResponse:
    summary = await get_review_summary(db, application_id, phase, await list_admins(db))
    reviews = await list_reviews_for_applicant(db, application_id, phase)
    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(review) for review in reviews],
        summary=ReviewSummaryResponse(**summary),
    )


@router.post(
    "",
    response_model=ReviewResponse,
    responses=CONFLICT_RESPONSES,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Review",
    description=(
        "Create or update the caller's review of an applicant. Returns 201 when the "
        "review is new and 200 when it replaced the caller's earlier review."
    ),
)
async def post_review(
    request: ReviewSubmitRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin_user),
) -> ReviewResponse:
    review, created = await submit_review(
        db,
        application_id=request.application_id,
        phase=request.phase,
        reviewer_email=admin.email,
        reviewer_name=admin.name,
        scores=request.score_pairs(),
        referral_signal=request.referral_signal,
        recommendation=request.recommendation,
        notes=request.notes,
        question_notes=request.question_notes,
        audio_url=request.audio_url,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return ReviewResponse.model_validate(review)
