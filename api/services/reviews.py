"""
Review store.

One review per (application, phase, reviewer). Saving again as the same
reviewer updates the existing row. The store validates scores against the
governing categories but knows nothing about phase locks; ``submit_review``
is the guarded entry point used by the API.
"""

from typing import Any, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, PhaseFinalizedError
from database.models.applications import Application
from database.models.recruitment import ApplicationReview, PhaseConfig, PhaseDecision
from recruitment.enums import Recommendation, ReferralSignal, ReviewPhase, Track
from recruitment.ranking import ReviewRecord
from recruitment.scoring import ScoreInput, ScoringCategory, validate_scores, weighted_score
from api.services.phase_configs import get_phase_config, list_track_overrides, require_phase_config

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_review(
    db: AsyncSession, application_id: int, phase: ReviewPhase, reviewer_email: str
) -> Optional[ApplicationReview]:
    result = await db.execute(
        select(ApplicationReview).where(
            ApplicationReview.application_id == application_id,
            ApplicationReview.phase == ReviewPhase(phase),
            ApplicationReview.reviewer_email == _normalize_email(reviewer_email),
        )
    )
    return result.scalars().first()


async def upsert_review(
    db: AsyncSession,
    *,
    application: Application,
    phase: ReviewPhase,
    reviewer_email: str,
    categories: list[ScoringCategory],
    scores: ScoreInput,
    referral_signal: ReferralSignal = ReferralSignal.NEUTRAL,
    recommendation: Optional[Recommendation] = None,
    notes: Optional[str] = None,
    reviewer_name: Optional[str] = None,
    question_notes: Optional[dict[str, str]] = None,
    audio_url: Optional[str] = None,
) -> tuple[ApplicationReview, bool]:
    """
    Insert or update a review by its natural key. Does not commit.

    Raises:
        ValidationError: unknown or repeated categories
        ScoreOutOfRangeError: a score outside its category bounds

    Returns:
        The review row and whether it was created
    """
    entries = validate_scores(categories, scores)
    review = await get_review(db, application.id, phase, reviewer_email)
    created = review is None
    if created:
        review = ApplicationReview(
            application_id=application.id,
            cycle_id=application.cycle_id,
            phase=ReviewPhase(phase),
            reviewer_email=_normalize_email(reviewer_email),
        )
        db.add(review)

    review.track = application.track
    review.reviewer_name = reviewer_name or review.reviewer_name
    review.scores = [{"key": key, "value": value} for key, value in entries]
    review.referral_signal = ReferralSignal(referral_signal)
    review.recommendation = Recommendation(recommendation) if recommendation else None
    review.notes = notes
    review.question_notes = question_notes
    review.audio_url = audio_url
    await db.flush()
    return review, created


async def find_locking_config(
    db: AsyncSession,
    application: Application,
    phase: ReviewPhase,
    config: PhaseConfig,
) -> Optional[PhaseConfig]:
    """
    The finalized config, if any, that locks reviews of an applicant.

    Besides the config resolved for the applicant's track, the config that
    owns the applicant's recorded cutoff decision locks it, and a ``both``
    applicant is locked by any finalized track override.
    """
    if config.is_finalized:
        return config

    owners = []
    result = await db.execute(
        select(PhaseDecision).where(
            PhaseDecision.cycle_id == application.cycle_id,
            PhaseDecision.phase == ReviewPhase(phase),
            PhaseDecision.application_id == application.id,
        )
    )
    decision = result.scalars().first()
    if decision is not None:
        owners.append(await get_phase_config(db, application.cycle_id, phase, decision.track))
    if application.track == Track.BOTH:
        owners.extend(await list_track_overrides(db, application.cycle_id, phase))

    for owner in owners:
        if owner is not None and owner.is_finalized:
            return owner
    return None


async def submit_review(
    db: AsyncSession,
    *,
    application_id: int,
    phase: ReviewPhase,
    reviewer_email: str,
    scores: ScoreInput,
    referral_signal: ReferralSignal = ReferralSignal.NEUTRAL,
    recommendation: Optional[Recommendation] = None,
    notes: Optional[str] = None,
    reviewer_name: Optional[str] = None,
    question_notes: Optional[dict[str, str]] = None,
    audio_url: Optional[str] = None,
) -> tuple[ApplicationReview, bool]:
    """
    Save a reviewer's review unless the governing phase config is finalized.

    Raises:
        NotFoundError: unknown application or no phase config for its cycle
        PhaseFinalizedError: the phase is locked for the applicant's track
    """
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")

    config = await require_phase_config(db, application.cycle_id, phase, application.track)
    locked_by = await find_locking_config(db, application, phase, config)
    if locked_by is not None:
        raise PhaseFinalizedError(
            f"Reviews for {ReviewPhase(phase).value} are locked; the phase is finalized",
            {
                "cycle_id": application.cycle_id,
                "phase": ReviewPhase(phase).value,
                "track": locked_by.track.value if locked_by.track else None,
            },
        )

    fields = dict(
        application=application,
        phase=phase,
        reviewer_email=reviewer_email,
        categories=config.categories,
        scores=scores,
        referral_signal=referral_signal,
        recommendation=recommendation,
        notes=notes,
        reviewer_name=reviewer_name,
        question_notes=question_notes,
        audio_url=audio_url,
    )
    try:
        review, created = await upsert_review(db, **fields)
        await db.commit()
    except IntegrityError:
        # Same reviewer saving twice concurrently: the second write updates
        await db.rollback()
        logger.info(
            f"Concurrent review insert for application {application_id} by "
            f"{reviewer_email}; retrying as update"
        )
        application = await db.get(Application, application_id)
        fields["application"] = application
        review, created = await upsert_review(db, **fields)
        await db.commit()

    logger.info(
        f"{'Created' if created else 'Updated'} {ReviewPhase(phase).value} review "
        f"for application {application_id} by {_normalize_email(reviewer_email)}"
    )
    return review, created


async def list_reviews_for_applicant(
    db: AsyncSession, application_id: int, phase: ReviewPhase
) -> list[ApplicationReview]:
    result = await db.execute(
        select(ApplicationReview)
        .where(
            ApplicationReview.application_id == application_id,
            ApplicationReview.phase == ReviewPhase(phase),
        )
        .order_by(ApplicationReview.created_at, ApplicationReview.id)
    )
    return list(result.scalars().all())


async def list_reviews_for_phase(
    db: AsyncSession, cycle_id: str, phase: ReviewPhase
) -> list[ApplicationReview]:
    """Every review of a phase across the cycle."""
    result = await db.execute(
        select(ApplicationReview)
        .where(
            ApplicationReview.cycle_id == cycle_id,
            ApplicationReview.phase == ReviewPhase(phase),
        )
        .order_by(ApplicationReview.id)
    )
    return list(result.scalars().all())


def to_record(review: ApplicationReview) -> ReviewRecord:
    return ReviewRecord(
        application_id=review.application_id,
        reviewer_email=review.reviewer_email,
        scores=review.score_entries,
        referral_signal=review.referral_signal,
        recommendation=review.recommendation,
        reviewer_name=review.reviewer_name,
    )


async def get_review_summary(
    db: AsyncSession,
    application_id: int,
    phase: ReviewPhase,
    admins: dict[str, Optional[str]],
) -> dict[str, Any]:
    """
    Aggregate one applicant's reviews for a phase.

    Returns per-category averages over scored values, the mean weighted
    score, signal and recommendation tallies, and which admins have not
    reviewed yet.
    """
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")

    config = await require_phase_config(db, application.cycle_id, phase, application.track)
    categories = config.categories
    reviews = await list_reviews_for_applicant(db, application_id, phase)

    category_averages: dict[str, Optional[float]] = {}
    for category in categories:
        values = [
            value
            for review in reviews
            for key, value in review.score_entries
            if key == category.key and value is not None
        ]
        category_averages[category.key] = round(sum(values) / len(values), 2) if values else None

    per_reviewer = [
        score
        for score in (weighted_score(categories, review.score_entries) for review in reviews)
        if score is not None
    ]
    signals = {signal.value: 0 for signal in ReferralSignal}
    recommendations = {rec.value: 0 for rec in Recommendation}
    for review in reviews:
        signals[ReferralSignal(review.referral_signal).value] += 1
        if review.recommendation:
            recommendations[Recommendation(review.recommendation).value] += 1

    reviewed_by = {review.reviewer_email for review in reviews}
    return {
        "application_id": application_id,
        "phase": ReviewPhase(phase).value,
        "review_count": len(reviews),
        "category_averages": category_averages,
        "weighted_score": (
            round(sum(per_reviewer) / len(per_reviewer), 2) if per_reviewer else None
        ),
        "referral_count": signals[ReferralSignal.REFERRAL.value],
        "neutral_count": signals[ReferralSignal.NEUTRAL.value],
        "deferral_count": signals[ReferralSignal.DEFERRAL.value],
        "recommendations": recommendations,
        "reviewers": sorted(reviewed_by),
        "missing_reviewers": [email for email in admins if email not in reviewed_by],
    }
