"""
Ranking and completeness service functions.

Loads a phase's applicant pool, its reviews and recorded decisions from the
database and hands them to the pure ranking and completeness engines.

The pool of (cycle, phase, track) is every non-withdrawn application that is
in a stage eligible for the phase, has a review in the phase, or was decided
by a cutoff of the phase. A track filter matches the track itself and the
``both`` wildcard.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import logging

from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.applications import Application
from database.models.recruitment import (
    ApplicationReview,
    PhaseConfig,
    PhaseDecision,
    PhaseRankingSnapshot,
)
from recruitment.completeness import PhaseCompleteness, compute_completeness, find_incomplete_reviewers
from recruitment.enums import ApplicationStage, Decision, ReviewPhase, Track
from recruitment.ranking import ApplicantRecord, RankedApplicant, ReferralWeights, rank_applicants
from recruitment.stages import eligible_stages
from api.services.phase_configs import require_phase_config
from api.services.reviews import list_reviews_for_phase, to_record
from api.services.roster import list_admins

logger = logging.getLogger(__name__)


@dataclass
class PhaseRanking:
    """Everything a ranking, preview or cutoff needs about one phase."""

    config: PhaseConfig
    applications: dict[int, Application]
    rankings: list[RankedApplicant]
    completeness: PhaseCompleteness
    admins: dict[str, Optional[str]]
    incomplete_admins: list[dict[str, Any]] = field(default_factory=list)
    decisions: dict[int, PhaseDecision] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not self.incomplete_admins

    def to_dict(self) -> dict[str, Any]:
        return {
            "rankings": [entry.to_dict() for entry in self.rankings],
            "completeness": self.completeness.to_dict(),
            "incomplete_admins": list(self.incomplete_admins),
            "total_admins": len(self.admins),
        }


def _track_filter(track: Optional[Track]):
    return or_(Application.track == Track(track), Application.track == Track.BOTH)


async def load_phase_pool(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
) -> list[Application]:
    """Applications forming the review pool of a phase."""
    phase = ReviewPhase(phase)
    reviewed = select(ApplicationReview.application_id).where(
        ApplicationReview.cycle_id == cycle_id, ApplicationReview.phase == phase
    )
    decided = select(PhaseDecision.application_id).where(
        PhaseDecision.cycle_id == cycle_id, PhaseDecision.phase == phase
    )
    stmt = select(Application).where(
        Application.cycle_id == cycle_id,
        Application.stage != ApplicationStage.WITHDRAWN,
        or_(
            Application.stage.in_(eligible_stages(phase)),
            Application.id.in_(reviewed),
            Application.id.in_(decided),
        ),
    )
    if track is not None:
        stmt = stmt.where(_track_filter(track))
    result = await db.execute(stmt.order_by(Application.id))
    return list(result.scalars().all())


async def load_decisions(
    db: AsyncSession, cycle_id: str, phase: ReviewPhase
) -> dict[int, PhaseDecision]:
    result = await db.execute(
        select(PhaseDecision).where(
            PhaseDecision.cycle_id == cycle_id, PhaseDecision.phase == ReviewPhase(phase)
        )
    )
    return {decision.application_id: decision for decision in result.scalars().all()}


def to_applicant(application: Application) -> ApplicantRecord:
    return ApplicantRecord(
        application_id=application.id,
        applicant_name=application.display_name,
        applicant_email=application.contact_email,
        track=application.track.value if application.track else None,
        stage=application.stage.value if application.stage else None,
    )


async def build_phase_ranking(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
    *,
    config: Optional[PhaseConfig] = None,
) -> PhaseRanking:
    """
    Rank a phase and measure admin review coverage of its pool.

    Args:
        db: Database session
        cycle_id: Recruitment cycle
        phase: Review phase
        track: Optional track filter
        config: Already-resolved (possibly locked) config to use

    Raises:
        NotFoundError: no config exists for the phase
    """
    phase = ReviewPhase(phase)
    if config is None:
        config = await require_phase_config(db, cycle_id, phase, track)

    pool = await load_phase_pool(db, cycle_id, phase, track)
    reviews = [to_record(review) for review in await list_reviews_for_phase(db, cycle_id, phase)]
    decisions = await load_decisions(db, cycle_id, phase)
    admins = await list_admins(db)

    rankings = rank_applicants(
        [to_applicant(application) for application in pool],
        reviews,
        config.categories,
        use_z_score=config.use_z_score_normalization,
        referral_weights=ReferralWeights.from_dict(config.referral_weights),
        decisions={app_id: Decision(d.decision) for app_id, d in decisions.items()},
    )

    # Roster admins first, then anyone else who reviewed in this phase
    reviewers = dict(admins)
    for review in reviews:
        reviewers.setdefault(review.reviewer_email, review.reviewer_name)

    completeness = compute_completeness(
        reviews,
        [application.id for application in pool],
        reviewers,
        min_reviewers_required=config.min_reviewers_required,
    )
    return PhaseRanking(
        config=config,
        applications={application.id: application for application in pool},
        rankings=rankings,
        completeness=completeness,
        admins=admins,
        incomplete_admins=find_incomplete_reviewers(completeness, admins),
        decisions=decisions,
    )


async def get_latest_snapshot(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
) -> Optional[PhaseRankingSnapshot]:
    """Most recent frozen ranking for (cycle, phase, track)."""
    stmt = select(PhaseRankingSnapshot).where(
        PhaseRankingSnapshot.cycle_id == cycle_id,
        PhaseRankingSnapshot.phase == ReviewPhase(phase),
    )
    if track is None:
        stmt = stmt.where(PhaseRankingSnapshot.track.is_(None))
    else:
        stmt = stmt.where(PhaseRankingSnapshot.track == Track(track))
    result = await db.execute(
        stmt.order_by(PhaseRankingSnapshot.created_at.desc(), PhaseRankingSnapshot.id.desc())
    )
    return result.scalars().first()


async def count_applicants_by_phase(
    db: AsyncSession, cycle_id: str, track: Optional[Track] = None
) -> dict[str, int]:
    """Pool size of every phase plus the number of accepted applicants."""
    counts = {}
    for phase in ReviewPhase:
        counts[phase.value] = len(await load_phase_pool(db, cycle_id, phase, track))

    stmt = select(func.count(Application.id)).where(
        Application.cycle_id == cycle_id, Application.stage == ApplicationStage.ACCEPTED
    )
    if track is not None:
        stmt = stmt.where(_track_filter(track))
    counts["accepted"] = (await db.execute(stmt)).scalar() or 0
    return counts


async def list_phase_decisions(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
) -> list[PhaseDecision]:
    """Decisions recorded by the cutoff of (cycle, phase, track)."""
    stmt = select(PhaseDecision).where(
        PhaseDecision.cycle_id == cycle_id, PhaseDecision.phase == ReviewPhase(phase)
    )
    if track is None:
        stmt = stmt.where(PhaseDecision.track.is_(None))
    else:
        stmt = stmt.where(PhaseDecision.track == Track(track))
    result = await db.execute(stmt.order_by(PhaseDecision.application_id))
    return list(result.scalars().all())
