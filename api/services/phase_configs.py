"""
Phase configuration service functions.

A (cycle, phase) has one track-less default config and optional
track-specific overrides. Reads resolve the override first and fall back to
the default.
"""

from typing import Any, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import NotFoundError, PhaseFinalizedError, ValidationError
from database.models.recruitment import PhaseConfig
from recruitment.enums import PhaseStatus, ReviewPhase, Track
from recruitment.scoring import ScoringCategory, default_categories, validate_categories

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "scoring_categories",
    "min_reviewers_required",
    "use_z_score_normalization",
    "referral_weights",
    "interview_questions",
)


async def _select_config(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track],
    for_update: bool = False,
) -> Optional[PhaseConfig]:
    stmt = select(PhaseConfig).where(
        PhaseConfig.cycle_id == cycle_id,
        PhaseConfig.phase == ReviewPhase(phase),
    )
    if track is None:
        stmt = stmt.where(PhaseConfig.track.is_(None))
    else:
        stmt = stmt.where(PhaseConfig.track == Track(track))
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_phase_config(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
    *,
    for_update: bool = False,
) -> Optional[PhaseConfig]:
    """
    Resolve the config governing (cycle, phase, track).

    Args:
        db: Database session
        cycle_id: Recruitment cycle
        phase: Review phase
        track: Optional track; its override wins over the default
        for_update: Lock the resolved row for the rest of the transaction

    Returns:
        The track override, else the default, else None
    """
    if track is not None:
        config = await _select_config(db, cycle_id, phase, track, for_update)
        if config is not None:
            return config
    return await _select_config(db, cycle_id, phase, None, for_update)


async def require_phase_config(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track] = None,
    *,
    for_update: bool = False,
) -> PhaseConfig:
    config = await get_phase_config(db, cycle_id, phase, track, for_update=for_update)
    if config is None:
        raise NotFoundError(
            f"No {ReviewPhase(phase).value} config for cycle {cycle_id}",
            {"cycle_id": cycle_id, "phase": ReviewPhase(phase).value},
        )
    return config


async def list_phase_configs(
    db: AsyncSession,
    cycle_id: str,
    phase: Optional[ReviewPhase] = None,
    track: Optional[Track] = None,
) -> list[PhaseConfig]:
    """All configs of a cycle, optionally narrowed to a phase and/or track."""
    stmt = select(PhaseConfig).where(PhaseConfig.cycle_id == cycle_id)
    if phase is not None:
        stmt = stmt.where(PhaseConfig.phase == ReviewPhase(phase))
    if track is not None:
        stmt = stmt.where(PhaseConfig.track == Track(track))
    result = await db.execute(stmt.order_by(PhaseConfig.id))
    phase_order = list(ReviewPhase)
    return sorted(result.scalars().all(), key=lambda c: phase_order.index(c.phase))


async def list_track_overrides(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    *,
    for_update: bool = False,
) -> list[PhaseConfig]:
    stmt = select(PhaseConfig).where(
        PhaseConfig.cycle_id == cycle_id,
        PhaseConfig.phase == ReviewPhase(phase),
        PhaseConfig.track.is_not(None),
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.order_by(PhaseConfig.id))
    return list(result.scalars().all())


def _seed_config(cycle_id: str, phase: ReviewPhase, track: Optional[Track] = None) -> PhaseConfig:
    return PhaseConfig(
        cycle_id=cycle_id,
        phase=phase,
        track=track,
        scoring_categories=[c.to_dict() for c in default_categories(phase)],
        min_reviewers_required=settings.default_min_reviewers,
        use_z_score_normalization=False,
        status=PhaseStatus.NOT_STARTED,
    )


def copy_config(source: PhaseConfig, track: Track) -> PhaseConfig:
    """Track override seeded from ``source``'s scoring and lifecycle state."""
    return PhaseConfig(
        cycle_id=source.cycle_id,
        phase=source.phase,
        track=Track(track),
        scoring_categories=list(source.scoring_categories or []),
        min_reviewers_required=source.min_reviewers_required,
        use_z_score_normalization=source.use_z_score_normalization,
        referral_weights=source.referral_weights,
        interview_questions=source.interview_questions,
        status=source.status,
    )


async def initialize_phase_configs(db: AsyncSession, cycle_id: str) -> tuple[list[PhaseConfig], int]:
    """
    Seed one default config per phase. Existing configs are left untouched.

    Returns:
        All default configs of the cycle and how many were created
    """
    created = 0
    configs = []
    for phase in ReviewPhase:
        config = await _select_config(db, cycle_id, phase, None)
        if config is None:
            config = _seed_config(cycle_id, phase)
            db.add(config)
            created += 1
        configs.append(config)

    await db.commit()
    logger.info(f"Initialized phase configs for cycle {cycle_id}: {created} created")
    return configs, created


def _validated_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}",
            {"fields": sorted(unknown)},
        )

    cleaned = dict(fields)
    if "scoring_categories" in cleaned:
        categories = [ScoringCategory.from_dict(c) for c in cleaned["scoring_categories"]]
        validate_categories(categories)
        cleaned["scoring_categories"] = [c.to_dict() for c in categories]
    if "min_reviewers_required" in cleaned:
        minimum = cleaned["min_reviewers_required"]
        if isinstance(minimum, bool) or not isinstance(minimum, int) or minimum < 1:
            raise ValidationError("min_reviewers_required must be a positive integer")
    return cleaned


async def update_phase_config(
    db: AsyncSession,
    cycle_id: str,
    phase: ReviewPhase,
    track: Optional[Track],
    fields: dict[str, Any],
) -> tuple[PhaseConfig, bool]:
    """
    Upsert editable fields of a (cycle, phase[, track]) config.

    A missing track override is created from the default config (or from
    phase defaults when the cycle has no config yet).

    Returns:
        The saved config and whether it was newly created

    Raises:
        PhaseFinalizedError: the governing config is finalized
        InvalidConfigError: the new scoring categories are malformed
    """
    cleaned = _validated_fields(fields)
    config = await get_phase_config(db, cycle_id, phase, track, for_update=True)
    if config is not None and config.is_finalized:
        raise PhaseFinalizedError(
            f"{ReviewPhase(phase).value} is finalized for cycle {cycle_id}; unlock it first"
        )

    created = False
    if config is None:
        config = _seed_config(cycle_id, ReviewPhase(phase), track)
        db.add(config)
        created = True
    elif track is not None and config.track is None:
        config = copy_config(config, track)
        db.add(config)
        created = True

    for name, value in cleaned.items():
        setattr(config, name, value)

    await db.commit()
    logger.info(
        f"Updated {ReviewPhase(phase).value} config for cycle {cycle_id} "
        f"(track={Track(track).value if track else 'default'}): {sorted(cleaned)}"
    )
    return config, created
