"""Tests for phase pool loading, live rankings and applicant counts."""

import pytest
import pytest_asyncio

from core.errors import NotFoundError
from database.models.applications import Application
from recruitment.enums import ApplicationStage, ReviewPhase, Track
from api.services.rankings import (
    build_phase_ranking,
    count_applicants_by_phase,
    get_latest_snapshot,
    load_phase_pool,
)
from api.services.reviews import submit_review
from tests.helpers import CYCLE_ID, add_admin, add_application, reload

PHASE = ReviewPhase.APPLICATION


async def review(db, application_id, email, overall, phase=PHASE):
    await submit_review(
        db,
        application_id=application_id,
        phase=phase,
        reviewer_email=email,
        scores={"overall": overall},
    )


@pytest_asyncio.fixture
async def cycle(db, configs):
    """A mixed pool covering every pool membership rule."""
    ids = {}
    for name, track, stage in [
        ("Ada", Track.ENGINEERING, ApplicationStage.SUBMITTED),
        ("Ben", Track.BOTH, ApplicationStage.UNDER_REVIEW),
        ("Cleo", Track.ENGINEERING, ApplicationStage.SUBMITTED),
        ("Dan", Track.ENGINEERING, ApplicationStage.DRAFT),
        ("Eve", Track.BUSINESS, ApplicationStage.COFFEE_CHAT),
        ("Finn", Track.ENGINEERING, ApplicationStage.INTERVIEW_ROUND1),
        ("Gia", Track.ENGINEERING, ApplicationStage.ACCEPTED),
    ]:
        ids[name] = (await add_application(db, name, track=track, stage=stage)).id

    # Reviewed, then withdrawn
    await review(db, ids["Cleo"], "alice@example.org", 5)
    cleo = await reload(db, Application, ids["Cleo"])
    cleo.stage = ApplicationStage.WITHDRAWN
    await db.commit()
    return ids


def names(applications):
    return [a.applicant_name for a in applications]


class TestPool:
    @pytest.mark.asyncio
    async def test_all_tracks(self, db, cycle):
        pool = await load_phase_pool(db, CYCLE_ID, PHASE)
        assert names(pool) == ["Ada", "Ben", "Eve"]

    @pytest.mark.asyncio
    async def test_track_filter_includes_both(self, db, cycle):
        pool = await load_phase_pool(db, CYCLE_ID, PHASE, Track.ENGINEERING)
        assert names(pool) == ["Ada", "Ben"]

    @pytest.mark.asyncio
    async def test_reviewed_applicant_stays_in_pool_after_moving_on(self, db, cycle):
        await review(db, cycle["Finn"], "alice@example.org", 4)

        pool = await load_phase_pool(db, CYCLE_ID, PHASE, Track.ENGINEERING)
        assert names(pool) == ["Ada", "Ben", "Finn"]

    @pytest.mark.asyncio
    async def test_later_phase_pool(self, db, cycle):
        pool = await load_phase_pool(db, CYCLE_ID, ReviewPhase.INTERVIEW_ROUND1)
        assert names(pool) == ["Finn"]

    @pytest.mark.asyncio
    async def test_counts(self, db, cycle):
        counts = await count_applicants_by_phase(db, CYCLE_ID, Track.ENGINEERING)
        assert counts == {
            "application": 2,
            "interview_round1": 1,
            "interview_round2": 0,
            "accepted": 1,
        }

    @pytest.mark.asyncio
    async def test_other_cycles_are_ignored(self, db, cycle):
        await add_application(db, "Zed", cycle_id="2026-spring")
        pool = await load_phase_pool(db, CYCLE_ID, PHASE)
        assert "Zed" not in names(pool)


class TestBuildPhaseRanking:
    @pytest.mark.asyncio
    async def test_ranks_pool_and_measures_completeness(self, db, cycle):
        await add_admin(db, "alice@example.org", "Alice")
        await add_admin(db, "bob@example.org", "Bob")
        await review(db, cycle["Ada"], "alice@example.org", 3)
        await review(db, cycle["Ben"], "alice@example.org", 5)
        await review(db, cycle["Ben"], "bob@example.org", 4)

        ranking = await build_phase_ranking(db, CYCLE_ID, PHASE, Track.ENGINEERING)

        assert [(r.applicant_name, r.rank, r.weighted_score) for r in ranking.rankings] == [
            ("Ben", 1, 4.5),
            ("Ada", 2, 3.0),
        ]
        assert ranking.admins == {"alice@example.org": "Alice", "bob@example.org": "Bob"}
        assert ranking.incomplete_admins == [{"email": "bob@example.org", "reviewed": 1, "total": 2}]
        assert ranking.is_complete is False
        assert ranking.completeness.applicants_fully_reviewed == 1

    @pytest.mark.asyncio
    async def test_unreviewed_applicants_rank_last(self, db, cycle):
        await review(db, cycle["Ben"], "alice@example.org", 1)

        ranking = await build_phase_ranking(db, CYCLE_ID, PHASE)

        assert [r.applicant_name for r in ranking.rankings] == ["Ben", "Ada", "Eve"]
        assert ranking.rankings[1].review_count == 0
        assert ranking.rankings[1].weighted_score == 0.0

    @pytest.mark.asyncio
    async def test_without_admins_nothing_blocks(self, db, cycle):
        ranking = await build_phase_ranking(db, CYCLE_ID, PHASE)
        assert ranking.is_complete is True
        assert ranking.to_dict()["total_admins"] == 0

    @pytest.mark.asyncio
    async def test_requires_a_config(self, db):
        with pytest.raises(NotFoundError):
            await build_phase_ranking(db, "1999-fall", PHASE)

    @pytest.mark.asyncio
    async def test_no_snapshot_before_cutoff(self, db, cycle):
        assert await get_latest_snapshot(db, CYCLE_ID, PHASE) is None
