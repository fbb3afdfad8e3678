"""
End-to-end tests for the recruitment API.

Requests go through the full application (error handlers and middleware
included) with the database and notifier dependencies pointed at a
per-test SQLite file.
"""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from api.dependencies import get_audit_sink, get_notification_coordinator
from api.main import app
from api.services.audit import AuditSink
from api.services.notifications import NotificationCoordinator
from database.engine import get_db
from database.models.applications import Application
from database.models.audit import AuditAction, AuditLog
from recruitment.enums import ApplicationStage, Track
from tests.helpers import CYCLE_ID, add_admin, add_application, reload

PREFIX = "/api/v1/recruitment"
ALICE = {"X-User-Email": "alice@example.org"}
BOB = {"X-User-Email": "Bob@Example.org"}


@pytest_asyncio.fixture
async def client(session_factory, notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_sink] = lambda: AuditSink(session_factory)
    app.dependency_overrides[get_notification_coordinator] = lambda: NotificationCoordinator(
        notifier, session_factory=session_factory, retry_enabled=False
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admins(db):
    await add_admin(db, "alice@example.org", "Alice")
    await add_admin(db, "bob@example.org", "Bob")


@pytest_asyncio.fixture
async def initialized(client, admins):
    response = await client.post(
        f"{PREFIX}/phase-configs/initialize", json={"cycle_id": CYCLE_ID}, headers=ALICE
    )
    assert response.status_code == 200
    return response.json()


async def submit(client, headers, application_id, overall, **extra):
    return await client.post(
        f"{PREFIX}/reviews",
        json={
            "application_id": application_id,
            "phase": "application",
            "scores": {"overall": overall},
            **extra,
        },
        headers=headers,
    )


@pytest_asyncio.fixture
async def reviewed(client, db, initialized):
    """Three engineering applicants scored 5, 4 and 2 by both admins."""
    ids = []
    for name, score in (("Ada", 5), ("Ben", 4), ("Cleo", 2)):
        application = await add_application(db, name, track=Track.ENGINEERING)
        ids.append(application.id)
        for headers in (ALICE, BOB):
            response = await submit(client, headers, application.id, score)
            assert response.status_code == 201
    return ids


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_checks_database(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "database": "up"}


class TestAccess:
    @pytest.mark.asyncio
    async def test_anonymous_is_rejected(self, client):
        response = await client.get(f"{PREFIX}/phase-configs", params={"cycle_id": CYCLE_ID})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_EXCEPTION"

    @pytest.mark.asyncio
    async def test_non_admin_is_forbidden(self, client, admins):
        response = await client.get(
            f"{PREFIX}/phase-configs",
            params={"cycle_id": CYCLE_ID},
            headers={"X-User-Email": "applicant@example.com"},
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_inactive_admin_is_forbidden(self, client, db):
        await add_admin(db, "former@example.org", is_active=False)
        response = await client.get(
            f"{PREFIX}/phase-configs",
            params={"cycle_id": CYCLE_ID},
            headers={"X-User-Email": "former@example.org"},
        )
        assert response.status_code == 403


class TestPhaseConfigs:
    @pytest.mark.asyncio
    async def test_initialize_is_idempotent_and_audited(self, client, db, initialized):
        assert initialized["created"] == 3
        assert [c["phase"] for c in initialized["configs"]] == [
            "application", "interview_round1", "interview_round2",
        ]

        again = await client.post(
            f"{PREFIX}/phase-configs/initialize", json={"cycle_id": CYCLE_ID}, headers=ALICE
        )
        assert again.json()["created"] == 0

        entries = (await db.execute(select(AuditLog))).scalars().all()
        assert [e.action for e in entries] == [AuditAction.PHASE_CONFIGS_INITIALIZED]

    @pytest.mark.asyncio
    async def test_update_track_override(self, client, initialized):
        response = await client.put(
            f"{PREFIX}/phase-configs",
            json={
                "cycle_id": CYCLE_ID,
                "phase": "interview_round1",
                "track": "business",
                "scoring_categories": [
                    {"key": "case", "label": "Case Study", "weight": 2},
                    {"key": "fit", "label": "Culture Fit", "weight": 1},
                ],
                "use_z_score_normalization": True,
            },
            headers=ALICE,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["track"] == "business"
        assert [c["key"] for c in body["scoring_categories"]] == ["case", "fit"]
        assert body["use_z_score_normalization"] is True

        listed = await client.get(
            f"{PREFIX}/phase-configs",
            params={"cycle_id": CYCLE_ID, "phase": "interview_round1"},
            headers=ALICE,
        )
        assert [c["track"] for c in listed.json()["configs"]] == [None, "business"]

    @pytest.mark.asyncio
    async def test_update_rejects_bad_weights(self, client, initialized):
        response = await client.put(
            f"{PREFIX}/phase-configs",
            json={
                "cycle_id": CYCLE_ID,
                "phase": "application",
                "scoring_categories": [{"key": "a", "label": "A", "weight": 0}],
            },
            headers=ALICE,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_finalize_action_reports_missing_reviews(self, client, db, initialized):
        await add_application(db, "Ada")

        response = await client.put(
            f"{PREFIX}/phase-configs/action",
            json={"cycle_id": CYCLE_ID, "phase": "application", "action": "finalize"},
            headers=ALICE,
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INCOMPLETE_REVIEWS"
        assert {a["email"] for a in error["details"]["incomplete_admins"]} == {
            "alice@example.org", "bob@example.org",
        }

    @pytest.mark.asyncio
    async def test_lifecycle_actions(self, client, initialized):
        def action(name, **extra):
            return client.put(
                f"{PREFIX}/phase-configs/action",
                json={"cycle_id": CYCLE_ID, "phase": "application", "action": name, **extra},
                headers=ALICE,
            )

        started = await action("start")
        assert started.json()["config"]["status"] == "in_progress"

        finalized = await action("finalize")
        assert finalized.json()["config"]["status"] == "finalized"
        assert finalized.json()["config"]["finalized_by"] == "alice@example.org"

        unlocked = await action("unlock")
        assert unlocked.json()["config"]["status"] == "in_progress"

        again = await action("unlock")
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_PHASE_STATE"


class TestReviews:
    @pytest.mark.asyncio
    async def test_create_then_update(self, client, db, initialized):
        application = await add_application(db, "Ada")

        created = await submit(
            client, ALICE, application.id, 4, referral_signal="referral", notes="Strong essay"
        )
        updated = await submit(client, ALICE, application.id, 5)

        assert created.status_code == 201
        assert updated.status_code == 200
        assert updated.json()["id"] == created.json()["id"]
        assert updated.json()["reviewer_email"] == "alice@example.org"
        assert updated.json()["reviewer_name"] == "Alice"
        assert updated.json()["scores"][0] == {"key": "overall", "value": 5.0}

    @pytest.mark.asyncio
    async def test_list_with_summary(self, client, db, initialized):
        application = await add_application(db, "Ada")
        await submit(client, ALICE, application.id, 4)

        response = await client.get(
            f"{PREFIX}/reviews",
            params={"application_id": application.id, "phase": "application"},
            headers=BOB,
        )

        body = response.json()
        assert len(body["reviews"]) == 1
        assert body["summary"]["weighted_score"] == 4.0
        assert body["summary"]["missing_reviewers"] == ["bob@example.org"]

    @pytest.mark.asyncio
    async def test_score_out_of_range(self, client, db, initialized):
        application = await add_application(db, "Ada")

        response = await submit(client, ALICE, application.id, 9)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SCORE_OUT_OF_RANGE"

    @pytest.mark.asyncio
    async def test_duplicate_category_is_a_validation_error(self, client, db, initialized):
        application = await add_application(db, "Ada")

        response = await client.post(
            f"{PREFIX}/reviews",
            json={
                "application_id": application.id,
                "phase": "application",
                "scores": [{"key": "overall", "value": 3}, {"key": "overall", "value": 4}],
            },
            headers=ALICE,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_application(self, client, initialized):
        response = await submit(client, ALICE, 999, 3)
        assert response.status_code == 404


class TestRankings:
    @pytest.mark.asyncio
    async def test_live_ranking(self, client, reviewed):
        response = await client.get(
            f"{PREFIX}/rankings",
            params={"cycle_id": CYCLE_ID, "phase": "application", "track": "engineering"},
            headers=ALICE,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["mode"] == "live"
        assert [r["application_id"] for r in body["rankings"]] == reviewed
        assert [r["weighted_score"] for r in body["rankings"]] == [5.0, 4.0, 2.0]
        assert body["incomplete_admins"] == []

    @pytest.mark.asyncio
    async def test_live_requires_phase(self, client, initialized):
        response = await client.get(f"{PREFIX}/rankings", params={"cycle_id": CYCLE_ID}, headers=ALICE)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_finalized_before_cutoff(self, client, reviewed):
        response = await client.get(
            f"{PREFIX}/rankings",
            params={"cycle_id": CYCLE_ID, "phase": "application", "mode": "finalized"},
            headers=ALICE,
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_counts(self, client, reviewed):
        response = await client.get(
            f"{PREFIX}/rankings", params={"cycle_id": CYCLE_ID, "mode": "counts"}, headers=ALICE
        )
        assert response.json()["counts"] == {
            "application": 3,
            "interview_round1": 0,
            "interview_round2": 0,
            "accepted": 0,
        }

    @pytest.mark.asyncio
    async def test_completeness(self, client, db, reviewed):
        await add_admin(db, "carol@example.org", "Carol")

        response = await client.get(
            f"{PREFIX}/completeness",
            params={"cycle_id": CYCLE_ID, "phase": "application"},
            headers=ALICE,
        )

        body = response.json()
        assert body["can_finalize"] is False
        assert body["total_admins"] == 3
        assert body["incomplete_admins"] == [{"email": "carol@example.org", "reviewed": 0, "total": 3}]


class TestCutoffs:
    def cutoff(self, **extra):
        return {
            "cycle_id": CYCLE_ID,
            "phase": "application",
            "cutoff_criteria": {"type": "top_n", "top_n": 2},
            **extra,
        }

    @pytest.mark.asyncio
    async def test_preview(self, client, reviewed):
        response = await client.post(
            f"{PREFIX}/cutoffs/preview", json=self.cutoff(track="engineering"), headers=ALICE
        )

        body = response.json()
        assert body["advanced"] == reviewed[:2]
        assert body["rejected"] == reviewed[2:]
        assert body["can_finalize"] is True
        assert body["warning"] is None
        assert [r["proposed_decision"] for r in body["rankings"]] == ["advance", "advance", "reject"]

    @pytest.mark.asyncio
    async def test_apply_without_track_needs_confirmation(self, client, db, reviewed):
        response = await client.post(f"{PREFIX}/cutoffs", json=self.cutoff(), headers=ALICE)

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"confirm_all_tracks": False}
        assert (await reload(db, Application, reviewed[0])).stage == ApplicationStage.SUBMITTED

    @pytest.mark.asyncio
    async def test_apply_then_read_back(self, client, db, notifier, reviewed):
        response = await client.post(
            f"{PREFIX}/cutoffs",
            json=self.cutoff(confirm_all_tracks=True, send_emails=True),
            headers=ALICE,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["finalized"] is True
        assert body["warning"] is not None
        assert (body["emails_sent"], body["emails_failed"]) == (3, 0)
        assert len(notifier.sent) == 3
        assert (await reload(db, Application, reviewed[0])).stage == ApplicationStage.INTERVIEW_ROUND1
        assert (await reload(db, Application, reviewed[2])).stage == ApplicationStage.REJECTED

        state = await client.get(
            f"{PREFIX}/cutoffs", params={"cycle_id": CYCLE_ID, "phase": "application"}, headers=ALICE
        )
        assert state.json()["phase_status"] == "finalized"
        assert state.json()["cutoff_applied"] is True
        assert state.json()["completeness"]["total_applicants"] == 3
        assert [d["decision"] for d in state.json()["decisions"]] == ["advance", "advance", "reject"]

        frozen = await client.get(
            f"{PREFIX}/rankings",
            params={"cycle_id": CYCLE_ID, "phase": "application", "mode": "finalized"},
            headers=ALICE,
        )
        assert frozen.json()["mode"] == "finalized"
        assert [r["decision"] for r in frozen.json()["rankings"]] == ["advance", "advance", "reject"]

        locked = await submit(client, ALICE, reviewed[0], 1)
        assert locked.status_code == 409
        assert locked.json()["error"]["code"] == "PHASE_FINALIZED"

    @pytest.mark.asyncio
    async def test_incomplete_reviews_block_apply(self, client, db, reviewed):
        await add_admin(db, "carol@example.org", "Carol")

        blocked = await client.post(
            f"{PREFIX}/cutoffs", json=self.cutoff(track="engineering"), headers=ALICE
        )
        assert blocked.status_code == 409
        assert blocked.json()["error"]["code"] == "INCOMPLETE_REVIEWS"

        forced = await client.post(
            f"{PREFIX}/cutoffs",
            json=self.cutoff(track="engineering", force_finalize=True),
            headers=ALICE,
        )
        assert forced.status_code == 200
        assert forced.json()["forced"] is True

    @pytest.mark.asyncio
    async def test_revert_via_action(self, client, db, reviewed):
        await client.post(f"{PREFIX}/cutoffs", json=self.cutoff(track="engineering"), headers=ALICE)

        response = await client.put(
            f"{PREFIX}/phase-configs/action",
            json={
                "cycle_id": CYCLE_ID,
                "phase": "application",
                "track": "engineering",
                "action": "revert",
            },
            headers=ALICE,
        )

        assert response.status_code == 200
        assert response.json()["reverted_count"] == 3
        assert (await reload(db, Application, reviewed[0])).stage == ApplicationStage.SUBMITTED


class TestStageMoves:
    @pytest.mark.asyncio
    async def test_move(self, client, db, admins):
        application = await add_application(db, "Ada")

        response = await client.post(
            f"{PREFIX}/applications/{application.id}/stage",
            json={"stage": "Under Review", "reason": "Screened"},
            headers=ALICE,
        )

        assert response.status_code == 200
        assert response.json()["new_stage"] == "under_review"

    @pytest.mark.asyncio
    async def test_cutoff_stage_is_refused(self, client, db, admins):
        application = await add_application(db, "Ada")

        response = await client.post(
            f"{PREFIX}/applications/{application.id}/stage",
            json={"stage": "accepted"},
            headers=ALICE,
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STAGE_TRANSITION"
