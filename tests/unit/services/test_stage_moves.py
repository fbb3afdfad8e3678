"""Tests for admin-driven application stage moves."""

import pytest
from sqlalchemy import select

from core.errors import InvalidStageTransitionError, NotFoundError, ValidationError
from database.models.applications import Application
from database.models.audit import AuditAction, AuditLog
from recruitment.enums import ApplicationStage
from api.services.applications import move_application_stage
from tests.helpers import add_application, reload


class TestMoveApplicationStage:
    @pytest.mark.asyncio
    async def test_moves_and_audits(self, db, audit):
        application = await add_application(db, "Ada Lovelace")

        result = await move_application_stage(
            db,
            application.id,
            "Under Review",
            reason="Screened",
            moved_by="admin@example.org",
            audit=audit,
        )

        assert result == {
            "success": True,
            "application_id": application.id,
            "old_stage": "submitted",
            "new_stage": "under_review",
        }
        assert (await reload(db, Application, application.id)).stage == ApplicationStage.UNDER_REVIEW

        [entry] = (await db.execute(select(AuditLog))).scalars().all()
        assert entry.action == AuditAction.APPLICATION_STAGE_CHANGED
        assert entry.actor_email == "admin@example.org"
        assert entry.target_id == str(application.id)
        assert entry.meta == {"old_stage": "submitted", "new_stage": "under_review", "reason": "Screened"}

    @pytest.mark.asyncio
    async def test_same_stage_is_not_audited(self, db, audit):
        application = await add_application(db, "Ada Lovelace")

        await move_application_stage(
            db, application.id, "submitted", moved_by="admin@example.org", audit=audit
        )

        assert (await db.execute(select(AuditLog))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_withdraw(self, db):
        application = await add_application(
            db, "Ada Lovelace", stage=ApplicationStage.INTERVIEW_ROUND1
        )

        result = await move_application_stage(
            db, application.id, "withdrawn", moved_by="admin@example.org"
        )
        assert result["new_stage"] == "withdrawn"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["interview_round1", "accepted", "rejected"])
    async def test_cutoff_stages_are_refused(self, db, target):
        application = await add_application(db, "Ada Lovelace")
        application_id = application.id

        with pytest.raises(InvalidStageTransitionError):
            await move_application_stage(db, application_id, target, moved_by="admin@example.org")
        await db.rollback()

        assert (await reload(db, Application, application_id)).stage == ApplicationStage.SUBMITTED

    @pytest.mark.asyncio
    async def test_unknown_stage(self, db):
        application = await add_application(db, "Ada Lovelace")

        with pytest.raises(ValidationError) as exc_info:
            await move_application_stage(db, application.id, "promoted", moved_by="admin@example.org")
        assert "final_review" in exc_info.value.details["allowed"]

    @pytest.mark.asyncio
    async def test_unknown_application(self, db):
        with pytest.raises(NotFoundError):
            await move_application_stage(db, 404, "under_review", moved_by="admin@example.org")
