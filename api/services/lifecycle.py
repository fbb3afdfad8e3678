"""
Phase lifecycle controller.

State machine of a (cycle, phase[, track]) config:

    not_started -> in_progress -> (cutoff applied) -> finalized
    finalized -> unlock -> in_progress
    finalized | cutoff applied -> revert -> in_progress

Every lifecycle write locks the config row (``SELECT ... FOR UPDATE``) and
is additionally guarded by the config's version counter, so two admins
racing to apply or finalize cannot both pass the preconditions. All
precondition checks run before the first mutation.

Finalizing the track-less default also finalizes its open track overrides,
and a cutoff never re-decides an applicant whose recorded decision belongs
to another finalized config.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.errors import (
    ConcurrentModificationError,
    IncompleteReviewsError,
    InvalidStageTransitionError,
    NotFoundError,
    PhaseFinalizedError,
    PhaseStateError,
    StageTransitionError,
)
from core.utils.datetime import now
from database.models.applications import Application
from database.models.audit import AuditAction
from database.models.recruitment import PhaseConfig, PhaseDecision, PhaseRankingSnapshot
from recruitment.cutoff import CutoffCriteria, ManualOverride, partition
from recruitment.enums import (
    ApplicationStage,
    CutoffAction,
    Decision,
    PhaseAction,
    PhaseStatus,
    ReviewPhase,
    Track,
)
from recruitment.stages import StageTrigger, can_transition, cutoff_target, transition
from api.services.audit import AuditSink
from api.services.notifications import DecisionNotice, NotificationCoordinator, NotificationReport
from api.services.phase_configs import copy_config, get_phase_config, list_track_overrides
from api.services.rankings import PhaseRanking, build_phase_ranking

logger = logging.getLogger(__name__)

ALL_TRACKS_WARNING = (
    "No track filter was set: this cutoff decides applicants of every track at once"
)


@dataclass
class StageMove:
    application: Application
    decision: Decision
    previous_stage: ApplicationStage
    target: ApplicationStage
    existing: Optional[PhaseDecision] = None
    reason: Optional[str] = None


def _target_id(cycle_id: str, phase: ReviewPhase, track: Optional[Track]) -> str:
    return f"{cycle_id}:{ReviewPhase(phase).value}:{Track(track).value if track else 'all'}"


class PhaseLifecycleController:
    """
    Runs lifecycle transitions and cutoffs for one request.

    Args:
        db: Request-scoped session; the controller owns its transactions
        audit: Audit sink called after every successful state change
        notifications: Coordinator for decision emails
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        audit: AuditSink,
        notifications: Optional[NotificationCoordinator] = None,
    ):
        self.db = db
        self.audit = audit
        self.notifications = notifications

    # ==================== Helpers ===================== #
    async def _lock(
        self,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        *,
        materialize: bool = False,
    ) -> PhaseConfig:
        """Lock the governing config; optionally split off a track override first."""
        config = await get_phase_config(self.db, cycle_id, phase, track, for_update=True)
        if config is None:
            raise NotFoundError(
                f"No {ReviewPhase(phase).value} config for cycle {cycle_id}",
                {"cycle_id": cycle_id, "phase": ReviewPhase(phase).value},
            )
        if materialize and track is not None and config.track is None and not config.is_finalized:
            config = copy_config(config, track)
            self.db.add(config)
            await self.db.flush()
        return config

    async def _commit(self, config: PhaseConfig) -> None:
        try:
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            raise ConcurrentModificationError(
                f"{config.phase.value} config for cycle {config.cycle_id} was changed by "
                f"another request; reload and retry"
            ) from exc

    @staticmethod
    def _require_open(config: PhaseConfig) -> None:
        if config.is_finalized:
            raise PhaseFinalizedError(
                f"{config.phase.value} is already finalized for cycle {config.cycle_id}",
                {"cycle_id": config.cycle_id, "phase": config.phase.value},
            )

    @staticmethod
    def _require_complete(ranking: PhaseRanking, force_finalize: bool) -> None:
        if ranking.incomplete_admins and not force_finalize:
            raise IncompleteReviewsError(ranking.incomplete_admins, len(ranking.admins))

    async def _require_decisions_open(self, ranking: PhaseRanking, config: PhaseConfig) -> None:
        """Refuse to re-decide applicants whose decision belongs to another, finalized config."""
        owners: dict[Optional[Track], Optional[PhaseConfig]] = {}
        locked = []
        for application_id in ranking.applications:
            record = ranking.decisions.get(application_id)
            if record is None:
                continue
            if record.track not in owners:
                owners[record.track] = await get_phase_config(
                    self.db, config.cycle_id, config.phase, record.track
                )
            owner = owners[record.track]
            if owner is not None and owner.id != config.id and owner.is_finalized:
                locked.append(
                    {
                        "application_id": application_id,
                        "track": record.track.value if record.track else None,
                    }
                )
        if locked:
            raise PhaseFinalizedError(
                f"{len(locked)} applicant(s) were decided by a finalized "
                f"{config.phase.value} cutoff; unlock that cutoff first",
                {"applications": locked},
            )

    async def _finalize_config(self, config: PhaseConfig, actor: str, at: datetime) -> list[str]:
        """
        Finalize a config. A track-less default takes its open track overrides
        with it; returns the tracks finalized that way.
        """
        config.status = PhaseStatus.FINALIZED
        config.finalized_at = at
        config.finalized_by = actor
        if config.track is not None:
            return []

        cascaded = []
        overrides = await list_track_overrides(
            self.db, config.cycle_id, config.phase, for_update=True
        )
        for override in overrides:
            if not override.is_finalized:
                override.status = PhaseStatus.FINALIZED
                override.finalized_at = at
                override.finalized_by = actor
                cascaded.append(override.track.value)
        return cascaded

    async def _reopen_overrides(self, config: PhaseConfig, actor: str, at: datetime) -> list[str]:
        """
        Reopen the finalized track overrides of a track-less default that have
        no cutoff of their own; returns their tracks.
        """
        reopened = []
        overrides = await list_track_overrides(
            self.db, config.cycle_id, config.phase, for_update=True
        )
        for override in overrides:
            if override.is_finalized and override.cutoff_applied_at is None:
                override.status = PhaseStatus.IN_PROGRESS
                override.unlocked_at = at
                override.unlocked_by = actor
                reopened.append(override.track.value)
        return reopened

    # ==================== Transitions ===================== #
    async def start(
        self, cycle_id: str, phase: ReviewPhase, track: Optional[Track], *, actor: str
    ) -> PhaseConfig:
        """Mark a phase in progress. Idempotent; refused once finalized."""
        config = await self._lock(cycle_id, phase, track, materialize=True)
        self._require_open(config)
        if config.status != PhaseStatus.IN_PROGRESS:
            config.status = PhaseStatus.IN_PROGRESS
            await self._commit(config)
            await self.audit.record(
                actor, AuditAction.PHASE_STARTED, "PhaseConfig", _target_id(cycle_id, phase, track)
            )
        else:
            await self.db.commit()
        return config

    async def preview_cutoff(
        self,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        criteria: CutoffCriteria,
        manual_overrides: Iterable[ManualOverride] = (),
    ) -> dict[str, Any]:
        """Compute what a cutoff would decide. Never writes."""
        ranking = await build_phase_ranking(self.db, cycle_id, phase, track)
        result = partition(ranking.rankings, criteria, manual_overrides)

        rankings = []
        for entry in ranking.rankings:
            row = entry.to_dict()
            row["proposed_decision"] = result.decisions[entry.application_id].value
            rankings.append(row)

        return {
            "cycle_id": cycle_id,
            "phase": ReviewPhase(phase).value,
            "track": Track(track).value if track else None,
            "criteria": criteria.to_dict(),
            "advanced": result.advanced,
            "rejected": result.rejected,
            "advanced_count": len(result.advanced),
            "rejected_count": len(result.rejected),
            "unknown_overrides": result.unknown_overrides,
            "rankings": rankings,
            "completeness": ranking.completeness.to_dict(),
            "incomplete_admins": ranking.incomplete_admins,
            "can_finalize": ranking.is_complete,
            "phase_status": ranking.config.status.value,
            "warning": ALL_TRACKS_WARNING if track is None else None,
        }

    def _plan_moves(self, phase: ReviewPhase, ranking: PhaseRanking, decisions, reasons) -> list[StageMove]:
        """Resolve and validate every stage move before anything is written."""
        moves = []
        refused = []
        for application_id, decision in decisions.items():
            application = ranking.applications[application_id]
            existing = ranking.decisions.get(application_id)
            # Re-applying starts from the stage recorded by the first cutoff
            if existing is not None and application.stage == existing.new_stage:
                previous = existing.previous_stage
            else:
                previous = application.stage
            target = cutoff_target(phase, decision.action)
            if not can_transition(previous, target, StageTrigger.CUTOFF):
                refused.append(
                    {"application_id": application_id, "from": previous.value, "to": target.value}
                )
                continue
            moves.append(
                StageMove(
                    application=application,
                    decision=decision,
                    previous_stage=previous,
                    target=target,
                    existing=existing,
                    reason=reasons.get(application_id),
                )
            )

        if refused:
            raise InvalidStageTransitionError(
                f"{len(refused)} applicant(s) cannot be moved by this cutoff; "
                f"override them or remove them from the pool",
                {"applications": refused},
            )
        return moves

    async def _apply_moves(
        self,
        moves: list[StageMove],
        *,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        actor: str,
    ) -> None:
        processed = 0
        performed_at = now()
        try:
            for move in moves:
                move.application.stage = move.target
                record = move.existing
                if record is None:
                    record = PhaseDecision(
                        cycle_id=cycle_id,
                        phase=ReviewPhase(phase),
                        application_id=move.application.id,
                    )
                    self.db.add(record)
                record.track = Track(track) if track else None
                record.action = move.decision.action
                record.decision = move.decision
                record.reason = move.reason
                record.previous_stage = move.previous_stage
                record.new_stage = move.target
                record.performed_by = actor
                record.performed_at = performed_at
                await self.db.flush()
                processed += 1
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                f"Stage batch for {ReviewPhase(phase).value} in cycle {cycle_id} failed "
                f"after {processed}/{len(moves)} applicants; rolled back",
                exc_info=True,
            )
            raise StageTransitionError(processed, len(moves)) from exc

    async def _replace_snapshot(
        self,
        ranking: PhaseRanking,
        decisions: dict[int, Decision],
        criteria: CutoffCriteria,
        *,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        actor: str,
    ) -> None:
        await self.db.execute(
            delete(PhaseRankingSnapshot).where(*self._snapshot_scope(cycle_id, phase, track))
        )
        rows = []
        for entry in ranking.rankings:
            row = entry.to_dict()
            row["decision"] = decisions[entry.application_id].value
            rows.append(row)
        advanced = sum(1 for d in decisions.values() if d.action == CutoffAction.ADVANCE)
        self.db.add(
            PhaseRankingSnapshot(
                cycle_id=cycle_id,
                phase=ReviewPhase(phase),
                track=Track(track) if track else None,
                rankings=rows,
                cutoff_criteria=criteria.to_dict(),
                total_applicants=len(rows),
                advanced_count=advanced,
                rejected_count=len(decisions) - advanced,
                created_by=actor,
            )
        )

    @staticmethod
    def _snapshot_scope(cycle_id: str, phase: ReviewPhase, track: Optional[Track]) -> list:
        scope = [
            PhaseRankingSnapshot.cycle_id == cycle_id,
            PhaseRankingSnapshot.phase == ReviewPhase(phase),
        ]
        if track is None:
            scope.append(PhaseRankingSnapshot.track.is_(None))
        else:
            scope.append(PhaseRankingSnapshot.track == Track(track))
        return scope

    async def apply_cutoff(
        self,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        criteria: CutoffCriteria,
        manual_overrides: Iterable[ManualOverride] = (),
        *,
        actor: str,
        send_emails: bool = False,
        finalize_after: bool = True,
        force_finalize: bool = False,
    ) -> dict[str, Any]:
        """
        Apply a cutoff: decide, move stages, record, optionally finalize and notify.

        Stage moves, decision records, the ranking snapshot and the status change
        commit in one transaction. Emails go out only after that commit and their
        failures are reported, never raised.

        Raises:
            NotFoundError: no config for the phase
            PhaseFinalizedError: the phase is already finalized
            IncompleteReviewsError: admins still owe reviews and force_finalize is off
            InvalidStageTransitionError: some decided applicant cannot make the move
            StageTransitionError: the stage batch failed and was rolled back
            ConcurrentModificationError: another request changed the config meanwhile
        """
        phase = ReviewPhase(phase)
        manual_overrides = list(manual_overrides)
        config = await self._lock(cycle_id, phase, track, materialize=True)
        self._require_open(config)

        ranking = await build_phase_ranking(self.db, cycle_id, phase, track, config=config)
        self._require_complete(ranking, force_finalize)
        await self._require_decisions_open(ranking, config)

        result = partition(ranking.rankings, criteria, manual_overrides)
        moves = self._plan_moves(phase, ranking, result.decisions, result.reasons)
        await self._apply_moves(moves, cycle_id=cycle_id, phase=phase, track=track, actor=actor)
        await self._replace_snapshot(
            ranking, result.decisions, criteria,
            cycle_id=cycle_id, phase=phase, track=track, actor=actor,
        )

        applied_at = now()
        config.cutoff_applied_at = applied_at
        config.cutoff_applied_by = actor
        config.cutoff_criteria = {
            **criteria.to_dict(),
            "manual_overrides": len(manual_overrides),
            "force_finalize": force_finalize,
        }
        cascaded = []
        if finalize_after:
            cascaded = await self._finalize_config(config, actor, applied_at)
        elif config.status == PhaseStatus.NOT_STARTED:
            config.status = PhaseStatus.IN_PROGRESS
        await self._commit(config)

        logger.info(
            f"Cutoff applied to {phase.value} in cycle {cycle_id} "
            f"(track={Track(track).value if track else 'all'}) by {actor}: "
            f"{len(result.advanced)} advanced, {len(result.rejected)} rejected, "
            f"finalized={finalize_after}"
        )

        report = None
        if send_emails:
            report = await self._notify(moves, cycle_id=cycle_id, phase=phase, actor=actor)

        meta = {
            "phase": phase.value,
            "track": Track(track).value if track else None,
            "criteria": criteria.to_dict(),
            "advanced": len(result.advanced),
            "rejected": len(result.rejected),
            "manual_overrides": len(manual_overrides),
            "finalized": finalize_after,
            "force_finalize": force_finalize,
            "emails_sent": report.sent if report else 0,
            "emails_failed": report.failed if report else 0,
        }
        if force_finalize and ranking.incomplete_admins:
            meta["skipped_completeness_check"] = ranking.incomplete_admins
        if cascaded:
            meta["tracks_finalized"] = cascaded
        await self.audit.record(
            actor, AuditAction.CUTOFF_APPLIED, "PhaseConfig", _target_id(cycle_id, phase, track), meta
        )

        return {
            "success": True,
            "cycle_id": cycle_id,
            "phase": phase.value,
            "track": Track(track).value if track else None,
            "advanced": result.advanced,
            "rejected": result.rejected,
            "decisions": {str(k): v.value for k, v in result.decisions.items()},
            "unknown_overrides": result.unknown_overrides,
            "finalized": finalize_after,
            "forced": bool(force_finalize and ranking.incomplete_admins),
            "emails_sent": report.sent if report else 0,
            "emails_failed": report.failed if report else 0,
            "emails_queued": report.queued if report else 0,
            "errors": report.errors if report else [],
            "warning": ALL_TRACKS_WARNING if track is None else None,
        }

    async def _notify(
        self, moves: list[StageMove], *, cycle_id: str, phase: ReviewPhase, actor: str
    ) -> NotificationReport:
        if self.notifications is None:
            logger.warning("Decision emails requested but no notifier is configured")
            return NotificationReport(
                failed=len(moves), errors=["Email delivery is not configured"]
            )
        notices = [
            DecisionNotice(
                application_id=move.application.id,
                action=move.decision.action,
                recipient_email=move.application.contact_email,
                applicant_name=move.application.display_name,
                track=move.application.track.value if move.application.track else None,
            )
            for move in moves
        ]
        return await self.notifications.notify_batch(
            notices, cycle_id=cycle_id, phase=phase, sent_by=actor
        )

    async def finalize(
        self,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        *,
        actor: str,
        force_finalize: bool = False,
    ) -> PhaseConfig:
        """
        Lock a phase's reviews and config.

        Re-checks the completeness gate independently of any earlier cutoff.
        """
        config = await self._lock(cycle_id, phase, track, materialize=True)
        self._require_open(config)
        ranking = await build_phase_ranking(self.db, cycle_id, phase, track, config=config)
        self._require_complete(ranking, force_finalize)

        cascaded = await self._finalize_config(config, actor, now())
        await self._commit(config)

        meta = {"force_finalize": force_finalize}
        if force_finalize and ranking.incomplete_admins:
            meta["skipped_completeness_check"] = ranking.incomplete_admins
        if cascaded:
            meta["tracks_finalized"] = cascaded
        logger.info(f"Finalized {ReviewPhase(phase).value} in cycle {cycle_id} by {actor}")
        await self.audit.record(
            actor, AuditAction.PHASE_FINALIZED, "PhaseConfig", _target_id(cycle_id, phase, track), meta
        )
        return config

    async def unlock(
        self, cycle_id: str, phase: ReviewPhase, track: Optional[Track], *, actor: str
    ) -> PhaseConfig:
        """Reopen a finalized phase for edits. Stage moves are left in place."""
        config = await self._lock(cycle_id, phase, track)
        if not config.is_finalized:
            raise PhaseStateError(
                f"{ReviewPhase(phase).value} is not finalized for cycle {cycle_id}",
                {"status": config.status.value},
            )
        unlocked_at = now()
        config.status = PhaseStatus.IN_PROGRESS
        config.unlocked_at = unlocked_at
        config.unlocked_by = actor
        reopened = []
        if track is None:
            reopened = await self._reopen_overrides(config, actor, unlocked_at)
        await self._commit(config)

        logger.info(f"Unlocked {ReviewPhase(phase).value} in cycle {cycle_id} by {actor}")
        await self.audit.record(
            actor,
            AuditAction.PHASE_UNLOCKED,
            "PhaseConfig",
            _target_id(cycle_id, phase, track),
            {"tracks_unlocked": reopened} if reopened else None,
        )
        return config

    async def revert(
        self, cycle_id: str, phase: ReviewPhase, track: Optional[Track], *, actor: str
    ) -> tuple[PhaseConfig, int]:
        """
        Undo the phase's cutoff and unlock it.

        Applicants still sitting in the stage the cutoff put them in go back to
        their recorded pre-cutoff stage; applicants moved since are left alone.

        Returns:
            The config and the number of stage changes undone
        """
        phase = ReviewPhase(phase)
        config = await self._lock(cycle_id, phase, track)
        if not config.is_finalized and config.cutoff_applied_at is None:
            raise PhaseStateError(
                f"{phase.value} has no applied cutoff to revert for cycle {cycle_id}",
                {"status": config.status.value},
            )

        stmt = select(PhaseDecision).where(
            PhaseDecision.cycle_id == cycle_id, PhaseDecision.phase == phase
        )
        if track is None:
            stmt = stmt.where(PhaseDecision.track.is_(None))
        else:
            stmt = stmt.where(PhaseDecision.track == Track(track))
        decisions = list((await self.db.execute(stmt.order_by(PhaseDecision.id))).scalars().all())

        reverted = 0
        processed = 0
        try:
            for record in decisions:
                application = await self.db.get(Application, record.application_id)
                if application is not None and application.stage == record.new_stage:
                    if record.previous_stage != record.new_stage:
                        application.stage = transition(
                            application.stage, record.previous_stage, StageTrigger.REVERT
                        )
                        reverted += 1
                elif application is not None:
                    logger.warning(
                        f"Not reverting application {application.id}: stage is "
                        f"{application.stage.value}, cutoff set {record.new_stage.value}"
                    )
                await self.db.delete(record)
                await self.db.flush()
                processed += 1
            await self.db.execute(
                delete(PhaseRankingSnapshot).where(*self._snapshot_scope(cycle_id, phase, track))
            )
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                f"Revert of {phase.value} in cycle {cycle_id} failed after "
                f"{processed}/{len(decisions)} decisions; rolled back",
                exc_info=True,
            )
            raise StageTransitionError(processed, len(decisions)) from exc

        was_finalized = config.is_finalized
        config.status = PhaseStatus.IN_PROGRESS
        config.cutoff_applied_at = None
        config.cutoff_applied_by = None
        config.cutoff_criteria = None
        reopened = []
        if was_finalized:
            unlocked_at = now()
            config.unlocked_at = unlocked_at
            config.unlocked_by = actor
            if track is None:
                reopened = await self._reopen_overrides(config, actor, unlocked_at)
        await self._commit(config)

        meta = {
            "reverted": reverted,
            "decisions_removed": len(decisions),
            "was_finalized": was_finalized,
        }
        if reopened:
            meta["tracks_unlocked"] = reopened
        logger.info(
            f"Reverted {phase.value} cutoff in cycle {cycle_id} by {actor}: "
            f"{reverted} applicant(s) restored"
        )
        await self.audit.record(
            actor,
            AuditAction.PHASE_REVERTED,
            "PhaseConfig",
            _target_id(cycle_id, phase, track),
            meta,
        )
        return config, reverted

    async def perform_action(
        self,
        action: PhaseAction,
        cycle_id: str,
        phase: ReviewPhase,
        track: Optional[Track],
        *,
        actor: str,
        force_finalize: bool = False,
    ) -> dict[str, Any]:
        """Dispatch a ``start|finalize|unlock|revert`` request."""
        action = PhaseAction(action)
        reverted = None
        if action == PhaseAction.START:
            config = await self.start(cycle_id, phase, track, actor=actor)
        elif action == PhaseAction.FINALIZE:
            config = await self.finalize(
                cycle_id, phase, track, actor=actor, force_finalize=force_finalize
            )
        elif action == PhaseAction.UNLOCK:
            config = await self.unlock(cycle_id, phase, track, actor=actor)
        else:
            config, reverted = await self.revert(cycle_id, phase, track, actor=actor)
        return {"success": True, "action": action.value, "config": config, "reverted_count": reverted}
