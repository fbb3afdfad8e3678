"""
Application stage machine.

Stages run linearly from ``not_started`` to ``final_review`` and branch into
``accepted``, ``rejected`` or ``waitlisted``. Who may cause a move depends on
the trigger:

- ``cutoff``: the interview rounds, ``accepted`` and ``rejected`` are only
  reachable through a cutoff decision.
- ``admin``: forward pre-review steps, the post-interview holding stages and
  ``withdrawn`` (from any non-terminal stage).
- ``revert``: restores a recorded pre-cutoff stage, from anywhere.

Moving an application to the stage it already holds is always a no-op.
"""

from enum import Enum as PyEnum

from core.errors import InvalidStageTransitionError
from recruitment.enums import ApplicationStage, CutoffAction, ReviewPhase


class StageTrigger(str, PyEnum):
    CUTOFF = "cutoff"
    ADMIN = "admin"
    REVERT = "revert"


S = ApplicationStage

ADMIN_TRANSITIONS = {
    S.NOT_STARTED: {S.DRAFT},
    S.DRAFT: {S.SUBMITTED},
    S.SUBMITTED: {S.UNDER_REVIEW},
    S.UNDER_REVIEW: {S.COFFEE_CHAT},
    S.INTERVIEW_ROUND2: {S.FINAL_REVIEW},
    S.FINAL_REVIEW: {S.WAITLISTED},
}

CUTOFF_TARGETS = frozenset({S.INTERVIEW_ROUND1, S.INTERVIEW_ROUND2, S.ACCEPTED, S.REJECTED})

ADVANCE_TARGETS = {
    ReviewPhase.APPLICATION: S.INTERVIEW_ROUND1,
    ReviewPhase.INTERVIEW_ROUND1: S.INTERVIEW_ROUND2,
    ReviewPhase.INTERVIEW_ROUND2: S.ACCEPTED,
}

ELIGIBLE_STAGES = {
    ReviewPhase.APPLICATION: frozenset({S.SUBMITTED, S.UNDER_REVIEW, S.COFFEE_CHAT}),
    ReviewPhase.INTERVIEW_ROUND1: frozenset({S.INTERVIEW_ROUND1}),
    ReviewPhase.INTERVIEW_ROUND2: frozenset({S.INTERVIEW_ROUND2, S.FINAL_REVIEW, S.WAITLISTED}),
}


def cutoff_target(phase: ReviewPhase, action: CutoffAction) -> ApplicationStage:
    """Stage an applicant moves to when decided at ``phase``."""
    if CutoffAction(action) == CutoffAction.REJECT:
        return S.REJECTED
    return ADVANCE_TARGETS[ReviewPhase(phase)]


def eligible_stages(phase: ReviewPhase) -> frozenset:
    """Stages whose applicants form a phase's review pool."""
    return ELIGIBLE_STAGES[ReviewPhase(phase)]


def can_transition(current: ApplicationStage, target: ApplicationStage, trigger: StageTrigger) -> bool:
    current, target, trigger = S(current), S(target), StageTrigger(trigger)
    if current == target:
        return True
    if trigger == StageTrigger.REVERT:
        return True
    if current.is_terminal():
        return False
    if trigger == StageTrigger.CUTOFF:
        return target in CUTOFF_TARGETS
    if target == S.WITHDRAWN:
        return True
    return target in ADMIN_TRANSITIONS.get(current, set())


def transition(current: ApplicationStage, target: ApplicationStage, trigger: StageTrigger) -> ApplicationStage:
    """
    Validate a stage move.

    Returns:
        The target stage

    Raises:
        InvalidStageTransitionError: when the trigger may not cause this move
    """
    if not can_transition(current, target, trigger):
        raise InvalidStageTransitionError(
            f"Cannot move application from {S(current).value} to {S(target).value} "
            f"via {StageTrigger(trigger).value}",
            {"from": S(current).value, "to": S(target).value, "trigger": StageTrigger(trigger).value},
        )
    return S(target)
