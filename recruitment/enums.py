from enum import Enum as PyEnum


# ==================== Phase Enums ===================== #
class ReviewPhase(str, PyEnum):
    """Review phases of a recruitment cycle, in pipeline order."""

    APPLICATION = "application"
    INTERVIEW_ROUND1 = "interview_round1"
    INTERVIEW_ROUND2 = "interview_round2"

    @property
    def label(self) -> str:
        return PHASE_LABELS[self]


class PhaseStatus(str, PyEnum):
    """Lifecycle status of a phase configuration."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINALIZED = "finalized"


class PhaseAction(str, PyEnum):
    """Operator actions on a phase configuration."""

    START = "start"
    FINALIZE = "finalize"
    UNLOCK = "unlock"
    REVERT = "revert"


class Track(str, PyEnum):
    """Applicant tracks. ``both`` matches every track filter."""

    BUSINESS = "business"
    ENGINEERING = "engineering"
    AI_INVESTMENT_FUND = "ai_investment_fund"
    AI_ENERGY_EFFICIENCY = "ai_energy_efficiency"
    BOTH = "both"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


# ==================== Review Enums ===================== #
class ReferralSignal(str, PyEnum):
    """Qualitative signal a reviewer attaches to an applicant."""

    REFERRAL = "referral"
    NEUTRAL = "neutral"
    DEFERRAL = "deferral"


class Recommendation(str, PyEnum):
    """Reviewer recommendation."""

    ADVANCE = "advance"
    HOLD = "hold"
    REJECT = "reject"


# ==================== Cutoff Enums ===================== #
class CutoffType(str, PyEnum):
    """Rule used to partition a ranking."""

    TOP_N = "top_n"
    MIN_SCORE = "min_score"
    MANUAL = "manual"


class CutoffAction(str, PyEnum):
    """Outcome of a cutoff for one applicant."""

    ADVANCE = "advance"
    REJECT = "reject"


class Decision(str, PyEnum):
    """Recorded decision, distinguishing rule outcomes from overrides."""

    ADVANCE = "advance"
    REJECT = "reject"
    MANUAL_ADVANCE = "manual_advance"
    MANUAL_REJECT = "manual_reject"

    @property
    def action(self) -> CutoffAction:
        if self in (Decision.ADVANCE, Decision.MANUAL_ADVANCE):
            return CutoffAction.ADVANCE
        return CutoffAction.REJECT

    @property
    def is_manual(self) -> bool:
        return self in (Decision.MANUAL_ADVANCE, Decision.MANUAL_REJECT)

    @classmethod
    def for_action(cls, action: CutoffAction, manual: bool = False) -> "Decision":
        if action == CutoffAction.ADVANCE:
            return cls.MANUAL_ADVANCE if manual else cls.ADVANCE
        return cls.MANUAL_REJECT if manual else cls.REJECT


# =================== Application Stage Enum ==================== #
class ApplicationStage(str, PyEnum):
    """Canonical stages of a membership application."""

    NOT_STARTED = "not_started"
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    COFFEE_CHAT = "coffee_chat"
    INTERVIEW_ROUND1 = "interview_round1"
    INTERVIEW_ROUND2 = "interview_round2"
    FINAL_REVIEW = "final_review"
    WAITLISTED = "waitlisted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def try_parse(cls, value: str) -> "ApplicationStage | None":
        if value is None:
            return None
        try:
            normalized = str(value).strip().lower().replace(" ", "_").replace("-", "_")
            return cls(normalized)
        except ValueError:
            return None


# Helpers
PHASE_LABELS = {
    ReviewPhase.APPLICATION: "Application Review",
    ReviewPhase.INTERVIEW_ROUND1: "Round 1 Interview",
    ReviewPhase.INTERVIEW_ROUND2: "Round 2 Interview",
}

TERMINAL_STAGES = frozenset(
    {
        ApplicationStage.ACCEPTED,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
    }
)
