"""
Recruitment review models.

Phase configurations, reviewer scores, cutoff decisions and frozen ranking
snapshots. Track-less phase configs are the cycle-wide default; a
track-specific row overrides it for that track.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Integer,
    Boolean,
    BigInteger,
    DateTime,
    ForeignKey,
    func,
    Text,
    JSON,
    Index,
    UniqueConstraint,
    text,
)
from database.engine import Base, BigIntPK, enum_type
from recruitment.enums import (
    ApplicationStage,
    CutoffAction,
    Decision,
    PhaseStatus,
    Recommendation,
    ReferralSignal,
    ReviewPhase,
    Track,
)
from recruitment.scoring import ScoreEntries, ScoringCategory
from core.utils.datetime import now
from datetime import datetime
from typing import Any


# ==================== Phase Config ===================== #
class PhaseConfig(Base):
    """
    Scoring setup and lifecycle state of one (cycle, phase[, track]).
    """

    __tablename__ = "phase_configs"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    phase: Mapped[ReviewPhase] = mapped_column(enum_type(ReviewPhase), nullable=False)
    track: Mapped[Track | None] = mapped_column(enum_type(Track), nullable=True)

    # Scoring
    scoring_categories: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    min_reviewers_required: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    use_z_score_normalization: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    referral_weights: Mapped[dict[str, float] | None] = mapped_column(JSON)
    interview_questions: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)

    # Lifecycle
    status: Mapped[PhaseStatus] = mapped_column(
        enum_type(PhaseStatus), nullable=False, default=PhaseStatus.NOT_STARTED
    )
    cutoff_applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cutoff_applied_by: Mapped[str | None] = mapped_column(String(255))
    cutoff_criteria: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finalized_by: Mapped[str | None] = mapped_column(String(255))
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    unlocked_by: Mapped[str | None] = mapped_column(String(255))

    # Optimistic concurrency guard for lifecycle writes
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("cycle_id", "phase", "track", name="uq_phase_configs_cycle_phase_track"),
        # NULL tracks are distinct under the unique constraint above
        Index(
            "uq_phase_configs_default",
            "cycle_id",
            "phase",
            unique=True,
            postgresql_where=text("track IS NULL"),
            sqlite_where=text("track IS NULL"),
        ),
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == PhaseStatus.FINALIZED

    @property
    def categories(self) -> list[ScoringCategory]:
        return [ScoringCategory.from_dict(c) for c in self.scoring_categories or []]


# ==================== Reviews ===================== #
class ApplicationReview(Base):
    """
    One reviewer's review of one applicant in one phase.
    """

    __tablename__ = "application_reviews"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False)
    phase: Mapped[ReviewPhase] = mapped_column(enum_type(ReviewPhase), nullable=False)
    track: Mapped[Track | None] = mapped_column(enum_type(Track))

    reviewer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    reviewer_name: Mapped[str | None] = mapped_column(String(255))

    # Ordered [{"key": ..., "value": number | null}] pairs
    scores: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    referral_signal: Mapped[ReferralSignal] = mapped_column(
        enum_type(ReferralSignal), nullable=False, default=ReferralSignal.NEUTRAL
    )
    recommendation: Mapped[Recommendation | None] = mapped_column(enum_type(Recommendation))
    notes: Mapped[str | None] = mapped_column(Text)
    question_notes: Mapped[dict[str, str] | None] = mapped_column(JSON)
    audio_url: Mapped[str | None] = mapped_column(String(1024))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        server_default=func.now(),
        onupdate=now,
    )

    __table_args__ = (
        UniqueConstraint(
            "application_id", "phase", "reviewer_email", name="uq_reviews_application_phase_reviewer"
        ),
        Index("idx_reviews_cycle_phase", "cycle_id", "phase"),
    )

    @property
    def score_entries(self) -> ScoreEntries:
        return [(entry["key"], entry.get("value")) for entry in self.scores or []]


# ==================== Cutoff Decisions ===================== #
class PhaseDecision(Base):
    """
    Cutoff outcome for one applicant, with the stage it had before the cutoff.
    """

    __tablename__ = "phase_decisions"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False)
    phase: Mapped[ReviewPhase] = mapped_column(enum_type(ReviewPhase), nullable=False)
    application_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    # Track filter of the cutoff that produced this decision (None = all tracks)
    track: Mapped[Track | None] = mapped_column(enum_type(Track))

    action: Mapped[CutoffAction] = mapped_column(enum_type(CutoffAction), nullable=False)
    decision: Mapped[Decision] = mapped_column(enum_type(Decision), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    previous_stage: Mapped[ApplicationStage] = mapped_column(
        enum_type(ApplicationStage), nullable=False
    )
    new_stage: Mapped[ApplicationStage] = mapped_column(
        enum_type(ApplicationStage), nullable=False
    )

    performed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "cycle_id", "phase", "application_id", name="uq_decisions_cycle_phase_application"
        ),
    )


# ==================== Ranking Snapshots ===================== #
class PhaseRankingSnapshot(Base):
    """
    Ranking frozen at the moment a cutoff was applied.
    """

    __tablename__ = "phase_ranking_snapshots"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    cycle_id: Mapped[str] = mapped_column(String(64), nullable=False)
    phase: Mapped[ReviewPhase] = mapped_column(enum_type(ReviewPhase), nullable=False)
    track: Mapped[Track | None] = mapped_column(enum_type(Track))

    rankings: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    cutoff_criteria: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    total_applicants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    advanced_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, server_default=func.now()
    )

    __table_args__ = (Index("idx_snapshots_cycle_phase", "cycle_id", "phase"),)
