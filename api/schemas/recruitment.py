"""Recruitment review API schemas."""

from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from recruitment.enums import (
    ApplicationStage,
    CutoffAction,
    CutoffType,
    PhaseAction,
    PhaseStatus,
    Recommendation,
    ReferralSignal,
    ReviewPhase,
    Track,
)
from api.schemas.common import TimestampMixin


# ==================== Phase Configs ===================== #
class ScoringCategorySchema(BaseModel):
    """One weighted scoring category."""

    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=255)
    weight: float = Field(..., gt=0, description="Relative weight; weights need not sum to 1")
    min_score: float = Field(default=1)
    max_score: float = Field(default=5)
    description: Optional[str] = None
    star_descriptions: Optional[dict[str, str]] = None


class ReferralWeightsSchema(BaseModel):
    advocate: float = 0.0
    oppose: float = Field(default=0.0, description="Added per deferral; usually negative")


class PhaseConfigResponse(TimestampMixin):
    """Schema for phase config response."""

    id: int
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    scoring_categories: list[ScoringCategorySchema]
    min_reviewers_required: int
    use_z_score_normalization: bool
    referral_weights: Optional[ReferralWeightsSchema] = None
    interview_questions: Optional[list[dict[str, Any]]] = None
    status: PhaseStatus
    cutoff_applied_at: Optional[datetime] = None
    cutoff_applied_by: Optional[str] = None
    cutoff_criteria: Optional[dict[str, Any]] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    unlocked_at: Optional[datetime] = None
    unlocked_by: Optional[str] = None
    version: int

    class Config:
        from_attributes = True


class PhaseConfigInitRequest(BaseModel):
    cycle_id: str = Field(..., min_length=1, max_length=64)


class PhaseConfigListResponse(BaseModel):
    cycle_id: str
    configs: list[PhaseConfigResponse]
    created: int = 0


class PhaseConfigUpdateRequest(BaseModel):
    """Editable fields of a phase config; omitted fields are left unchanged."""

    cycle_id: str = Field(..., min_length=1, max_length=64)
    phase: ReviewPhase
    track: Optional[Track] = None
    scoring_categories: Optional[list[ScoringCategorySchema]] = Field(None, min_length=1)
    min_reviewers_required: Optional[int] = Field(None, ge=1)
    use_z_score_normalization: Optional[bool] = None
    referral_weights: Optional[ReferralWeightsSchema] = None
    interview_questions: Optional[list[dict[str, Any]]] = None

    def editable_fields(self) -> dict[str, Any]:
        return self.model_dump(
            exclude={"cycle_id", "phase", "track"}, exclude_unset=True
        )


class PhaseActionRequest(BaseModel):
    cycle_id: str = Field(..., min_length=1, max_length=64)
    phase: ReviewPhase
    track: Optional[Track] = None
    action: PhaseAction
    force_finalize: bool = False


class PhaseActionResponse(BaseModel):
    success: bool
    action: PhaseAction
    config: PhaseConfigResponse
    reverted_count: Optional[int] = None


# ==================== Reviews ===================== #
class ScoreEntrySchema(BaseModel):
    key: str = Field(..., min_length=1)
    value: Optional[float] = None


class ReviewSubmitRequest(BaseModel):
    """
    Schema for submitting or updating a review.

    ``scores`` accepts ``[{"key": ..., "value": ...}]`` or a ``{key: value}`` map.
    """

    application_id: int
    phase: ReviewPhase
    scores: list[ScoreEntrySchema] = Field(default_factory=list)
    referral_signal: ReferralSignal = ReferralSignal.NEUTRAL
    recommendation: Optional[Recommendation] = None
    notes: Optional[str] = Field(None, max_length=10000)
    question_notes: Optional[dict[str, str]] = None
    audio_url: Optional[str] = Field(None, max_length=1024)

    @field_validator("scores", mode="before")
    @classmethod
    def scores_from_mapping(cls, v: Any) -> Any:
        """Accept the keyed-map form of scores."""
        if isinstance(v, dict):
            return [{"key": key, "value": value} for key, value in v.items()]
        return v

    @field_validator("scores")
    @classmethod
    def reject_duplicate_keys(cls, v: list[ScoreEntrySchema]) -> list[ScoreEntrySchema]:
        keys = [entry.key for entry in v]
        if len(keys) != len(set(keys)):
            raise ValueError("Each scoring category may appear only once")
        return v

    def score_pairs(self) -> list[tuple[str, Optional[float]]]:
        return [(entry.key, entry.value) for entry in self.scores]


class ReviewResponse(TimestampMixin):
    id: int
    application_id: int
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    reviewer_email: str
    reviewer_name: Optional[str] = None
    scores: list[ScoreEntrySchema]
    referral_signal: ReferralSignal
    recommendation: Optional[Recommendation] = None
    notes: Optional[str] = None
    question_notes: Optional[dict[str, str]] = None
    audio_url: Optional[str] = None

    class Config:
        from_attributes = True


class ReviewSummaryResponse(BaseModel):
    application_id: int
    phase: ReviewPhase
    review_count: int
    category_averages: dict[str, Optional[float]]
    weighted_score: Optional[float] = None
    referral_count: int
    neutral_count: int
    deferral_count: int
    recommendations: dict[str, int]
    reviewers: list[str]
    missing_reviewers: list[str]


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    summary: ReviewSummaryResponse


# ==================== Rankings ===================== #
class RankedApplicantSchema(BaseModel):
    application_id: int
    applicant_name: str
    applicant_email: Optional[str] = None
    track: Optional[str] = None
    stage: Optional[str] = None
    rank: int
    weighted_score: float
    average_score: float
    review_count: int
    referral_count: int
    neutral_count: int
    deferral_count: int
    recommendations: dict[str, int] = Field(default_factory=dict)
    decision: Optional[str] = None
    proposed_decision: Optional[str] = None


class ReviewerCompletionSchema(BaseModel):
    email: str
    name: Optional[str] = None
    reviewed: int
    total: int
    percentage: float


class CompletenessSchema(BaseModel):
    total_applicants: int
    applicants_with_reviews: int
    applicants_fully_reviewed: int
    min_reviewers_required: int
    reviewer_completion: list[ReviewerCompletionSchema]


class IncompleteAdminSchema(BaseModel):
    email: str
    reviewed: int
    total: int


class RankingsResponse(BaseModel):
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    mode: Literal["live", "finalized"]
    phase_status: PhaseStatus
    rankings: list[RankedApplicantSchema]
    completeness: Optional[CompletenessSchema] = None
    incomplete_admins: list[IncompleteAdminSchema] = Field(default_factory=list)
    cutoff_criteria: Optional[dict[str, Any]] = None
    snapshot_created_at: Optional[datetime] = None


class PhaseCountsResponse(BaseModel):
    cycle_id: str
    track: Optional[Track] = None
    counts: dict[str, int]


class CompletenessResponse(BaseModel):
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    completeness: CompletenessSchema
    incomplete_admins: list[IncompleteAdminSchema]
    total_admins: int
    can_finalize: bool


# ==================== Cutoffs ===================== #
class CutoffCriteriaSchema(BaseModel):
    type: CutoffType
    top_n: Optional[int] = Field(None, ge=0)
    min_score: Optional[float] = None


class ManualOverrideSchema(BaseModel):
    application_id: int
    action: CutoffAction
    reason: Optional[str] = Field(None, max_length=2000)


class CutoffPreviewRequest(BaseModel):
    cycle_id: str = Field(..., min_length=1, max_length=64)
    phase: ReviewPhase
    track: Optional[Track] = None
    cutoff_criteria: CutoffCriteriaSchema
    manual_overrides: list[ManualOverrideSchema] = Field(default_factory=list)


class CutoffApplyRequest(CutoffPreviewRequest):
    send_emails: bool = False
    finalize_phase: bool = True
    force_finalize: bool = False
    confirm_all_tracks: bool = Field(
        default=False,
        description="Required when no track is given: the cutoff then decides every track",
    )


class CutoffPreviewResponse(BaseModel):
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    criteria: dict[str, Any]
    advanced: list[int]
    rejected: list[int]
    advanced_count: int
    rejected_count: int
    unknown_overrides: list[int]
    rankings: list[RankedApplicantSchema]
    completeness: CompletenessSchema
    incomplete_admins: list[IncompleteAdminSchema]
    can_finalize: bool
    phase_status: PhaseStatus
    warning: Optional[str] = None


class CutoffApplyResponse(BaseModel):
    success: bool
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    advanced: list[int]
    rejected: list[int]
    decisions: dict[str, str]
    unknown_overrides: list[int]
    finalized: bool
    forced: bool
    emails_sent: int
    emails_failed: int
    emails_queued: int
    errors: list[str]
    warning: Optional[str] = None


class PhaseDecisionResponse(BaseModel):
    application_id: int
    phase: ReviewPhase
    track: Optional[Track] = None
    action: CutoffAction
    decision: str
    reason: Optional[str] = None
    previous_stage: ApplicationStage
    new_stage: ApplicationStage
    performed_by: str
    performed_at: datetime

    class Config:
        from_attributes = True


class CutoffStateResponse(BaseModel):
    cycle_id: str
    phase: ReviewPhase
    track: Optional[Track] = None
    phase_status: PhaseStatus
    cutoff_applied: bool
    cutoff_criteria: Optional[dict[str, Any]] = None
    cutoff_applied_at: Optional[datetime] = None
    cutoff_applied_by: Optional[str] = None
    decisions: list[PhaseDecisionResponse]
    completeness: CompletenessSchema
    incomplete_admins: list[IncompleteAdminSchema]


# ==================== Applications ===================== #
class StageMoveRequest(BaseModel):
    stage: str = Field(..., min_length=1, description="Target pipeline stage")
    reason: Optional[str] = Field(None, max_length=2000)


class StageMoveResponse(BaseModel):
    success: bool
    application_id: int
    old_stage: ApplicationStage
    new_stage: ApplicationStage
