"""
Recruitment review engine.

Pure scoring, ranking, cutoff, completeness and stage-machine logic with no
persistence or transport dependencies.
"""

from recruitment.enums import (
    ApplicationStage,
    CutoffAction,
    CutoffType,
    Decision,
    PhaseAction,
    PhaseStatus,
    Recommendation,
    ReferralSignal,
    ReviewPhase,
    Track,
)
from recruitment.scoring import (
    ScoringCategory,
    default_categories,
    validate_categories,
    validate_scores,
    weighted_score,
)
from recruitment.completeness import PhaseCompleteness, compute_completeness, find_incomplete_reviewers
from recruitment.ranking import ApplicantRecord, RankedApplicant, ReferralWeights, ReviewRecord, rank_applicants
from recruitment.cutoff import CutoffCriteria, CutoffPartition, ManualOverride, partition
from recruitment.stages import StageTrigger, can_transition, cutoff_target, eligible_stages, transition

__all__ = [
    "ApplicationStage",
    "CutoffAction",
    "CutoffType",
    "Decision",
    "PhaseAction",
    "PhaseStatus",
    "Recommendation",
    "ReferralSignal",
    "ReviewPhase",
    "Track",
    "ScoringCategory",
    "default_categories",
    "validate_categories",
    "validate_scores",
    "weighted_score",
    "PhaseCompleteness",
    "compute_completeness",
    "find_incomplete_reviewers",
    "ApplicantRecord",
    "RankedApplicant",
    "ReferralWeights",
    "ReviewRecord",
    "rank_applicants",
    "CutoffCriteria",
    "CutoffPartition",
    "ManualOverride",
    "partition",
    "StageTrigger",
    "can_transition",
    "cutoff_target",
    "eligible_stages",
    "transition",
]
