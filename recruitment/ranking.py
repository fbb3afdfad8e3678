"""
Ranking engine.

Aggregates every review of an applicant within a phase into one weighted
score and orders the pool deterministically:

1. ``weighted_score`` descending
2. ``referral_count - deferral_count`` descending
3. ``applicant_name`` ascending (case-insensitive)
4. ``application_id`` ascending

With z-score normalization enabled, each reviewer's per-applicant scores are
standardized against that reviewer's own mean and (population) standard
deviation, then mapped back onto the phase scale as ``center + z * spread``
(``3 + z`` on a 1-5 scale) and clamped to the scale bounds.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping, Optional, Sequence

from recruitment.enums import Decision, Recommendation, ReferralSignal
from recruitment.scoring import ScoreEntries, ScoringCategory, score_scale, weighted_score

SCORE_PRECISION = 6


@dataclass
class ReviewRecord:
    """Engine view of one stored review."""

    application_id: Hashable
    reviewer_email: str
    scores: ScoreEntries
    referral_signal: ReferralSignal = ReferralSignal.NEUTRAL
    recommendation: Optional[Recommendation] = None
    reviewer_name: Optional[str] = None


@dataclass
class ApplicantRecord:
    """Engine view of one applicant in the pool."""

    application_id: Hashable
    applicant_name: str
    applicant_email: Optional[str]
    track: Optional[str]
    stage: Optional[str] = None


@dataclass
class ReferralWeights:
    """Bonus added per referral and per deferral (usually negative)."""

    advocate: float = 0.0
    oppose: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["ReferralWeights"]:
        if not data:
            return None
        return cls(
            advocate=float(data.get("advocate", 0.0)),
            oppose=float(data.get("oppose", 0.0)),
        )


@dataclass
class RankedApplicant:
    application_id: Hashable
    applicant_name: str
    applicant_email: Optional[str]
    track: Optional[str]
    rank: int
    weighted_score: float
    average_score: float
    review_count: int
    referral_count: int
    neutral_count: int
    deferral_count: int
    recommendations: dict[str, int] = field(default_factory=dict)
    decision: Optional[Decision] = None
    stage: Optional[str] = None

    @property
    def net_referrals(self) -> int:
        return self.referral_count - self.deferral_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "applicant_name": self.applicant_name,
            "applicant_email": self.applicant_email,
            "track": self.track,
            "stage": self.stage,
            "rank": self.rank,
            "weighted_score": round(self.weighted_score, 2),
            "average_score": round(self.average_score, 2),
            "review_count": self.review_count,
            "referral_count": self.referral_count,
            "neutral_count": self.neutral_count,
            "deferral_count": self.deferral_count,
            "recommendations": dict(self.recommendations),
            "decision": self.decision.value if self.decision else None,
        }


def _id_sort_key(application_id: Hashable) -> tuple:
    if isinstance(application_id, int):
        return (0, application_id, "")
    return (1, 0, str(application_id))


def _reviewer_baselines(
    raw_scores: Mapping[tuple[str, Hashable], float],
) -> dict[str, tuple[float, float]]:
    """Mean and population stddev per reviewer with at least two scored applicants."""
    by_reviewer: dict[str, list[float]] = defaultdict(list)
    for (reviewer, _), score in raw_scores.items():
        by_reviewer[reviewer].append(score)

    baselines = {}
    for reviewer, scores in by_reviewer.items():
        if len(scores) < 2:
            continue
        stdev = statistics.pstdev(scores)
        if stdev > 0:
            baselines[reviewer] = (statistics.fmean(scores), stdev)
    return baselines


def rank_applicants(
    applicants: Iterable[ApplicantRecord],
    reviews: Iterable[ReviewRecord],
    categories: Sequence[ScoringCategory],
    *,
    use_z_score: bool = False,
    referral_weights: Optional[ReferralWeights] = None,
    decisions: Optional[Mapping[Hashable, Decision]] = None,
) -> list[RankedApplicant]:
    """
    Rank an applicant pool from its reviews.

    ``reviews`` may include reviews of applicants outside ``applicants``
    (other tracks, withdrawn applicants). They still feed each reviewer's
    normalization baseline but produce no ranking entry.

    Args:
        applicants: The pool to rank; every member appears in the output
        reviews: All reviews of the phase
        categories: Governing scoring categories (weights)
        use_z_score: Normalize per reviewer before averaging
        referral_weights: Optional referral/deferral bonus on the weighted score
        decisions: Recorded cutoff decisions by application id

    Returns:
        Applicants ordered by rank, ranks assigned 1..N
    """
    decisions = decisions or {}
    reviews = list(reviews)

    raw_scores: dict[tuple[str, Hashable], float] = {}
    reviews_of: dict[Hashable, list[ReviewRecord]] = defaultdict(list)
    for review in reviews:
        email = review.reviewer_email.strip().lower()
        reviews_of[review.application_id].append(review)
        score = weighted_score(categories, review.scores)
        if score is not None:
            raw_scores[(email, review.application_id)] = score

    baselines = _reviewer_baselines(raw_scores) if use_z_score else {}
    low, high = score_scale(categories)
    center = (low + high) / 2
    spread = (high - low) / 4

    ranked = []
    for applicant in applicants:
        own_reviews = reviews_of.get(applicant.application_id, [])
        raw = []
        adjusted = []
        signals = {signal: 0 for signal in ReferralSignal}
        recommendations = {rec.value: 0 for rec in Recommendation}

        for review in own_reviews:
            signals[ReferralSignal(review.referral_signal)] += 1
            if review.recommendation is not None:
                recommendations[Recommendation(review.recommendation).value] += 1

            email = review.reviewer_email.strip().lower()
            score = raw_scores.get((email, applicant.application_id))
            if score is None:
                continue
            raw.append(score)
            if email in baselines:
                mean, stdev = baselines[email]
                z = (score - mean) / stdev
                adjusted.append(min(high, max(low, center + z * spread)))
            else:
                adjusted.append(score)

        average = statistics.fmean(raw) if raw else 0.0
        weighted = statistics.fmean(adjusted) if adjusted else 0.0
        if referral_weights and adjusted:
            weighted += (
                referral_weights.advocate * signals[ReferralSignal.REFERRAL]
                + referral_weights.oppose * signals[ReferralSignal.DEFERRAL]
            )

        ranked.append(
            RankedApplicant(
                application_id=applicant.application_id,
                applicant_name=applicant.applicant_name,
                applicant_email=applicant.applicant_email,
                track=applicant.track,
                stage=applicant.stage,
                rank=0,
                # equal scores reached through different summation orders must tie
                weighted_score=round(weighted, SCORE_PRECISION),
                average_score=round(average, SCORE_PRECISION),
                review_count=len(own_reviews),
                referral_count=signals[ReferralSignal.REFERRAL],
                neutral_count=signals[ReferralSignal.NEUTRAL],
                deferral_count=signals[ReferralSignal.DEFERRAL],
                recommendations=recommendations,
                decision=decisions.get(applicant.application_id),
            )
        )

    ranked.sort(
        key=lambda r: (
            -r.weighted_score,
            -r.net_referrals,
            (r.applicant_name or "").casefold(),
            _id_sort_key(r.application_id),
        )
    )
    for position, entry in enumerate(ranked, start=1):
        entry.rank = position
    return ranked
