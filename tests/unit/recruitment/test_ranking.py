"""Tests for the ranking engine."""

import pytest

from recruitment.enums import Decision, Recommendation, ReferralSignal
from recruitment.ranking import ApplicantRecord, ReferralWeights, ReviewRecord, rank_applicants
from recruitment.scoring import ScoringCategory

OVERALL_FIT = [
    ScoringCategory(key="overall", label="Overall", weight=1.5),
    ScoringCategory(key="fit", label="Fit", weight=1.0),
]
SINGLE = [ScoringCategory(key="overall", label="Overall", weight=1.0)]


def applicant(app_id, name):
    return ApplicantRecord(
        application_id=app_id, applicant_name=name, applicant_email=None, track="engineering"
    )


def review(app_id, reviewer, *, signal=ReferralSignal.NEUTRAL, recommendation=None, **scores):
    return ReviewRecord(
        application_id=app_id,
        reviewer_email=reviewer,
        scores=list(scores.items()),
        referral_signal=signal,
        recommendation=recommendation,
    )


class TestWeightedAggregation:
    def test_mean_of_per_reviewer_weighted_scores(self):
        reviews = [
            review(1, "a@example.org", overall=5, fit=4),  # 4.6
            review(1, "b@example.org", overall=3, fit=3),  # 3.0
            review(1, "c@example.org", overall=4, fit=5),  # 4.4
        ]
        [entry] = rank_applicants([applicant(1, "Ada")], reviews, OVERALL_FIT)

        assert entry.weighted_score == pytest.approx(4.0)
        assert entry.average_score == pytest.approx(4.0)
        assert entry.review_count == 3
        assert entry.rank == 1

    def test_unscored_reviews_count_but_do_not_score(self):
        reviews = [
            review(1, "a@example.org", overall=4),
            review(1, "b@example.org", overall=None, fit=None),
        ]
        [entry] = rank_applicants([applicant(1, "Ada")], reviews, OVERALL_FIT)

        assert entry.weighted_score == pytest.approx(4.0)
        assert entry.review_count == 2

    def test_applicant_without_reviews_ranks_last_with_zero(self):
        reviews = [review(1, "a@example.org", overall=1)]
        ranked = rank_applicants([applicant(2, "Aaron"), applicant(1, "Zed")], reviews, SINGLE)

        assert [r.application_id for r in ranked] == [1, 2]
        assert ranked[1].weighted_score == 0.0
        assert ranked[1].review_count == 0

    def test_signal_and_recommendation_tallies(self):
        reviews = [
            review(1, "a@example.org", signal=ReferralSignal.REFERRAL,
                   recommendation=Recommendation.ADVANCE, overall=4),
            review(1, "b@example.org", signal=ReferralSignal.DEFERRAL,
                   recommendation=Recommendation.HOLD, overall=4),
            review(1, "c@example.org", overall=4),
        ]
        [entry] = rank_applicants([applicant(1, "Ada")], reviews, SINGLE)

        assert (entry.referral_count, entry.neutral_count, entry.deferral_count) == (1, 1, 1)
        assert entry.recommendations == {"advance": 1, "hold": 1, "reject": 0}

    def test_reviews_outside_the_pool_produce_no_entry(self):
        reviews = [review(1, "a@example.org", overall=4), review(99, "a@example.org", overall=2)]
        ranked = rank_applicants([applicant(1, "Ada")], reviews, SINGLE)
        assert [r.application_id for r in ranked] == [1]


class TestOrdering:
    def test_score_descending(self):
        reviews = [
            review(1, "a@example.org", overall=2),
            review(2, "a@example.org", overall=5),
            review(3, "a@example.org", overall=3),
        ]
        ranked = rank_applicants(
            [applicant(1, "A"), applicant(2, "B"), applicant(3, "C")], reviews, SINGLE
        )

        assert [r.application_id for r in ranked] == [2, 3, 1]
        assert [r.rank for r in ranked] == [1, 2, 3]

    def test_net_referrals_break_score_ties(self):
        reviews = [
            review(1, "a@example.org", overall=4),
            review(2, "a@example.org", signal=ReferralSignal.REFERRAL, overall=4),
        ]
        ranked = rank_applicants([applicant(1, "Ada"), applicant(2, "Zoe")], reviews, SINGLE)
        assert [r.application_id for r in ranked] == [2, 1]

    def test_name_then_id_break_remaining_ties(self):
        reviews = [review(i, "a@example.org", overall=3) for i in (1, 2, 3)]
        ranked = rank_applicants(
            [applicant(3, "bea"), applicant(2, "Bea"), applicant(1, "Al")], reviews, SINGLE
        )
        assert [r.application_id for r in ranked] == [1, 2, 3]

    def test_order_is_independent_of_input_order(self):
        applicants = [applicant(i, f"App {i}") for i in range(1, 6)]
        reviews = [review(i, "a@example.org", overall=1 + i % 3) for i in range(1, 6)]

        forward = rank_applicants(applicants, reviews, SINGLE)
        backward = rank_applicants(list(reversed(applicants)), list(reversed(reviews)), SINGLE)

        assert [r.application_id for r in forward] == [r.application_id for r in backward]

    def test_string_ids_break_name_ties(self):
        reviews = [review("b", "a@example.org", overall=3), review("a", "a@example.org", overall=3)]
        ranked = rank_applicants([applicant("b", "Same"), applicant("a", "Same")], reviews, SINGLE)
        assert [r.application_id for r in ranked] == ["a", "b"]


class TestZScoreNormalization:
    def test_harsh_and_lenient_reviewers_are_levelled(self):
        reviews = [
            review(1, "harsh@example.org", overall=2),
            review(2, "harsh@example.org", overall=1),
            review(3, "lenient@example.org", overall=5),
            review(4, "lenient@example.org", overall=4),
        ]
        applicants = [applicant(1, "Ana"), applicant(2, "Bo"), applicant(3, "Cy"), applicant(4, "Di")]

        raw = rank_applicants(applicants, reviews, SINGLE)
        normalized = rank_applicants(applicants, reviews, SINGLE, use_z_score=True)

        assert [r.application_id for r in raw] == [3, 4, 1, 2]
        assert [r.application_id for r in normalized] == [1, 3, 2, 4]
        assert [r.weighted_score for r in normalized] == pytest.approx([4.0, 4.0, 2.0, 2.0])

    def test_raw_average_is_kept_alongside(self):
        reviews = [review(1, "r@example.org", overall=5), review(2, "r@example.org", overall=3)]
        ranked = rank_applicants(
            [applicant(1, "A"), applicant(2, "B")], reviews, SINGLE, use_z_score=True
        )
        assert [r.average_score for r in ranked] == [5.0, 3.0]

    def test_single_review_reviewer_is_not_normalized(self):
        reviews = [review(1, "once@example.org", overall=5)]
        [entry] = rank_applicants([applicant(1, "A")], reviews, SINGLE, use_z_score=True)
        assert entry.weighted_score == 5.0

    def test_constant_reviewer_is_not_normalized(self):
        reviews = [review(1, "flat@example.org", overall=4), review(2, "flat@example.org", overall=4)]
        ranked = rank_applicants(
            [applicant(1, "A"), applicant(2, "B")], reviews, SINGLE, use_z_score=True
        )
        assert [r.weighted_score for r in ranked] == [4.0, 4.0]

    def test_normalized_scores_are_clamped_to_the_scale(self):
        reviews = [review(i, "r@example.org", overall=1) for i in range(1, 9)]
        reviews.append(review(9, "r@example.org", overall=5))
        applicants = [applicant(i, f"App {i}") for i in range(1, 10)]

        ranked = rank_applicants(applicants, reviews, SINGLE, use_z_score=True)

        assert ranked[0].application_id == 9
        assert ranked[0].weighted_score == 5.0
        assert all(1.0 <= r.weighted_score <= 5.0 for r in ranked)

    def test_out_of_pool_reviews_feed_the_baseline(self):
        reviews = [review(1, "r@example.org", overall=5), review(99, "r@example.org", overall=3)]
        [entry] = rank_applicants([applicant(1, "A")], reviews, SINGLE, use_z_score=True)
        assert entry.weighted_score == pytest.approx(4.0)


class TestReferralWeights:
    def test_bonus_applies_per_signal(self):
        reviews = [
            review(1, "a@example.org", signal=ReferralSignal.REFERRAL, overall=3),
            review(1, "b@example.org", signal=ReferralSignal.REFERRAL, overall=3),
            review(2, "a@example.org", signal=ReferralSignal.DEFERRAL, overall=3),
        ]
        ranked = rank_applicants(
            [applicant(1, "A"), applicant(2, "B")],
            reviews,
            SINGLE,
            referral_weights=ReferralWeights(advocate=0.25, oppose=-0.5),
        )
        assert [r.weighted_score for r in ranked] == pytest.approx([3.5, 2.5])

    def test_no_bonus_without_scores(self):
        reviews = [review(1, "a@example.org", signal=ReferralSignal.REFERRAL, overall=None)]
        [entry] = rank_applicants(
            [applicant(1, "A")], reviews, SINGLE, referral_weights=ReferralWeights(advocate=1)
        )
        assert entry.weighted_score == 0.0

    def test_from_dict_of_empty_config(self):
        assert ReferralWeights.from_dict(None) is None
        assert ReferralWeights.from_dict({"advocate": 0.2}) == ReferralWeights(advocate=0.2, oppose=0.0)


class TestRankedApplicant:
    def test_recorded_decision_is_attached(self):
        ranked = rank_applicants(
            [applicant(1, "A")],
            [review(1, "a@example.org", overall=4)],
            SINGLE,
            decisions={1: Decision.MANUAL_ADVANCE},
        )
        assert ranked[0].decision == Decision.MANUAL_ADVANCE
        assert ranked[0].to_dict()["decision"] == "manual_advance"

    def test_to_dict_rounds_scores(self):
        reviews = [review(1, "a@example.org", overall=5, fit=4), review(1, "b@example.org", overall=4, fit=4)]
        [entry] = rank_applicants([applicant(1, "A")], reviews, OVERALL_FIT)

        data = entry.to_dict()
        assert data["weighted_score"] == 4.3
        assert data["rank"] == 1
