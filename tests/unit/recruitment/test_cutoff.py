"""Tests for the cutoff partition."""

import pytest

from core.errors import ValidationError
from recruitment.cutoff import CutoffCriteria, ManualOverride, partition
from recruitment.enums import CutoffAction, CutoffType, Decision
from recruitment.ranking import RankedApplicant


def ranked(*scores):
    """Ranking with ids 1..N in the given (already descending) score order."""
    return [
        RankedApplicant(
            application_id=position,
            applicant_name=f"Applicant {position}",
            applicant_email=None,
            track="business",
            rank=position,
            weighted_score=score,
            average_score=score,
            review_count=2,
            referral_count=0,
            neutral_count=2,
            deferral_count=0,
        )
        for position, score in enumerate(scores, start=1)
    ]


RANKING = ranked(4.8, 4.2, 3.9, 3.1, 2.0)


class TestCriteria:
    def test_top_n_requires_integer(self):
        with pytest.raises(ValidationError):
            CutoffCriteria(type=CutoffType.TOP_N)
        with pytest.raises(ValidationError):
            CutoffCriteria(type=CutoffType.TOP_N, top_n=2.5)

    def test_top_n_rejects_negative(self):
        with pytest.raises(ValidationError):
            CutoffCriteria(type=CutoffType.TOP_N, top_n=-1)

    def test_min_score_requires_number(self):
        with pytest.raises(ValidationError):
            CutoffCriteria(type=CutoffType.MIN_SCORE)

    def test_type_accepts_raw_value(self):
        criteria = CutoffCriteria(type="top_n", top_n=3)
        assert criteria.type == CutoffType.TOP_N
        assert criteria.to_dict() == {"type": "top_n", "top_n": 3, "min_score": None}

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            CutoffCriteria(type="lottery")


class TestPartition:
    @pytest.mark.parametrize("top_n,advanced", [
        (0, []),
        (2, [1, 2]),
        (5, [1, 2, 3, 4, 5]),
        (50, [1, 2, 3, 4, 5]),
    ])
    def test_top_n(self, top_n, advanced):
        result = partition(RANKING, CutoffCriteria(type=CutoffType.TOP_N, top_n=top_n))

        assert result.advanced == advanced
        assert result.rejected == [i for i in range(1, 6) if i not in advanced]

    @pytest.mark.parametrize("min_score,advanced", [
        (3.9, [1, 2, 3]),
        (3.91, [1, 2]),
        (0, [1, 2, 3, 4, 5]),
        (5.0, []),
    ])
    def test_min_score_is_inclusive(self, min_score, advanced):
        result = partition(RANKING, CutoffCriteria(type=CutoffType.MIN_SCORE, min_score=min_score))
        assert result.advanced == advanced

    def test_manual_rejects_everyone_not_overridden(self):
        result = partition(
            RANKING,
            CutoffCriteria(type=CutoffType.MANUAL),
            [ManualOverride(application_id=4, action=CutoffAction.ADVANCE)],
        )

        assert result.advanced == [4]
        assert result.decisions[4] == Decision.MANUAL_ADVANCE
        assert result.decisions[1] == Decision.REJECT

    def test_overrides_win_over_the_rule(self):
        result = partition(
            RANKING,
            CutoffCriteria(type=CutoffType.TOP_N, top_n=2),
            [
                ManualOverride(application_id=1, action="reject", reason="Withdrew interest"),
                ManualOverride(application_id=5, action="advance"),
            ],
        )

        assert result.advanced == [2, 5]
        assert result.rejected == [1, 3, 4]
        assert result.decisions[1] == Decision.MANUAL_REJECT
        assert result.decisions[5] == Decision.MANUAL_ADVANCE
        assert result.decisions[2] == Decision.ADVANCE
        assert result.reasons == {1: "Withdrew interest"}

    def test_partition_is_total_and_disjoint(self):
        result = partition(
            RANKING,
            CutoffCriteria(type=CutoffType.MIN_SCORE, min_score=3.5),
            [ManualOverride(application_id=3, action="reject")],
        )

        assert set(result.advanced) | set(result.rejected) == {1, 2, 3, 4, 5}
        assert not set(result.advanced) & set(result.rejected)
        assert set(result.decisions) == {1, 2, 3, 4, 5}

    def test_unknown_overrides_are_reported(self):
        result = partition(
            RANKING,
            CutoffCriteria(type=CutoffType.TOP_N, top_n=1),
            [ManualOverride(application_id=42, action="advance")],
        )

        assert result.unknown_overrides == [42]
        assert 42 not in result.decisions
        assert result.advanced == [1]

    def test_follows_rank_order_not_list_order(self):
        result = partition(
            list(reversed(RANKING)), CutoffCriteria(type=CutoffType.TOP_N, top_n=2)
        )
        assert result.advanced == [1, 2]

    def test_empty_ranking(self):
        result = partition([], CutoffCriteria(type=CutoffType.TOP_N, top_n=3))
        assert result.advanced == [] and result.rejected == []

    def test_to_dict_uses_string_keys(self):
        result = partition(RANKING[:1], CutoffCriteria(type=CutoffType.TOP_N, top_n=1))
        assert result.to_dict()["decisions"] == {"1": "advance"}
