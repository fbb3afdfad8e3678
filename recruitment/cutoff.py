"""Cutoff engine: total advance/reject partition of a ranking."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Optional, Sequence

from core.errors import ValidationError
from recruitment.enums import CutoffAction, CutoffType, Decision
from recruitment.ranking import RankedApplicant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CutoffCriteria:
    type: CutoffType
    top_n: Optional[int] = None
    min_score: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "type", CutoffType(self.type))
        if self.type == CutoffType.TOP_N:
            if self.top_n is None or isinstance(self.top_n, bool) or int(self.top_n) != self.top_n:
                raise ValidationError("top_n cutoff requires an integer top_n")
            if self.top_n < 0:
                raise ValidationError("top_n must not be negative")
        elif self.type == CutoffType.MIN_SCORE:
            if self.min_score is None or not math.isfinite(float(self.min_score)):
                raise ValidationError("min_score cutoff requires a numeric min_score")

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "top_n": self.top_n, "min_score": self.min_score}


@dataclass(frozen=True)
class ManualOverride:
    application_id: Hashable
    action: CutoffAction
    reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "action", CutoffAction(self.action))


@dataclass
class CutoffPartition:
    advanced: list = field(default_factory=list)
    rejected: list = field(default_factory=list)
    decisions: dict[Hashable, Decision] = field(default_factory=dict)
    reasons: dict[Hashable, str] = field(default_factory=dict)
    unknown_overrides: list = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "advanced": list(self.advanced),
            "rejected": list(self.rejected),
            "decisions": {str(k): v.value for k, v in self.decisions.items()},
            "unknown_overrides": list(self.unknown_overrides),
        }


def _rule_advances(criteria: CutoffCriteria, index: int, entry: RankedApplicant) -> bool:
    if criteria.type == CutoffType.TOP_N:
        return index < criteria.top_n
    if criteria.type == CutoffType.MIN_SCORE:
        return entry.weighted_score >= criteria.min_score
    return False


def partition(
    rankings: Sequence[RankedApplicant],
    criteria: CutoffCriteria,
    manual_overrides: Iterable[ManualOverride] = (),
) -> CutoffPartition:
    """
    Split a ranking into advanced and rejected applicants.

    Every ranked applicant lands in exactly one of the two lists. Overrides
    win over the rule; overrides naming applicants outside the ranking are
    reported in ``unknown_overrides`` and otherwise ignored.
    """
    overrides = {override.application_id: override for override in manual_overrides}
    ranked_ids = {entry.application_id for entry in rankings}

    result = CutoffPartition()
    for index, entry in enumerate(sorted(rankings, key=lambda r: r.rank)):
        override = overrides.get(entry.application_id)
        if override is not None:
            decision = Decision.for_action(override.action, manual=True)
            if override.reason:
                result.reasons[entry.application_id] = override.reason
        elif _rule_advances(criteria, index, entry):
            decision = Decision.ADVANCE
        else:
            decision = Decision.REJECT

        result.decisions[entry.application_id] = decision
        if decision.action == CutoffAction.ADVANCE:
            result.advanced.append(entry.application_id)
        else:
            result.rejected.append(entry.application_id)

    result.unknown_overrides = [
        application_id for application_id in overrides if application_id not in ranked_ids
    ]
    if result.unknown_overrides:
        logger.warning(
            f"Ignoring {len(result.unknown_overrides)} override(s) for applicants "
            f"outside the ranking: {result.unknown_overrides}"
        )
    return result
