"""
Scoring model: weighted categories per phase and score validation.

Scores travel as an ordered list of ``(category_key, value)`` pairs where
``value`` is ``None`` for a category the reviewer left unscored. A number is
always a real score and must sit inside the category bounds.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from core.errors import InvalidConfigError, ScoreOutOfRangeError, ValidationError
from recruitment.enums import ReviewPhase

ScoreEntries = list[tuple[str, Optional[float]]]
ScoreInput = Union[Mapping[str, Optional[float]], Iterable[Any]]


@dataclass(frozen=True)
class ScoringCategory:
    """One weighted scoring dimension of a phase."""

    key: str
    label: str
    weight: float
    min_score: float = 1.0
    max_score: float = 5.0
    description: Optional[str] = None
    star_descriptions: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "weight": self.weight,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "description": self.description,
            "star_descriptions": dict(self.star_descriptions),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoringCategory":
        try:
            return cls(
                key=str(data["key"]).strip(),
                label=str(data.get("label") or data["key"]),
                weight=float(data["weight"]),
                min_score=float(data.get("min_score", 1.0)),
                max_score=float(data.get("max_score", 5.0)),
                description=data.get("description"),
                star_descriptions=dict(data.get("star_descriptions") or {}),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidConfigError(f"Malformed scoring category: {exc}") from exc


def _category(key: str, label: str, weight: float, description: str) -> ScoringCategory:
    return ScoringCategory(key=key, label=label, weight=weight, description=description)


DEFAULT_CATEGORIES: dict[ReviewPhase, tuple[ScoringCategory, ...]] = {
    ReviewPhase.APPLICATION: (
        _category("overall", "Overall Impression", 0.3, "General impression of the application"),
        _category("experience", "Relevant Experience", 0.25, "Prior work, projects and leadership"),
        _category("motivation", "Motivation", 0.25, "Interest in the organization and its mission"),
        _category("communication", "Written Communication", 0.2, "Clarity and quality of responses"),
    ),
    ReviewPhase.INTERVIEW_ROUND1: (
        _category("overall", "Overall Performance", 0.25, "General interview performance"),
        _category("technical", "Technical Skills", 0.3, "Domain knowledge and technical depth"),
        _category("problem_solving", "Problem Solving", 0.25, "Approach to the case or problem"),
        _category("communication", "Communication", 0.2, "Clarity when explaining ideas"),
    ),
    ReviewPhase.INTERVIEW_ROUND2: (
        _category("overall", "Overall Performance", 0.2, "General interview performance"),
        _category("cultural_fit", "Cultural Fit", 0.25, "Alignment with the organization's values"),
        _category("leadership", "Leadership", 0.2, "Initiative and ownership"),
        _category("teamwork", "Teamwork", 0.2, "Collaboration with others"),
        _category("motivation", "Motivation", 0.15, "Commitment to the organization"),
    ),
}


def default_categories(phase: ReviewPhase) -> list[ScoringCategory]:
    """Seed categories used by ``initialize`` for a phase."""
    return list(DEFAULT_CATEGORIES[ReviewPhase(phase)])


def validate_categories(categories: Sequence[ScoringCategory]) -> None:
    """
    Validate a phase's scoring categories.

    Raises:
        InvalidConfigError: on an empty set, blank or duplicate keys,
            non-positive weights, or ``min_score >= max_score``.
    """
    if not categories:
        raise InvalidConfigError("At least one scoring category is required")

    seen: set[str] = set()
    for category in categories:
        if not category.key:
            raise InvalidConfigError("Scoring category key must not be blank")
        if category.key in seen:
            raise InvalidConfigError(
                f"Duplicate scoring category key: {category.key}",
                {"category": category.key},
            )
        seen.add(category.key)

        if not math.isfinite(category.weight) or category.weight <= 0:
            raise InvalidConfigError(
                f"Weight for '{category.key}' must be a positive number",
                {"category": category.key, "weight": category.weight},
            )
        if category.min_score >= category.max_score:
            raise InvalidConfigError(
                f"min_score must be below max_score for '{category.key}'",
                {
                    "category": category.key,
                    "min_score": category.min_score,
                    "max_score": category.max_score,
                },
            )


def _as_pairs(scores: ScoreInput) -> list[tuple[str, Any]]:
    if isinstance(scores, Mapping):
        return list(scores.items())

    pairs = []
    for entry in scores:
        if isinstance(entry, Mapping):
            pairs.append((entry.get("key"), entry.get("value")))
        else:
            key, value = entry
            pairs.append((key, value))
    return pairs


def validate_scores(categories: Sequence[ScoringCategory], scores: ScoreInput) -> ScoreEntries:
    """
    Check submitted scores against the phase's categories.

    Args:
        categories: The governing scoring categories
        scores: Mapping or sequence of ``(key, value)`` pairs / ``{"key", "value"}`` dicts

    Returns:
        One ``(key, value)`` pair per category, in category order, with
        ``None`` for categories that were not scored.

    Raises:
        ValidationError: unknown or repeated category keys, non-numeric values
        ScoreOutOfRangeError: a value outside ``[min_score, max_score]``
    """
    by_key = {category.key: category for category in categories}
    submitted: dict[str, Optional[float]] = {}

    for key, value in _as_pairs(scores):
        if key not in by_key:
            raise ValidationError(
                f"Unknown scoring category: {key}",
                {"category": key, "allowed": list(by_key)},
            )
        if key in submitted:
            raise ValidationError(f"Category scored twice: {key}", {"category": key})

        if value is None:
            submitted[key] = None
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(
                f"Score for '{key}' must be a number", {"category": key}
            )

        category = by_key[key]
        number = float(value)
        if not math.isfinite(number) or not category.min_score <= number <= category.max_score:
            raise ScoreOutOfRangeError(
                f"Score {value} for '{key}' is outside "
                f"[{category.min_score:g}, {category.max_score:g}]",
                {
                    "category": key,
                    "value": value,
                    "min_score": category.min_score,
                    "max_score": category.max_score,
                },
            )
        submitted[key] = number

    return [(category.key, submitted.get(category.key)) for category in categories]


def weighted_score(categories: Sequence[ScoringCategory], scores: ScoreEntries) -> Optional[float]:
    """
    Weighted mean over the categories that were actually scored.

    Unscored categories are left out of both sums. Returns ``None`` when
    nothing was scored.
    """
    weights = {category.key: category.weight for category in categories}
    total = 0.0
    weight_sum = 0.0
    for key, value in scores:
        if value is None or key not in weights:
            continue
        total += value * weights[key]
        weight_sum += weights[key]

    if weight_sum == 0:
        return None
    return total / weight_sum


def score_scale(categories: Sequence[ScoringCategory]) -> tuple[float, float]:
    """Lowest and highest attainable weighted score for a category set."""
    if not categories:
        return 1.0, 5.0
    return (
        min(category.min_score for category in categories),
        max(category.max_score for category in categories),
    )
