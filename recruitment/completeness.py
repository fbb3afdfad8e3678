"""Per-reviewer review coverage of a phase's applicant pool."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping, Optional, Protocol, Sequence, Union


class ReviewRef(Protocol):
    application_id: Hashable
    reviewer_email: str


@dataclass
class ReviewerCompletion:
    email: str
    reviewed: int
    total: int
    percentage: float
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "name": self.name,
            "reviewed": self.reviewed,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass
class PhaseCompleteness:
    total_applicants: int
    applicants_with_reviews: int
    applicants_fully_reviewed: int
    min_reviewers_required: int
    reviewer_completion: list[ReviewerCompletion] = field(default_factory=list)

    def reviewed_count(self, email: str) -> int:
        email = email.strip().lower()
        for reviewer in self.reviewer_completion:
            if reviewer.email == email:
                return reviewer.reviewed
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_applicants": self.total_applicants,
            "applicants_with_reviews": self.applicants_with_reviews,
            "applicants_fully_reviewed": self.applicants_fully_reviewed,
            "min_reviewers_required": self.min_reviewers_required,
            "reviewer_completion": [r.to_dict() for r in self.reviewer_completion],
        }


def compute_completeness(
    reviews: Iterable[ReviewRef],
    eligible_applicant_ids: Iterable[Hashable],
    eligible_reviewers: Union[Sequence[str], Mapping[str, Optional[str]]],
    min_reviewers_required: int = 2,
) -> PhaseCompleteness:
    """
    Count, per reviewer, the distinct eligible applicants they reviewed.

    Reviews of applicants outside the eligible pool are ignored. An applicant
    is fully reviewed once ``min_reviewers_required`` distinct reviewers have
    reviewed them.

    Args:
        reviews: Reviews of the phase (anything with application_id/reviewer_email)
        eligible_applicant_ids: The applicant pool
        eligible_reviewers: Reviewer emails, or a mapping of email to display name
        min_reviewers_required: Threshold for "fully reviewed"
    """
    pool = set(eligible_applicant_ids)
    total = len(pool)

    reviewed_by: dict[str, set] = defaultdict(set)
    reviewers_of: dict[Hashable, set[str]] = defaultdict(set)
    for review in reviews:
        if review.application_id not in pool:
            continue
        email = review.reviewer_email.strip().lower()
        reviewed_by[email].add(review.application_id)
        reviewers_of[review.application_id].add(email)

    if isinstance(eligible_reviewers, Mapping):
        names = {email.strip().lower(): name for email, name in eligible_reviewers.items()}
    else:
        names = {email.strip().lower(): None for email in eligible_reviewers}

    completion = []
    for email, name in names.items():
        reviewed = len(reviewed_by.get(email, ()))
        percentage = round(reviewed / total * 100, 1) if total else 0.0
        completion.append(
            ReviewerCompletion(
                email=email, name=name, reviewed=reviewed, total=total, percentage=percentage
            )
        )
    completion.sort(key=lambda r: (-r.percentage, r.email))

    return PhaseCompleteness(
        total_applicants=total,
        applicants_with_reviews=len(reviewers_of),
        applicants_fully_reviewed=sum(
            1 for emails in reviewers_of.values() if len(emails) >= min_reviewers_required
        ),
        min_reviewers_required=min_reviewers_required,
        reviewer_completion=completion,
    )


def find_incomplete_reviewers(
    completeness: PhaseCompleteness, required_emails: Iterable[str]
) -> list[dict[str, Any]]:
    """
    Required reviewers who have not reviewed every applicant in the pool.

    A reviewer passes once ``reviewed == total``.
    """
    total = completeness.total_applicants
    lagging = []
    for email in required_emails:
        reviewed = completeness.reviewed_count(email)
        if reviewed < total:
            lagging.append({"email": email.strip().lower(), "reviewed": reviewed, "total": total})
    return lagging
