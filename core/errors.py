"""
Domain errors for the recruitment review engine.

Every error carries a machine-readable ``code``, the HTTP status the
transport layer should use, and optional structured ``details`` so callers
can render a precise message (for example which admins still owe reviews).
"""

from typing import Any


class RecruitmentError(Exception):
    """Base class for all recruitment engine errors."""

    code = "RECRUITMENT_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ==================== Validation ===================== #
class ValidationError(RecruitmentError):
    """Input rejected before any write."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidConfigError(ValidationError):
    """Scoring configuration is malformed."""

    code = "INVALID_CONFIG"


class ScoreOutOfRangeError(ValidationError):
    """A category score falls outside the category bounds."""

    code = "SCORE_OUT_OF_RANGE"


# ==================== State ===================== #
class PhaseFinalizedError(RecruitmentError):
    """Attempted mutation of a finalized phase."""

    code = "PHASE_FINALIZED"
    status_code = 409


class PhaseStateError(RecruitmentError):
    """Lifecycle action not allowed from the current phase state."""

    code = "INVALID_PHASE_STATE"
    status_code = 409


class IncompleteReviewsError(RecruitmentError):
    """Finalize or cutoff blocked because admins still owe reviews."""

    code = "INCOMPLETE_REVIEWS"
    status_code = 409

    def __init__(self, incomplete_admins: list[dict[str, Any]], total_admins: int):
        self.incomplete_admins = incomplete_admins
        total = incomplete_admins[0]["total"] if incomplete_admins else 0
        message = (
            f"{len(incomplete_admins)} admin(s) have not completed their reviews. "
            f"All {total_admins} admins must review all {total} applicants "
            f"before finalizing. Use force_finalize to override."
        )
        super().__init__(message, {"incomplete_admins": incomplete_admins})


class InvalidStageTransitionError(RecruitmentError):
    """Application stage change not permitted by the stage machine."""

    code = "INVALID_STAGE_TRANSITION"
    status_code = 409


class ConcurrentModificationError(RecruitmentError):
    """Phase configuration changed underneath the current operation."""

    code = "CONCURRENT_MODIFICATION"
    status_code = 409


class NotFoundError(RecruitmentError):
    """Unknown cycle, phase configuration or application."""

    code = "NOT_FOUND"
    status_code = 404


# ==================== Side effects ===================== #
class StageTransitionError(RecruitmentError):
    """A bulk stage-transition batch failed and was rolled back."""

    code = "STAGE_TRANSITION_FAILED"
    status_code = 500

    def __init__(self, processed: int, total: int):
        self.processed = processed
        self.total = total
        super().__init__(
            f"Stage transition batch aborted after {processed} of {total} applicants; "
            f"no changes were kept and the operation is safe to retry",
            {"processed": processed, "total": total},
        )


class NotificationDeliveryError(RecruitmentError):
    """A single notification could not be delivered."""

    code = "NOTIFICATION_FAILED"
    status_code = 502
