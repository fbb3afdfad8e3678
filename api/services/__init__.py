"""
API Services Layer.

Database-backed operations behind the recruitment endpoints. Pure scoring,
ranking and cutoff rules live in the ``recruitment`` package.
"""

from api.services.applications import (
    get_application,
    move_application_stage,
)

from api.services.audit import AuditSink

from api.services.lifecycle import PhaseLifecycleController

from api.services.notifications import (
    DecisionNotice,
    NotificationCoordinator,
    NotificationReport,
    SmtpNotifier,
)

from api.services.phase_configs import (
    get_phase_config,
    initialize_phase_configs,
    list_phase_configs,
    require_phase_config,
    update_phase_config,
)

from api.services.rankings import (
    PhaseRanking,
    build_phase_ranking,
    count_applicants_by_phase,
    get_latest_snapshot,
    list_phase_decisions,
)

from api.services.reviews import (
    get_review,
    get_review_summary,
    list_reviews_for_applicant,
    submit_review,
)

from api.services.roster import (
    get_admin,
    list_admin_emails,
    list_admins,
)

__all__ = [
    # Applications
    "get_application",
    "move_application_stage",
    # Audit
    "AuditSink",
    # Lifecycle
    "PhaseLifecycleController",
    # Notifications
    "DecisionNotice",
    "NotificationCoordinator",
    "NotificationReport",
    "SmtpNotifier",
    # Phase configs
    "get_phase_config",
    "initialize_phase_configs",
    "list_phase_configs",
    "require_phase_config",
    "update_phase_config",
    # Rankings
    "PhaseRanking",
    "build_phase_ranking",
    "count_applicants_by_phase",
    "get_latest_snapshot",
    "list_phase_decisions",
    # Reviews
    "get_review",
    "get_review_summary",
    "list_reviews_for_applicant",
    "submit_review",
    # Roster
    "get_admin",
    "list_admin_emails",
    "list_admins",
]
