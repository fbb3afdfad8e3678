"""Email sending tasks."""

from typing import Optional
import logging

from celery import Task

from workers.celery_app import celery_app
from core.integrations.email import EmailService

logger = logging.getLogger(__name__)


@celery_app.task(name="workers.tasks.emails.send_decision_email", bind=True)
def send_decision_email(
    self: Task,
    recipient_email: str,
    subject: str,
    html_body: str,
    cycle_id: str,
    application_id: int,
    template_id: str,
    sent_by: Optional[str] = None,
) -> dict:
    """Retry a decision email that failed during a cutoff.

    Args:
        recipient_email: Applicant email address
        subject: Rendered subject line
        html_body: Rendered HTML body
        cycle_id: Recruitment cycle of the decision
        application_id: Application the decision belongs to
        template_id: Template used, e.g. ``application_advance``
        sent_by: Admin who applied the cutoff

    Returns:
        Dictionary with send status
    """
    email_service = EmailService()
    if not email_service.send_email(recipient_email, subject, html_body, html=True):
        logger.warning(
            f"Retry {self.request.retries + 1} of {template_id} email for application "
            f"{application_id} in cycle {cycle_id} failed"
        )
        raise self.retry(
            exc=RuntimeError(f"SMTP delivery to {recipient_email} failed"),
            countdown=120,
            max_retries=5,
        )

    logger.info(
        f"Delivered {template_id} email for application {application_id} "
        f"in cycle {cycle_id} (cutoff by {sent_by})"
    )
    return {
        "status": "sent",
        "application_id": application_id,
        "template_id": template_id,
    }
