"""
Decision notification coordinator.

Sends one advance/reject email per decided applicant after the cutoff has
been committed. Sends are independent and best-effort: failures are counted,
logged and written to ``email_logs`` but never raised to the caller. With
retries enabled, each failed send is handed to the Celery email worker.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.errors import NotificationDeliveryError
from core.integrations.email import EmailService
from database.engine import AsyncSessionLocal
from database.models.communications import EmailLog, EmailStatus
from recruitment.enums import CutoffAction, ReviewPhase
from recruitment.templates import render_decision_email, template_id

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, recipient_email: str, subject: str, html_body: str) -> None:
        """Deliver one email or raise NotificationDeliveryError."""


class SmtpNotifier:
    """Notifier backed by the blocking SMTP EmailService, run in a worker thread."""

    def __init__(self, email_service: Optional[EmailService] = None):
        self.email_service = email_service or EmailService()

    async def send(self, recipient_email: str, subject: str, html_body: str) -> None:
        delivered = await asyncio.to_thread(
            self.email_service.send_email, recipient_email, subject, html_body, True
        )
        if not delivered:
            raise NotificationDeliveryError(f"SMTP delivery to {recipient_email} failed")


@dataclass
class DecisionNotice:
    application_id: int
    action: CutoffAction
    recipient_email: Optional[str]
    applicant_name: str
    track: Optional[str]


@dataclass
class NotificationReport:
    sent: int = 0
    failed: int = 0
    queued: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "queued": self.queued,
            "errors": list(self.errors),
        }


def enqueue_celery_retry(**payload: Any) -> None:
    """Queue a failed decision email on the Celery notifications queue."""
    from workers.tasks.emails import send_decision_email

    send_decision_email.apply_async(kwargs=payload, queue="notifications")


class NotificationCoordinator:
    """
    Fans decision emails out concurrently with a bounded number in flight.
    """

    def __init__(
        self,
        notifier: Notifier,
        *,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        concurrency: Optional[int] = None,
        retry_enabled: Optional[bool] = None,
        enqueue_retry: Callable[..., None] = enqueue_celery_retry,
    ):
        self.notifier = notifier
        self.session_factory = session_factory
        self.concurrency = concurrency or settings.notification_concurrency
        self.retry_enabled = (
            settings.notification_retry_enabled if retry_enabled is None else retry_enabled
        )
        self.enqueue_retry = enqueue_retry

    async def notify_batch(
        self,
        notices: list[DecisionNotice],
        *,
        cycle_id: str,
        phase: ReviewPhase,
        sent_by: str,
    ) -> NotificationReport:
        """
        Send every notice and report the outcome.

        Args:
            notices: One entry per decided applicant
            cycle_id: Cycle the decisions belong to (for the email log)
            phase: Phase whose templates are used
            sent_by: Admin who applied the cutoff

        Returns:
            Counts of sent, failed and queued-for-retry emails plus error strings
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def deliver(notice: DecisionNotice) -> dict[str, Any]:
            subject, body = render_decision_email(
                phase,
                notice.action,
                applicant_name=notice.applicant_name,
                track=notice.track,
                organization=settings.organization_name,
                portal_url=settings.portal_url,
            )
            outcome = {
                "notice": notice,
                "subject": subject,
                "body": body,
                "template_id": template_id(phase, notice.action),
                "error": None,
            }
            if not notice.recipient_email:
                outcome["error"] = f"No email address for application {notice.application_id}"
                return outcome

            async with semaphore:
                try:
                    await self.notifier.send(notice.recipient_email, subject, body)
                except Exception as exc:  # any delivery failure is recorded, never raised
                    outcome["error"] = (
                        f"Failed to send {notice.action.value} email for application "
                        f"{notice.application_id}: {exc}"
                    )
            return outcome

        outcomes = await asyncio.gather(*(deliver(notice) for notice in notices))

        report = NotificationReport()
        logs = []
        for outcome in outcomes:
            notice = outcome["notice"]
            status = EmailStatus.SENT
            if outcome["error"] is None:
                report.sent += 1
            else:
                report.failed += 1
                report.errors.append(outcome["error"])
                logger.warning(outcome["error"])
                status = EmailStatus.FAILED
                if notice.recipient_email and self._queue_retry(outcome, cycle_id, sent_by):
                    report.queued += 1
                    status = EmailStatus.QUEUED

            logs.append(
                EmailLog(
                    cycle_id=cycle_id,
                    application_id=notice.application_id,
                    recipient_email=notice.recipient_email,
                    subject=outcome["subject"],
                    template_id=outcome["template_id"],
                    status=status,
                    error=outcome["error"],
                    sent_by=sent_by,
                )
            )

        await self._write_logs(logs)
        logger.info(
            f"Decision emails for {ReviewPhase(phase).value} in cycle {cycle_id}: "
            f"{report.sent} sent, {report.failed} failed, {report.queued} queued for retry"
        )
        return report

    def _queue_retry(self, outcome: dict[str, Any], cycle_id: str, sent_by: str) -> bool:
        if not self.retry_enabled:
            return False
        notice = outcome["notice"]
        try:
            self.enqueue_retry(
                recipient_email=notice.recipient_email,
                subject=outcome["subject"],
                html_body=outcome["body"],
                cycle_id=cycle_id,
                application_id=notice.application_id,
                template_id=outcome["template_id"],
                sent_by=sent_by,
            )
            return True
        except Exception:  # broker outages must not fail the cutoff
            logger.exception(
                f"Could not queue retry for application {notice.application_id}"
            )
            return False

    async def _write_logs(self, logs: list[EmailLog]) -> None:
        if not logs:
            return
        try:
            async with self.session_factory() as session:
                session.add_all(logs)
                await session.commit()
        except SQLAlchemyError:
            logger.exception(f"Failed to write {len(logs)} email log entries")
