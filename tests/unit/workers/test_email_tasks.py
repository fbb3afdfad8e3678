"""Tests for the decision email retry task."""

from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry

from workers.celery_app import celery_app
from workers.tasks.emails import send_decision_email

PAYLOAD = {
    "recipient_email": "ada@example.com",
    "subject": "Application Update",
    "html_body": "<p>Hello</p>",
    "cycle_id": "2025-fall",
    "application_id": 7,
    "template_id": "application_reject",
    "sent_by": "admin@example.org",
}


@pytest.fixture
def email_service():
    with patch("workers.tasks.emails.EmailService") as service_cls:
        service = MagicMock()
        service_cls.return_value = service
        yield service


class TestSendDecisionEmail:
    def test_delivers(self, email_service):
        email_service.send_email.return_value = True

        result = send_decision_email.run(**PAYLOAD)

        assert result == {"status": "sent", "application_id": 7, "template_id": "application_reject"}
        email_service.send_email.assert_called_once_with(
            "ada@example.com", "Application Update", "<p>Hello</p>", html=True
        )

    def test_failed_delivery_is_retried(self, email_service):
        email_service.send_email.return_value = False

        with patch.object(send_decision_email, "retry", side_effect=Retry("again")) as retry:
            with pytest.raises(Retry):
                send_decision_email.run(**PAYLOAD)

        _, kwargs = retry.call_args
        assert kwargs["countdown"] == 120
        assert kwargs["max_retries"] == 5
        assert "ada@example.com" in str(kwargs["exc"])


class TestCeleryConfig:
    def test_task_is_registered(self):
        assert "workers.tasks.emails.send_decision_email" in celery_app.tasks

    def test_email_tasks_route_to_notifications(self):
        assert celery_app.conf.task_routes["workers.tasks.emails.*"] == {"queue": "notifications"}
        assert {q.name for q in celery_app.conf.task_queues} == {"default", "notifications"}
