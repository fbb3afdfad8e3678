"""Builders and fakes shared by the service and API tests."""

from core.errors import NotificationDeliveryError
from database.models.applications import Application
from database.models.users import User, UserRole
from recruitment.enums import ApplicationStage, Track

CYCLE_ID = "2025-fall"


async def add_admin(db, email, name=None, role=UserRole.ADMIN, is_active=True):
    user = User(email=email, name=name or email.split("@")[0].title(), role=role, is_active=is_active)
    db.add(user)
    await db.commit()
    return user


async def add_application(
    db,
    name,
    *,
    track=Track.ENGINEERING,
    stage=ApplicationStage.SUBMITTED,
    email=None,
    cycle_id=CYCLE_ID,
):
    application = Application(
        cycle_id=cycle_id,
        track=track,
        stage=stage,
        applicant_name=name,
        applicant_email=email if email is not None else f"{name.lower().replace(' ', '.')}@example.com",
        answers={"motivation": f"{name} wants to join"},
    )
    db.add(application)
    await db.commit()
    return application


async def reload(db, model, pk):
    """Fresh copy of a row, bypassing the identity map's cached state."""
    return await db.get(model, pk, populate_existing=True)


class FakeNotifier:
    """Records sends; fails for the given recipients."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    async def send(self, recipient_email, subject, html_body):
        if recipient_email in self.fail_for:
            raise NotificationDeliveryError(f"SMTP delivery to {recipient_email} failed")
        self.sent.append({"to": recipient_email, "subject": subject, "body": html_body})
