"""Decision email templates, one advance and one reject template per phase."""

import html
from dataclasses import dataclass

from recruitment.enums import CutoffAction, ReviewPhase, Track

_WRAPPER = (
    '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
    "{content}"
    '<div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee; color: #666; font-size: 14px;">'
    "<p>Best regards,<br>The {org} Recruitment Team</p>"
    "</div></div>"
)

_NEXT_STEPS = (
    "<h3>Next Steps:</h3><ol>"
    '<li>Log in to the <a href="{portal_url}">{org} Portal</a></li>'
    "<li>Navigate to the Schedule section</li>"
    "<li>Book your {slot} interview slot</li>"
    "</ol>"
)


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    body: str


TEMPLATES = {
    (ReviewPhase.APPLICATION, CutoffAction.ADVANCE): EmailTemplate(
        subject="{org} Application Update - Interview Invitation",
        body=(
            "<h2>Congratulations, {name}!</h2>"
            "<p>Your application to the {track} track of {org} has been selected "
            "to move forward to the interview stage.</p>"
            + _NEXT_STEPS.replace("{slot}", "Round 1")
        ),
    ),
    (ReviewPhase.APPLICATION, CutoffAction.REJECT): EmailTemplate(
        subject="{org} Application Update",
        body=(
            "<h2>Thank You for Applying, {name}</h2>"
            "<p>Thank you for your interest in {org}. After careful review, we are "
            "unable to move forward with your application at this time.</p>"
            "<p>We encourage you to attend our open events and to apply again in a "
            "future recruitment cycle.</p>"
        ),
    ),
    (ReviewPhase.INTERVIEW_ROUND1, CutoffAction.ADVANCE): EmailTemplate(
        subject="{org} Interview Update - Round 2 Invitation",
        body=(
            "<h2>Great News, {name}!</h2>"
            "<p>You have advanced to Round 2 of the {org} interview process for the "
            "{track} track.</p>"
            + _NEXT_STEPS.replace("{slot}", "Round 2")
        ),
    ),
    (ReviewPhase.INTERVIEW_ROUND1, CutoffAction.REJECT): EmailTemplate(
        subject="{org} Interview Update",
        body=(
            "<h2>Thank You, {name}</h2>"
            "<p>Thank you for interviewing with {org}. After careful consideration, "
            "we have decided not to move forward with your application at this time.</p>"
        ),
    ),
    (ReviewPhase.INTERVIEW_ROUND2, CutoffAction.ADVANCE): EmailTemplate(
        subject="Welcome to {org}!",
        body=(
            "<h2>Congratulations, {name}!</h2>"
            "<p><strong>You have been accepted into {org}</strong> as a member of the "
            "{track} track.</p>"
            "<p>Look out for our onboarding email with details about orientation.</p>"
        ),
    ),
    (ReviewPhase.INTERVIEW_ROUND2, CutoffAction.REJECT): EmailTemplate(
        subject="{org} Final Decision",
        body=(
            "<h2>Thank You, {name}</h2>"
            "<p>Thank you for your dedication throughout the {org} recruitment process. "
            "After careful deliberation, we have decided not to extend a membership "
            "offer at this time.</p>"
        ),
    ),
}


def template_id(phase: ReviewPhase, action: CutoffAction) -> str:
    return f"{ReviewPhase(phase).value}_{CutoffAction(action).value}"


def render_decision_email(
    phase: ReviewPhase,
    action: CutoffAction,
    *,
    applicant_name: str,
    track: str | None,
    organization: str,
    portal_url: str,
) -> tuple[str, str]:
    """
    Render the subject and HTML body of a decision email.

    Applicant-controlled values are HTML-escaped.
    """
    template = TEMPLATES[(ReviewPhase(phase), CutoffAction(action))]
    try:
        track_label = Track(track).label
    except ValueError:
        track_label = track or ""
    values = {
        "name": html.escape(applicant_name or "Applicant"),
        "track": html.escape(track_label),
        "org": html.escape(organization),
        "portal_url": html.escape(portal_url, quote=True),
    }
    subject = template.subject.format(org=organization)
    body = _WRAPPER.format(content=template.body.format(**values), org=values["org"])
    return subject, body
