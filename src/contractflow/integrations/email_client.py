"""Gmail API email client with alias (send-as) support.

Client timeline emails and milestone reminders go out FROM the configured
alias so they come from the agent's professional address.
"""

from __future__ import annotations

import base64
import html
import logging
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Iterable

from googleapiclient.discovery import build

from contractflow.config import get_settings
from contractflow.engine.milestones import is_valid_email, project_milestones
from contractflow.engine.reminders import days_until
from contractflow.integrations.google_auth import get_credentials
from contractflow.models import (
    ActiveContract,
    BulkEmailResults,
    EmailFailure,
    MilestoneEvent,
    MilestoneType,
)

logger = logging.getLogger(__name__)

# Short client-facing note per milestone
MILESTONE_NOTES = {
    MilestoneType.INSPECTION: "Please make sure utilities are on and the property is accessible.",
    MilestoneType.INSPECTION_RESPONSE: "Let's review the inspection report together before this date.",
    MilestoneType.LOAN_CONTINGENCY: "Let me know if I should follow up with your lender.",
    MilestoneType.APPRAISAL: "The appraiser will confirm the property supports the purchase price.",
    MilestoneType.FINAL_WALKTHROUGH: "We'll verify the property is in the agreed-upon condition.",
    MilestoneType.CLOSING: "Bring a valid ID and your certified funds.",
}


def get_gmail_service():
    """Get an authenticated Gmail API service."""
    return build("gmail", "v1", credentials=get_credentials())


def send_email(
    to: str | list[str],
    subject: str,
    body_html: str,
    body_text: str = "",
    cc: str | list[str] | None = None,
    from_alias: str | None = None,
) -> str:
    """Send an email using Gmail API with alias support.

    Returns:
        Message ID of the sent email.
    """
    settings = get_settings()
    service = get_gmail_service()

    msg = MIMEMultipart("alternative")
    msg["To"] = ", ".join(to) if isinstance(to, list) else to
    msg["Subject"] = subject
    msg["From"] = from_alias or settings.gmail_send_as_email or settings.agent_email
    if cc:
        msg["Cc"] = ", ".join(cc) if isinstance(cc, list) else cc

    if body_text:
        msg.attach(MIMEText(body_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))

    raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")
    sent = service.users().messages().send(
        userId="me",
        body={"raw": raw},
    ).execute()
    return sent.get("id", "")


# ---------------------------------------------------------------------------
# Client timeline
# ---------------------------------------------------------------------------

def _first_name(name: str) -> str:
    return name.split()[0] if name.strip() else "there"


def render_timeline_email(contract: ActiveContract, events: list[MilestoneEvent],
                          today: date | None = None) -> tuple[str, str, str]:
    """Build (subject, html, text) for a client timeline email."""
    today = today or date.today()
    address = contract.property_address or "your property"
    subject = f"Your Transaction Timeline - {address}"
    greeting = f"Hi {_first_name(contract.client_name())},"

    pending = sorted((e for e in events if not e.completed), key=lambda e: e.date)
    text_lines = [greeting, "", f"Here are the upcoming dates for {address}:", ""]
    rows = []
    for e in pending:
        when = e.date.strftime("%A, %B %d, %Y")
        days = days_until(e, today)
        suffix = "overdue" if days < 0 else "today" if days == 0 else f"in {days} day(s)"
        note = MILESTONE_NOTES.get(e.milestone, "")
        text_lines.append(f"- {e.label}: {when} ({suffix}). {note}".rstrip())
        rows.append(
            f'<tr><td style="padding: 4px 12px; font-weight: bold;">{html.escape(e.label)}</td>'
            f'<td style="padding: 4px 12px;">{when}</td>'
            f'<td style="padding: 4px 12px; color: #666;">{html.escape(note)}</td></tr>'
        )
    text_lines += ["", "Questions? Just reply to this email."]

    body_html = f"""\
<html><body style="font-family: Arial, sans-serif;">
<p>{html.escape(greeting)}</p>
<h2 style="color: #333;">{html.escape(address)}</h2>
<table style="border-collapse: collapse; margin: 16px 0;">
{"".join(rows)}
</table>
<p style="color: #666; font-size: 12px;">Questions? Just reply to this email.</p>
</body></html>
"""
    return subject, body_html, "\n".join(text_lines)


def send_client_timelines(
    contracts: Iterable[ActiveContract],
    today: date | None = None,
    sender: Callable[..., str] = send_email,
) -> BulkEmailResults:
    """Email each client their timeline, one contract at a time.

    A failure on one contract is recorded and the loop moves on. Nothing
    is retried.
    """
    results = BulkEmailResults()
    for contract in contracts:
        to = contract.client_email()
        if not is_valid_email(to):
            results.failed.append(EmailFailure(contract_id=contract.id, reason="No valid client email"))
            continue
        events = project_milestones(contract)
        if not any(not e.completed for e in events):
            results.failed.append(EmailFailure(contract_id=contract.id, reason="No upcoming dates"))
            continue
        subject, body_html, body_text = render_timeline_email(contract, events, today)
        try:
            sender(to=to, subject=subject, body_html=body_html, body_text=body_text)
        except Exception as e:
            logger.warning("Timeline email for %s failed: %s", contract.id, e)
            results.failed.append(EmailFailure(contract_id=contract.id, reason=str(e)))
            continue
        results.sent.append(contract.id)
    return results


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

def send_milestone_reminder(
    event: MilestoneEvent,
    days_remaining: int,
    recipients: list[str] | None = None,
) -> str:
    """Send a milestone reminder email to the agent (or ``recipients``)."""
    settings = get_settings()
    to = recipients or [settings.agent_email]
    address = event.property_address or event.contract_id

    urgency = ""
    if days_remaining <= 0:
        urgency = "OVERDUE: "
    elif days_remaining == 1:
        urgency = "URGENT: "

    body_html = f"""\
<html><body style="font-family: Arial, sans-serif;">
<h2>{urgency}{html.escape(address)}</h2>
<h3>Milestone: {event.label}</h3>
<p><strong>Date:</strong> {event.date}</p>
<p><strong>Days remaining:</strong> {days_remaining if days_remaining >= 0 else f"OVERDUE by {abs(days_remaining)} day(s)"}</p>
</body></html>
"""
    return send_email(
        to=to,
        subject=f"{urgency}{address} — {event.label} ({event.date})",
        body_html=body_html,
    )
