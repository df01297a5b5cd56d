"""Push notification system — Pushover and ntfy support.

Sends milestone reminders and overdue alerts to the agent's phone.
"""

from __future__ import annotations

import logging

import httpx

from contractflow.config import Settings, get_settings
from contractflow.models import MilestoneEvent, Notification

logger = logging.getLogger(__name__)


def send_push(notification: Notification, settings: Settings | None = None) -> bool:
    """Send a push notification via all configured providers.

    Returns True if at least one provider succeeded.
    """
    settings = settings or get_settings()
    sent = False

    if settings.has_pushover():
        sent = _send_pushover(notification, settings) or sent

    if settings.has_ntfy():
        sent = _send_ntfy(notification, settings) or sent

    return sent


def _send_pushover(notification: Notification, settings: Settings) -> bool:
    """Send via Pushover (https://pushover.net)."""
    priority_map = {
        "low": -1,
        "normal": 0,
        "high": 1,
        "urgent": 2,  # requires acknowledgment
    }
    priority = priority_map.get(notification.priority, 0)

    payload: dict = {
        "token": settings.pushover_api_token,
        "user": settings.pushover_user_key,
        "title": notification.title,
        "message": notification.body,
        "priority": priority,
    }
    if notification.url:
        payload["url"] = notification.url
        payload["url_title"] = "Open Contract"

    # Urgent priority requires retry/expire params
    if priority == 2:
        payload["retry"] = 300
        payload["expire"] = 3600

    try:
        resp = httpx.post("https://api.pushover.net/1/messages.json", data=payload)
        return resp.status_code == 200
    except httpx.HTTPError as e:
        logger.warning("Pushover send failed: %s", e)
        return False


def _send_ntfy(notification: Notification, settings: Settings) -> bool:
    """Send via ntfy (https://ntfy.sh)."""
    priority_map = {
        "low": "2",
        "normal": "3",
        "high": "4",
        "urgent": "5",
    }

    headers: dict = {
        "Title": notification.title,
        "Priority": priority_map.get(notification.priority, "3"),
        "Tags": "house,calendar",
    }
    if notification.url:
        headers["Click"] = notification.url

    url = f"{settings.ntfy_server}/{settings.ntfy_topic}"
    try:
        resp = httpx.post(url, content=notification.body, headers=headers)
        return resp.status_code == 200
    except httpx.HTTPError as e:
        logger.warning("ntfy send failed: %s", e)
        return False


def milestone_notification(event: MilestoneEvent, days_remaining: int) -> Notification:
    """Build the push payload for an upcoming or overdue milestone."""
    address = event.property_address or event.contract_id
    if days_remaining < 0:
        priority = "urgent"
        title = f"OVERDUE: {address}"
    elif days_remaining == 0:
        priority = "urgent"
        title = f"DUE TODAY: {address}"
    elif days_remaining <= 2:
        priority = "high"
        title = f"DUE SOON: {address}"
    else:
        priority = "normal"
        title = f"Reminder: {address}"

    body = f"{event.label} — "
    if days_remaining < 0:
        body += f"overdue by {abs(days_remaining)} day(s)"
    elif days_remaining == 0:
        body += "due today"
    else:
        body += f"{days_remaining} day(s) remaining"

    return Notification(title=title, body=body, priority=priority, contract_id=event.contract_id)


def notify_milestone(event: MilestoneEvent, days_remaining: int,
                     settings: Settings | None = None) -> bool:
    """Send push notification for an upcoming or overdue milestone."""
    return send_push(milestone_notification(event, days_remaining), settings)
