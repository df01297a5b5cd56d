"""Tests for push notifications."""

from datetime import date

import httpx
import pytest

from contractflow.config import Settings
from contractflow.integrations import notifications
from contractflow.integrations.notifications import milestone_notification, notify_milestone, send_push
from contractflow.models import MilestoneEvent, MilestoneType, Notification


@pytest.fixture
def event():
    return MilestoneEvent(date=date(2025, 1, 15), milestone=MilestoneType.INSPECTION,
                          contract_id="R", property_address="R Main St")


@pytest.fixture
def posts(monkeypatch):
    calls = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        return httpx.Response(200)

    monkeypatch.setattr(notifications.httpx, "post", fake_post)
    return calls


@pytest.mark.parametrize("days, priority, title", [
    (-2, "urgent", "OVERDUE: R Main St"),
    (0, "urgent", "DUE TODAY: R Main St"),
    (1, "high", "DUE SOON: R Main St"),
    (5, "normal", "Reminder: R Main St"),
])
def test_milestone_notification(event, days, priority, title):
    n = milestone_notification(event, days)
    assert n.priority == priority
    assert n.title == title
    assert n.contract_id == "R"


def test_no_providers_configured(posts):
    assert send_push(Notification(title="t", body="b"), Settings(_env_file=None)) is False
    assert posts == []


def test_pushover_payload(posts):
    settings = Settings(pushover_user_key="u", pushover_api_token="t", _env_file=None)
    assert send_push(Notification(title="Hi", body="there", priority="urgent"), settings)
    [(url, kwargs)] = posts
    assert url == "https://api.pushover.net/1/messages.json"
    assert kwargs["data"]["priority"] == 2
    assert kwargs["data"]["retry"] == 300


def test_ntfy(posts, event):
    settings = Settings(ntfy_topic="deals", _env_file=None)
    assert notify_milestone(event, 3, settings)
    [(url, kwargs)] = posts
    assert url == "https://ntfy.sh/deals"
    assert kwargs["headers"]["Priority"] == "3"


def test_http_error_is_reported_not_raised(monkeypatch):
    def broken(url, **kwargs):
        raise httpx.ConnectError("offline")

    monkeypatch.setattr(notifications.httpx, "post", broken)
    assert send_push(Notification(title="t", body="b"), Settings(ntfy_topic="x", _env_file=None)) is False
