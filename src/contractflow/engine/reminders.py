"""Reminder eligibility.

A milestone gets a reminder on each configured "days before" offset. The
batch trigger that sends them lives outside this module; only the
eligibility predicate is computed here.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from contractflow.models import MilestoneEvent, ReminderPreferences


def days_until(event: MilestoneEvent, today: date | None = None) -> int:
    """Whole calendar days from ``today`` to the event (negative if past)."""
    today = today or date.today()
    return (event.date - today).days


def is_eligible(event: MilestoneEvent, today: date, offsets: set[int] | frozenset[int]) -> bool:
    return not event.completed and days_until(event, today) in offsets


def reminders_due(events: Iterable[MilestoneEvent],
                  preferences: ReminderPreferences | None = None,
                  today: date | None = None) -> list[tuple[MilestoneEvent, int]]:
    """Return (event, days_remaining) for every event that needs a reminder today."""
    today = today or date.today()
    preferences = preferences or ReminderPreferences()
    due: list[tuple[MilestoneEvent, int]] = []
    for event in events:
        offsets = preferences.offsets_for(event.milestone)
        if is_eligible(event, today, offsets):
            due.append((event, days_until(event, today)))
    return sorted(due, key=lambda pair: (pair[0].date, pair[0].contract_id))
