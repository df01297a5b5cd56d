"""Milestone projection and the views built on it.

Turns active contracts into dated milestone events and filters them for the
dashboard, the overdue badge, and the client timeline mailer.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Iterable

from contractflow.models import (
    INACTIVE_STATUSES,
    ActiveContract,
    ContractStatus,
    DeadlineStatus,
    MilestoneEvent,
    MilestoneType,
)

DEFAULT_UPCOMING_LIMIT = 8
DUE_SOON_DAYS = 3

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def project_milestones(contract: ActiveContract) -> list[MilestoneEvent]:
    """One event per milestone with a date on the active record.

    Closing is always projected as incomplete; it stays visible until the
    contract itself is closed.
    """
    events: list[MilestoneEvent] = []
    for milestone in MilestoneType:
        when = contract.milestone_date(milestone)
        if when is None:
            continue
        completed = False if milestone == MilestoneType.CLOSING else contract.milestone_completed(milestone)
        events.append(MilestoneEvent(
            date=when,
            milestone=milestone,
            completed=completed,
            contract_id=contract.id,
            property_address=contract.property_address,
            provenance=contract.provenance,
            counter_offer_number=contract.counter_offer_number,
        ))
    return events


def project_all(contracts: Iterable[ActiveContract]) -> list[MilestoneEvent]:
    events: list[MilestoneEvent] = []
    for c in contracts:
        events.extend(project_milestones(c))
    return events


def upcoming_dates(events: Iterable[MilestoneEvent],
                   limit: int | None = DEFAULT_UPCOMING_LIMIT) -> list[MilestoneEvent]:
    """Incomplete events, soonest first, capped at ``limit``."""
    pending = sorted((e for e in events if not e.completed), key=lambda e: e.date)
    return pending if limit is None else pending[:limit]


def is_overdue(event: MilestoneEvent, today: date | None = None) -> bool:
    today = today or date.today()
    return event.date < today and not event.completed


def classify(event: MilestoneEvent, today: date | None = None) -> DeadlineStatus:
    """Deadline status of an event relative to ``today``."""
    today = today or date.today()
    if event.completed:
        return DeadlineStatus.COMPLETED
    days_until = (event.date - today).days
    if days_until < 0:
        return DeadlineStatus.OVERDUE
    if days_until == 0:
        return DeadlineStatus.DUE_TODAY
    if days_until <= DUE_SOON_DAYS:
        return DeadlineStatus.DUE_SOON
    return DeadlineStatus.UPCOMING


def is_valid_email(value: str | None) -> bool:
    return bool(value) and _EMAIL_RE.search(value) is not None


def emailable_contracts(contracts: Iterable[ActiveContract]) -> list[ActiveContract]:
    """Active records that can receive a client timeline email."""
    return [
        c for c in contracts
        if is_valid_email(c.client_email())
        and c.status not in INACTIVE_STATUSES
        and c.has_milestone_dates()
    ]


def open_contracts(contracts: Iterable[ActiveContract]) -> list[ActiveContract]:
    """Active records still in progress (not cancelled, superseded or closed)."""
    return [
        c for c in contracts
        if c.status not in INACTIVE_STATUSES
        and c.status != ContractStatus.CLOSED
        and not c.closing_completed
    ]


def closing_this_month(contracts: Iterable[ActiveContract], today: date | None = None) -> int:
    today = today or date.today()
    return sum(
        1 for c in contracts
        if c.closing_date is not None
        and not c.closing_completed
        and (c.closing_date.year, c.closing_date.month) == (today.year, today.month)
    )
