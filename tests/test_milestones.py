"""Tests for milestone projection and the dashboard/calendar views."""

from datetime import date, timedelta

import pytest

from conftest import make_contract
from contractflow.engine.milestones import (
    classify,
    closing_this_month,
    emailable_contracts,
    is_overdue,
    is_valid_email,
    open_contracts,
    project_all,
    project_milestones,
    upcoming_dates,
)
from contractflow.engine.resolver import resolve_active_contracts
from contractflow.models import (
    ActiveContract,
    ContractStatus,
    DeadlineStatus,
    MilestoneEvent,
    MilestoneType,
    RepresentingSide,
)


def active(**fields) -> ActiveContract:
    [record] = resolve_active_contracts([make_contract("A", **fields)])
    return record


def event(when: date, completed: bool = False, milestone=MilestoneType.INSPECTION, cid="A") -> MilestoneEvent:
    return MilestoneEvent(date=when, milestone=milestone, completed=completed, contract_id=cid)


# ============================================================================
# Projection
# ============================================================================

class TestProjection:

    def test_null_dates_are_omitted(self):
        events = project_milestones(active(appraisal_date=date(2025, 2, 1)))
        assert [e.milestone for e in events] == [MilestoneType.APPRAISAL]

    def test_contract_date_never_projected(self):
        assert project_milestones(active(contract_date=date(2025, 1, 1))) == []

    def test_all_six_milestones(self):
        d = date(2025, 2, 1)
        record = active(**{m.date_field: d for m in MilestoneType})
        assert [e.milestone for e in project_milestones(record)] == list(MilestoneType)

    def test_completion_flags_carried(self):
        record = active(inspection_date=date(2025, 2, 1), inspection_completed=True,
                        loan_contingency_date=date(2025, 2, 5))
        by_type = {e.milestone: e.completed for e in project_milestones(record)}
        assert by_type == {MilestoneType.INSPECTION: True, MilestoneType.LOAN_CONTINGENCY: False}

    def test_closing_always_projected_incomplete(self):
        record = active(closing_date=date(2025, 3, 1), closing_completed=True)
        [closing] = project_milestones(record)
        assert closing.milestone == MilestoneType.CLOSING
        assert closing.completed is False

    def test_event_carries_contract_details(self):
        [e] = project_milestones(active(inspection_date=date(2025, 2, 1)))
        assert e.contract_id == "A"
        assert e.property_address == "A Main St"
        assert e.label == "Inspection"

    def test_project_all_flattens(self):
        records = resolve_active_contracts([
            make_contract("A", inspection_date=date(2025, 2, 1)),
            make_contract("B", closing_date=date(2025, 3, 1), appraisal_date=date(2025, 2, 10)),
        ])
        assert len(project_all(records)) == 3


# ============================================================================
# Upcoming / overdue
# ============================================================================

class TestUpcoming:

    def test_excludes_completed_and_sorts(self):
        events = [
            event(date(2025, 3, 1)),
            event(date(2025, 1, 20), completed=True),
            event(date(2025, 2, 1)),
        ]
        assert [e.date for e in upcoming_dates(events)] == [date(2025, 2, 1), date(2025, 3, 1)]

    def test_capped_at_eight_by_default(self):
        events = [event(date(2025, 1, 1) + timedelta(days=i)) for i in range(12)]
        result = upcoming_dates(events)
        assert len(result) == 8
        assert result[-1].date == date(2025, 1, 8)

    def test_no_limit(self):
        events = [event(date(2025, 1, 1) + timedelta(days=i)) for i in range(12)]
        assert len(upcoming_dates(events, limit=None)) == 12


class TestOverdue:

    def test_yesterday_incomplete_is_overdue(self, today):
        assert is_overdue(event(today - timedelta(days=1)), today)

    def test_yesterday_completed_is_not_overdue(self, today):
        assert not is_overdue(event(today - timedelta(days=1), completed=True), today)

    def test_today_is_not_overdue(self, today):
        assert not is_overdue(event(today), today)

    @pytest.mark.parametrize("offset, status", [
        (-1, DeadlineStatus.OVERDUE),
        (0, DeadlineStatus.DUE_TODAY),
        (3, DeadlineStatus.DUE_SOON),
        (4, DeadlineStatus.UPCOMING),
    ])
    def test_classify(self, today, offset, status):
        assert classify(event(today + timedelta(days=offset)), today) == status

    def test_classify_completed(self, today):
        assert classify(event(today - timedelta(days=5), completed=True), today) == DeadlineStatus.COMPLETED


# ============================================================================
# Emailable / open contracts
# ============================================================================

class TestEmailable:

    @pytest.mark.parametrize("value, ok", [
        ("dana@example.com", True),
        ("dana@example", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_email(self, value, ok):
        assert is_valid_email(value) is ok

    def test_uses_represented_side(self):
        buyer_side = active(buyer_email="b@example.com", closing_date=date(2025, 3, 1))
        seller_side = active(representing_side=RepresentingSide.SELLER, buyer_email="b@example.com",
                             closing_date=date(2025, 3, 1))
        assert emailable_contracts([buyer_side, seller_side]) == [buyer_side]

    def test_requires_dates(self):
        assert emailable_contracts([active(buyer_email="b@example.com")]) == []

    @pytest.mark.parametrize("status", [ContractStatus.CANCELLED, ContractStatus.SUPERSEDED])
    def test_excludes_inactive(self, status):
        record = active(buyer_email="b@example.com", closing_date=date(2025, 3, 1), status=status)
        assert emailable_contracts([record]) == []


class TestOpenContracts:

    def test_filters_finished_records(self):
        records = [
            active(),
            active(status=ContractStatus.CANCELLED),
            active(status=ContractStatus.CLOSED),
            active(closing_completed=True, status=ContractStatus.CLOSED),
            active(status=ContractStatus.INSPECTION),
        ]
        assert [r.status for r in open_contracts(records)] == [ContractStatus.PENDING, ContractStatus.INSPECTION]

    def test_closing_this_month(self, today):
        records = [
            active(closing_date=date(2025, 1, 28)),
            active(closing_date=date(2025, 1, 2), closing_completed=True),
            active(closing_date=date(2025, 2, 1)),
            active(),
        ]
        assert closing_this_month(records, today) == 1
