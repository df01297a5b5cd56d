"""Tests for iCalendar export."""

from datetime import date
from urllib.parse import parse_qs, urlparse

from contractflow.calendar import (
    build_ics,
    event_description,
    event_uid,
    google_calendar_url,
    ical_escape,
    vevent,
)
from contractflow.engine.milestones import project_milestones
from contractflow.engine.resolver import resolve_active_contracts
from contractflow.models import MilestoneEvent, MilestoneType, Provenance


def closing(**fields) -> MilestoneEvent:
    fields.setdefault("property_address", "12 Oak St, Springfield")
    return MilestoneEvent(date=date(2025, 3, 1), milestone=MilestoneType.CLOSING,
                          contract_id="C1", **fields)


class TestEscaping:

    def test_special_characters(self):
        assert ical_escape("a;b,c\\d\ne") == "a\\;b\\,c\\\\d\\ne"


class TestVevent:

    def test_one_hour_window_on_milestone_date(self):
        block = vevent(closing(), start_hour=9)
        assert "DTSTART:20250301T090000" in block
        assert "DTEND:20250301T100000" in block

    def test_uid_is_stable(self):
        assert event_uid(closing()) == "C1-closing@contractflow"
        assert event_uid(closing()) == event_uid(closing(property_address="elsewhere"))

    def test_summary_and_location_escaped(self):
        block = vevent(closing())
        assert "SUMMARY:Closing - 12 Oak St\\, Springfield" in block
        assert "LOCATION:12 Oak St\\, Springfield" in block

    def test_alarm(self):
        assert "TRIGGER:-P2D" in vevent(closing(), alarm_days=2)
        assert "VALARM" not in vevent(closing(), alarm_days=0)

    def test_description_mentions_counter_offer(self):
        assert event_description(closing()) == "Closing deadline"
        inherited = closing(counter_offer_number=2, provenance=Provenance.COUNTER_OFFER_ORIGINAL_DATES)
        assert event_description(inherited) == "Closing deadline (Counter Offer #2, original contract dates)"


class TestBuildIcs:

    def test_calendar_wrapper(self, scenario):
        [active] = resolve_active_contracts(scenario)
        ics = build_ics(project_milestones(active), cal_name="My Deals", tzid="America/Denver")
        assert ics.startswith("BEGIN:VCALENDAR\r\n")
        assert ics.endswith("END:VCALENDAR\r\n")
        assert "X-WR-CALNAME:My Deals" in ics
        assert "X-WR-TIMEZONE:America/Denver" in ics
        assert ics.count("BEGIN:VEVENT") == 2
        assert "\n" not in ics.replace("\r\n", "")

    def test_empty_calendar_is_valid(self):
        ics = build_ics([])
        assert "BEGIN:VEVENT" not in ics
        assert ics.endswith("END:VCALENDAR\r\n")


def test_google_calendar_url():
    url = google_calendar_url(closing(), start_hour=10)
    query = parse_qs(urlparse(url).query)
    assert query["action"] == ["TEMPLATE"]
    assert query["dates"] == ["20250301T100000/20250301T110000"]
    assert query["text"] == ["Closing - 12 Oak St, Springfield"]
