"""iCalendar (RFC 5545) export of milestone events."""

from __future__ import annotations

import urllib.parse
from datetime import datetime, time, timedelta, timezone
from typing import Iterable

from contractflow.models import MilestoneEvent, Provenance

PRODID = "-//ContractFlow//Deadlines//EN"
EVENT_DURATION = timedelta(hours=1)


def ical_escape(text: str) -> str:
    """Escape special chars per RFC 5545."""
    return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def event_uid(event: MilestoneEvent) -> str:
    """Stable per contract and milestone, so re-exports update instead of duplicating."""
    return f"{event.contract_id}-{event.milestone.value}@contractflow"


def event_window(event: MilestoneEvent, start_hour: int = 9) -> tuple[datetime, datetime]:
    start = datetime.combine(event.date, time(hour=start_hour))
    return start, start + EVENT_DURATION


def event_summary(event: MilestoneEvent) -> str:
    summary = event.label
    if event.property_address:
        summary += f" - {event.property_address}"
    return summary


def event_description(event: MilestoneEvent) -> str:
    desc = f"{event.label} deadline"
    if event.counter_offer_number is not None:
        desc += f" (Counter Offer #{event.counter_offer_number}"
        if event.provenance == Provenance.COUNTER_OFFER_ORIGINAL_DATES:
            desc += ", original contract dates"
        desc += ")"
    return desc


def vevent(event: MilestoneEvent, start_hour: int = 9, alarm_days: int = 1,
           stamp: datetime | None = None) -> str:
    """Build a single VEVENT block with a one-hour window."""
    start, end = event_window(event, start_hour)
    stamp = stamp or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VEVENT",
        f"UID:{event_uid(event)}",
        f"DTSTAMP:{stamp.strftime('%Y%m%dT%H%M%SZ')}",
        f"DTSTART:{start.strftime('%Y%m%dT%H%M%S')}",
        f"DTEND:{end.strftime('%Y%m%dT%H%M%S')}",
        f"SUMMARY:{ical_escape(event_summary(event))}",
        f"DESCRIPTION:{ical_escape(event_description(event))}",
    ]
    if event.property_address:
        lines.append(f"LOCATION:{ical_escape(event.property_address)}")
    lines.extend([
        f"CATEGORIES:{event.label}",
        "STATUS:CONFIRMED",
        "SEQUENCE:0",
    ])
    if alarm_days > 0:
        lines.extend([
            "BEGIN:VALARM",
            "ACTION:DISPLAY",
            f"DESCRIPTION:{ical_escape(event.label)} in {alarm_days} day(s)",
            f"TRIGGER:-P{alarm_days}D",
            "END:VALARM",
        ])
    lines.append("END:VEVENT")
    return "\r\n".join(lines)


def build_ics(events: Iterable[MilestoneEvent], cal_name: str = "ContractFlow Deadlines",
              start_hour: int = 9, alarm_days: int = 1, tzid: str = "") -> str:
    """Wrap one VEVENT per event in a VCALENDAR."""
    header = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        f"X-WR-CALNAME:{ical_escape(cal_name)}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    if tzid:
        header.append(f"X-WR-TIMEZONE:{tzid}")
    stamp = datetime.now(timezone.utc)
    blocks = [vevent(e, start_hour, alarm_days, stamp) for e in events]
    return "\r\n".join(header + blocks + ["END:VCALENDAR"]) + "\r\n"


def google_calendar_url(event: MilestoneEvent, start_hour: int = 9) -> str:
    """Link that opens a pre-filled Google Calendar event."""
    start, end = event_window(event, start_hour)
    params = {
        "action": "TEMPLATE",
        "text": event_summary(event),
        "dates": f"{start.strftime('%Y%m%dT%H%M%S')}/{end.strftime('%Y%m%dT%H%M%S')}",
        "details": event_description(event),
        "location": event.property_address,
    }
    return "https://calendar.google.com/calendar/render?" + urllib.parse.urlencode(params)
