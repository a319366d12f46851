"""
Park-hours normalizers.

Opening and closing times pass through in whatever style the upstream uses
("9:00 AM" from touringplans, "09:00" 24-hour from the others); they are not
reconciled.
"""

from datetime import date, datetime
from typing import Any

from src.models import ParkHoursEntry
from src.normalizers.common import dicts, require_items, require_mapping
from src.parks import Park


def _special_events(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        names = []
        for event in value:
            if isinstance(event, dict):
                event = event.get("name")
            if event:
                names.append(str(event))
        return ", ".join(names) or None
    return None


def normalize_touringplans_hours(raw: Any, park: Park) -> list[ParkHoursEntry]:
    """touringplans: ``operating_hours`` for today, optional ``special_events``."""
    data = require_mapping(raw, "touringplans_hours")
    hours = data.get("operating_hours")
    if not isinstance(hours, dict) or not hours.get("open") or not hours.get("close"):
        return []

    return [
        ParkHoursEntry(
            date=date.today().isoformat(),
            opening_time=str(hours["open"]),
            closing_time=str(hours["close"]),
            type="Operating",
            special_hours=_special_events(data.get("special_events")),
        )
    ]


def normalize_queue_times_calendar(raw: Any, park: Park) -> list[ParkHoursEntry]:
    """queue-times calendar: one row per day with 24-hour times."""
    entries = []
    for day in dicts(require_items(raw, "queue_times_calendar", "days", "calendar")):
        opening, closing = day.get("opening_time"), day.get("closing_time")
        if not day.get("date") or not opening or not closing:
            continue
        entries.append(
            ParkHoursEntry(
                date=str(day["date"])[:10],
                opening_time=str(opening)[:5],
                closing_time=str(closing)[:5],
                type=str(day.get("type") or "Operating"),
                special_hours=day.get("special_hours") or None,
            )
        )
    return entries


def _clock(value: Any) -> str | None:
    """'2026-10-19T09:00:00-04:00' -> '09:00' (park-local wall clock)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%H:%M")
    except ValueError:
        return str(value)


def normalize_themeparks_schedule(raw: Any, park: Park) -> list[ParkHoursEntry]:
    """
    themeparks.wiki schedule: ``OPERATING`` rows become entries; other row
    types (early entry, ticketed events) annotate the entry for their date.
    """
    data = require_mapping(raw, "themeparks_schedule")
    rows = data.get("schedule") if isinstance(data.get("schedule"), list) else []

    by_date: dict[str, ParkHoursEntry] = {}
    specials: dict[str, list[str]] = {}

    for row in dicts(rows):
        day = str(row.get("date") or "")[:10]
        opening, closing = _clock(row.get("openingTime")), _clock(row.get("closingTime"))
        if not day or not opening or not closing:
            continue

        if row.get("type") == "OPERATING":
            if day not in by_date:
                by_date[day] = ParkHoursEntry(date=day, opening_time=opening, closing_time=closing)
        else:
            label = row.get("description") or str(row.get("type") or "special hours").replace("_", " ").title()
            specials.setdefault(day, []).append(f"{label} {opening}-{closing}")

    for day, notes in specials.items():
        if day in by_date:
            by_date[day].special_hours = "; ".join(notes)

    return [by_date[day] for day in sorted(by_date)]
