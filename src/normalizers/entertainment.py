"""Entertainment normalizers: shows, parades, fireworks, castle shows, streetmosphere."""

import re
from datetime import datetime
from typing import Any

from src.models import EntertainmentEvent, EventCategory
from src.normalizers.common import (
    as_optional_int,
    as_str_list,
    dicts,
    record_id,
    require_items,
    require_mapping,
    slugify,
)
from src.parks import Park

# Checked in order; the first category with a matching pattern wins, so more
# specific categories come before the generic "show" default.
CATEGORY_PATTERNS = [
    (EventCategory.PARADE, [r"parade"]),
    (
        EventCategory.FIREWORKS,
        [
            r"fireworks",
            r"spectacular",
            r"happily ever after",
            r"epcot forever",
            r"luminous",
            r"harmonious",
            r"disney enchantment",
        ],
    ),
    (EventCategory.CHARACTER_MEET, [r"meet", r"character"]),
]

_COMPILED_CATEGORY_PATTERNS = [
    (category, [re.compile(p, re.IGNORECASE) for p in patterns])
    for category, patterns in CATEGORY_PATTERNS
]

ENTERTAINMENT_CATEGORY_WORDS = ("show", "parade", "fireworks", "entertainment")


def classify_entertainment(name: Any) -> EventCategory:
    """Map a free-text event name to a category; defaults to show."""
    name = "" if name is None else str(name)
    for category, compiled in _COMPILED_CATEGORY_PATTERNS:
        if any(pattern.search(name) for pattern in compiled):
            return category
    return EventCategory.SHOW


def _showtime(value: Any) -> str | None:
    """ISO start time -> '3:00 PM'; non-ISO strings pass through."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return parsed.strftime("%I:%M %p").lstrip("0")


def normalize_touringplans_entertainment(raw: Any, park: Park) -> list[EntertainmentEvent]:
    """touringplans entertainment/attractions list, filtered to entertainment categories."""
    events = []
    for item in dicts(require_items(raw, "touringplans_entertainment", "entertainment", "items")):
        name = item.get("name")
        category = str(item.get("category") or "").lower()
        if not name or not any(word in category for word in ENTERTAINMENT_CATEGORY_WORDS):
            continue
        events.append(
            EntertainmentEvent(
                id=record_id(item, name),
                name=str(name),
                category=classify_entertainment(name),
                times=as_str_list(item.get("showtimes") or item.get("times"), ["Check Disney app"]),
                location=str(item.get("location") or item.get("area") or "Various locations"),
                duration=as_optional_int(item.get("duration")),
            )
        )
    return events


def normalize_themeparks_showtimes(raw: Any, park: Park) -> list[EntertainmentEvent]:
    """themeparks.wiki ``/live``: ``liveData[]`` shows with ``showtimes[].startTime``."""
    data = require_mapping(raw, "themeparks_showtimes")
    live = data.get("liveData") if isinstance(data.get("liveData"), list) else []
    events = []

    for item in dicts(live):
        if item.get("entityType") != "SHOW" or not item.get("name"):
            continue
        showtimes = item.get("showtimes") if isinstance(item.get("showtimes"), list) else []
        times = [t for t in (_showtime(s.get("startTime")) for s in dicts(showtimes)) if t]
        events.append(
            EntertainmentEvent(
                id=record_id(item, item["name"]),
                name=str(item["name"]),
                category=classify_entertainment(item["name"]),
                times=times or ["Check Disney app"],
                location=str(item.get("location") or "Various locations"),
            )
        )
    return events


def normalize_castle_shows(raw: Any, park: Park) -> list[EntertainmentEvent]:
    """Castle stage shows: items whose location mentions the castle."""
    if isinstance(raw, dict) and not any(k in raw for k in ("castleShows", "shows")):
        items = [raw]
    else:
        items = require_items(raw, "castle_shows", "castleShows", "shows")

    events = []
    for item in dicts(items):
        name = item.get("name")
        if not name or "castle" not in str(item.get("location") or "").lower():
            continue
        events.append(
            EntertainmentEvent(
                id=str(item["id"]) if item.get("id") else f"castle_{slugify(name)}",
                name=str(name),
                category=EventCategory.SHOW,
                times=as_str_list(item.get("times") or item.get("schedule"), ["Times vary daily"]),
                location="Cinderella Castle",
                duration=as_optional_int(item.get("duration")) or 15,
                description=item.get("description") or "Castle entertainment",
            )
        )
    return events


def normalize_streetmosphere(raw: Any, park: Park) -> list[EntertainmentEvent]:
    """Roaming street performers."""
    events = []
    for item in dicts(require_items(raw, "streetmosphere", "streetmosphere")):
        name = item.get("name")
        if not name:
            continue
        if item.get("type") != "streetmosphere" and item.get("category") != "street-entertainment":
            continue
        events.append(
            EntertainmentEvent(
                id=record_id(item, name),
                name=str(name),
                category=EventCategory.SHOW,
                times=as_str_list(item.get("times"), ["Throughout the day"]),
                location=str(item.get("location") or item.get("area") or "Various locations"),
                duration=as_optional_int(item.get("duration")) or 15,
                description=item.get("description"),
            )
        )
    return events


def normalize_touringplans_parades(raw: Any, park: Park) -> list[EntertainmentEvent]:
    """Parade-only view of a touringplans shows/entertainment list."""
    events = []
    for item in dicts(require_items(raw, "touringplans_parades", "shows", "entertainment")):
        name = item.get("name")
        if not name or "parade" not in str(item.get("category") or "").lower():
            continue
        events.append(
            EntertainmentEvent(
                id=record_id(item, name),
                name=str(name),
                category=EventCategory.PARADE,
                times=as_str_list(item.get("showtimes") or item.get("times"), ["Check Disney app"]),
                location=str(item.get("location") or "Main Street USA"),
                duration=as_optional_int(item.get("duration")) or 20,
            )
        )
    return events
