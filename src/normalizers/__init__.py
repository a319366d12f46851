"""
Response normalizers, one per upstream format tag.

Each normalizer is a pure ``fn(raw, park) -> list[record]``. Missing fields
fall back to documented defaults; a body of the wrong kind entirely raises
``ShapeError``, which callers treat as a failed source.
"""

from typing import Any, Callable

from src.normalizers.characters import (
    normalize_themeparkiq_html,
    normalize_touringplans_characters,
    parse_character_schedule,
)
from src.normalizers.common import ShapeError
from src.normalizers.entertainment import (
    classify_entertainment,
    normalize_castle_shows,
    normalize_streetmosphere,
    normalize_themeparks_showtimes,
    normalize_touringplans_entertainment,
    normalize_touringplans_parades,
)
from src.normalizers.hours import (
    normalize_queue_times_calendar,
    normalize_themeparks_schedule,
    normalize_touringplans_hours,
)
from src.normalizers.wait_times import (
    normalize_queue_times,
    normalize_themeparks_live,
    normalize_touringplans_flat,
)
from src.parks import Park

Normalizer = Callable[[Any, Park], list]

NORMALIZERS: dict[str, Normalizer] = {
    # wait times
    "queue_times": normalize_queue_times,
    "touringplans_flat": normalize_touringplans_flat,
    "themeparks_live": normalize_themeparks_live,
    # park hours
    "touringplans_hours": normalize_touringplans_hours,
    "queue_times_calendar": normalize_queue_times_calendar,
    "themeparks_schedule": normalize_themeparks_schedule,
    # entertainment
    "touringplans_entertainment": normalize_touringplans_entertainment,
    "themeparks_showtimes": normalize_themeparks_showtimes,
    "castle_shows": normalize_castle_shows,
    "streetmosphere": normalize_streetmosphere,
    "touringplans_parades": normalize_touringplans_parades,
    # characters
    "touringplans_characters": normalize_touringplans_characters,
    "themeparkiq_html": normalize_themeparkiq_html,
}

# Formats fetched as text rather than JSON
TEXT_FORMATS = frozenset({"themeparkiq_html"})


def normalize(format_tag: str, raw: Any, park: Park) -> list:
    """Dispatch to the normalizer registered for ``format_tag``."""
    try:
        fn = NORMALIZERS[format_tag]
    except KeyError:
        raise KeyError(f"No normalizer registered for format '{format_tag}'") from None
    return fn(raw, park)


__all__ = [
    "NORMALIZERS",
    "TEXT_FORMATS",
    "Normalizer",
    "ShapeError",
    "classify_entertainment",
    "normalize",
    "parse_character_schedule",
]
