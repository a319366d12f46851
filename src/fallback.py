"""
Static curated data for when live acquisition fails.

Tables come from ``config/fallback.yaml``. Every accessor builds fresh record
objects so a caller mutating a fallback Result never changes the table.
"""

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from src.config import FALLBACK_PATH, load_yaml_config
from src.models import (
    FALLBACK_SOURCE,
    AttractionStatus,
    CharacterMeet,
    Domain,
    EntertainmentEvent,
    EventCategory,
    ParkHoursEntry,
    Result,
)
from src.parks import Park

logger = logging.getLogger(__name__)

STATIC_SOURCE = "static"


def _event(item: dict, source: str) -> EntertainmentEvent:
    category = EventCategory(item["type"])
    kwargs = dict(
        id=item["id"],
        name=item["name"],
        times=list(item.get("times") or ["Check Disney app"]),
        location=item.get("location", "Various locations"),
        duration=item.get("duration"),
        source=source,
        description=item.get("description"),
    )
    if category == EventCategory.CHARACTER_MEET:
        return CharacterMeet(characters=list(item.get("characters") or []), **kwargs)
    return EntertainmentEvent(category=category, **kwargs)


class FallbackTables:
    """Read-only view over the fallback document, per park."""

    def __init__(self, data: dict):
        self._data = data

    def _rows(self, section: str, park: Park) -> list:
        return list(self._data.get(section, {}).get(park.park_id, []))

    def park_hours(self, park: Park, today: Optional[date] = None) -> list[ParkHoursEntry]:
        """Today and tomorrow at the park's usual hours."""
        hours = self._data.get("park_hours", {}).get(park.park_id)
        if not hours:
            return []
        today = today or date.today()
        return [
            ParkHoursEntry(
                date=(today + timedelta(days=offset)).isoformat(),
                opening_time=hours["open"],
                closing_time=hours["close"],
            )
            for offset in (0, 1)
        ]

    def wait_times(self, park: Park) -> list[AttractionStatus]:
        return [
            AttractionStatus(
                id=row["id"],
                name=row["name"],
                land=row["land"],
                wait_time=row.get("wait_time", 0),
                is_open=row.get("is_open", False),
                fast_pass_available=row.get("fast_pass", False),
            )
            for row in self._rows("wait_times", park)
        ]

    def entertainment(self, park: Park) -> list[EntertainmentEvent]:
        return [_event(row, FALLBACK_SOURCE) for row in self._rows("entertainment", park)]

    def parades(self, park: Park) -> list[EntertainmentEvent]:
        return [_event(row, FALLBACK_SOURCE) for row in self._rows("parades", park)]

    def character_baseline(self, park: Park) -> list[CharacterMeet]:
        """Fixed meet-and-greet locations, merged into every entertainment response."""
        return [_event(row, STATIC_SOURCE) for row in self._rows("character_baseline", park)]

    def result(self, domain: Domain, park: Park) -> Result:
        """A fallback Result for ``domain``: ``source="fallback"``, freshness 0."""
        if domain == Domain.PARK_HOURS:
            data = self.park_hours(park)
        elif domain == Domain.WAIT_TIMES:
            data = self.wait_times(park)
        elif domain == Domain.PARADES:
            data = self.parades(park)
        elif domain == Domain.CHARACTERS:
            data = self.character_baseline(park)
        else:
            data = self.entertainment(park)

        return Result(
            park=park.park_id,
            domain=domain,
            data=data,
            source=FALLBACK_SOURCE,
            freshness_score=0,
        )


def load_fallback(path: Path = FALLBACK_PATH) -> FallbackTables:
    """Load and validate ``config/fallback.yaml``."""
    return FallbackTables(load_yaml_config(path, "fallback.schema.json"))
