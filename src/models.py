"""
Canonical record shapes produced by the acquisition layer.

Every upstream format is normalized into these records before it reaches a
cache or a caller. ``to_dict()`` renders the camelCase JSON shape the mobile
client consumes.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional


def utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class Domain(str, Enum):
    """Independent data categories, each with its own cache and sources."""

    PARK_HOURS = "park_hours"
    WAIT_TIMES = "wait_times"
    ENTERTAINMENT = "entertainment"
    CHARACTERS = "characters"
    PARADES = "parades"


class EventCategory(str, Enum):
    SHOW = "show"
    PARADE = "parade"
    FIREWORKS = "fireworks"
    CHARACTER_MEET = "character_meet"


FALLBACK_SOURCE = "fallback"


@dataclass
class AttractionStatus:
    id: str
    name: str
    land: str
    wait_time: int = 0
    is_open: bool = False
    fast_pass_available: bool = False
    last_updated: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "land": self.land,
            "waitTime": self.wait_time,
            "isOpen": self.is_open,
            "fastPassAvailable": self.fast_pass_available,
            "lastUpdated": self.last_updated,
        }


@dataclass
class EntertainmentEvent:
    id: str
    name: str
    category: EventCategory
    times: list[str] = field(default_factory=list)
    location: str = "Various locations"
    duration: Optional[int] = None
    source: str = "unknown"
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.category.value,
            "times": list(self.times),
            "location": self.location,
            "duration": self.duration,
            "source": self.source,
        }
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class CharacterMeet(EntertainmentEvent):
    category: EventCategory = EventCategory.CHARACTER_MEET
    characters: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["characters"] = list(self.characters)
        return data


@dataclass
class ParkHoursEntry:
    date: str  # YYYY-MM-DD
    opening_time: str
    closing_time: str
    type: str = "Operating"
    special_hours: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "date": self.date,
            "openingTime": self.opening_time,
            "closingTime": self.closing_time,
            "type": self.type,
        }
        if self.special_hours:
            data["specialHours"] = self.special_hours
        return data


@dataclass
class Result:
    """
    Outcome of one acquisition for one park and domain.

    ``source`` tells the caller where the data came from (an upstream name,
    ``aggregated`` or ``fallback``); ``freshness_score`` runs from 0 for
    static fallback to 100 for a just-fetched live response.
    """

    park: str
    domain: Domain
    data: list
    source: str
    last_updated: str = field(default_factory=utc_now_iso)
    freshness_score: int = 100
    from_cache: bool = False
    sources: dict[str, str] = field(default_factory=dict)
    views: dict[str, list] = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK_SOURCE

    def as_cache_hit(self, freshness_score: int) -> "Result":
        """Copy of this result marked as served from cache; ``data`` is shared."""
        return replace(self, from_cache=True, freshness_score=freshness_score)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "park": self.park,
            "data": [record.to_dict() for record in self.data],
            "source": self.source,
            "lastUpdated": self.last_updated,
            "freshnessScore": self.freshness_score,
            "fromCache": self.from_cache,
            "totalItems": len(self.data),
        }
        if self.sources:
            data["sources"] = dict(self.sources)
        for name, records in self.views.items():
            data[name] = [record.to_dict() for record in records]
        return data
