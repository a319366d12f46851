"""Supported parks and their upstream identifiers."""

from dataclasses import dataclass


class UnknownParkError(ValueError):
    """Raised when a park identifier is not in the supported park table."""

    def __init__(self, park_id: str):
        self.park_id = park_id
        super().__init__(
            f"Unknown park '{park_id}'. Supported parks: {', '.join(sorted(PARKS))}"
        )


@dataclass(frozen=True)
class Park:
    park_id: str  # slug used by the mobile client and touringplans
    name: str
    queue_times_id: int
    wiki_entity: str  # themeparks.wiki entity slug


PARKS: dict[str, Park] = {
    "magic-kingdom": Park("magic-kingdom", "Magic Kingdom", 6, "WaltDisneyWorldMagicKingdom"),
    "epcot": Park("epcot", "EPCOT", 5, "WaltDisneyWorldEpcot"),
    "hollywood-studios": Park(
        "hollywood-studios", "Hollywood Studios", 7, "WaltDisneyWorldHollywoodStudios"
    ),
    "animal-kingdom": Park("animal-kingdom", "Animal Kingdom", 8, "WaltDisneyWorldAnimalKingdom"),
}

DEFAULT_PARK = "magic-kingdom"


def resolve_park(park_id: str) -> Park:
    """Look up a park by slug. Never guesses: unknown slugs raise UnknownParkError."""
    park = PARKS.get((park_id or "").strip().lower())
    if park is None:
        raise UnknownParkError(park_id)
    return park


def is_supported(park_id: str) -> bool:
    return (park_id or "").strip().lower() in PARKS
