"""
Character meet-and-greet normalizers.

The Theme Park IQ schedule page has shipped in two layouts. Each layout has
its own extraction strategy; strategies are tried in order and return
``None`` when the page does not use their layout, so "page reachable but
layout unrecognized" stays distinguishable from "page unreachable".
"""

import logging
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup, Tag

from src.models import CharacterMeet
from src.normalizers.common import (
    ShapeError,
    as_optional_int,
    as_str_list,
    dicts,
    record_id,
    require_items,
    slugify,
)
from src.parks import Park

logger = logging.getLogger(__name__)

THEME_PARK_IQ = "theme_park_iq"


def normalize_touringplans_characters(raw: Any, park: Park) -> list[CharacterMeet]:
    """touringplans-style character list (bare list or ``{"characters": [...]}``)."""
    meets = []
    for item in dicts(require_items(raw, "touringplans_characters", "characters")):
        name = item.get("name")
        if not name:
            continue
        if item.get("type") != "character" and item.get("category") != "character-meet":
            continue

        characters = item.get("characters")
        if not characters and item.get("character"):
            characters = [item["character"]]

        meets.append(
            CharacterMeet(
                id=record_id(item, name),
                name=str(name),
                characters=as_str_list(characters, ["Various Characters"]),
                times=as_str_list(item.get("times") or item.get("schedule"), ["Times vary - check Disney app"]),
                location=str(item.get("location") or item.get("venue") or "Check Disney app"),
                duration=as_optional_int(item.get("duration")) or 30,
            )
        )
    return meets


# --- Theme Park IQ HTML ---


def _text(node: Optional[Tag]) -> str:
    return node.get_text(" ", strip=True) if node else ""


def _meet(name: str, location: str, times: list[str]) -> CharacterMeet:
    return CharacterMeet(
        id=f"{slugify(location)}_{slugify(name)}" if location else slugify(name),
        name=f"{name} Meet & Greet",
        characters=[name],
        times=times or ["Check Disney app"],
        location=location or "Check Disney app",
        source=THEME_PARK_IQ,
    )


def _parse_card_layout(soup: BeautifulSoup, park: Park) -> Optional[list[CharacterMeet]]:
    """Newer layout: one container per character with labelled children."""
    cards = soup.select(".character-card, [data-character]")
    if not cards:
        return None

    meets = []
    for card in cards:
        name = _text(card.select_one(".character-name")) or card.get("data-character", "")
        park_label = card.get("data-park") or _text(card.select_one(".park"))
        if not name or park.name.lower() not in park_label.lower():
            continue
        location = _text(card.select_one(".character-location, .location"))
        times = [_text(t) for t in card.select(".times li, .time") if _text(t)]
        meets.append(_meet(name, location, times))
    return meets


def _parse_heading_layout(soup: BeautifulSoup, park: Park) -> Optional[list[CharacterMeet]]:
    """
    Older layout: ``h2`` park headings, ``h3`` character headings, and the
    location paragraph and times list as the heading's following siblings.
    """
    headings = soup.find_all("h3")
    matched = False
    meets = []

    for heading in headings:
        name = _text(heading)
        location, times = "", []
        for sibling in heading.find_next_siblings():
            if sibling.name in ("h2", "h3"):
                break
            if sibling.name == "p" and not location:
                location = _text(sibling)
            elif sibling.name == "ul":
                times.extend(_text(li) for li in sibling.find_all("li") if _text(li))

        if not name or not (location or times):
            continue
        matched = True

        section = heading.find_previous("h2")
        context = f"{location} {_text(section)}".lower()
        if park.name.lower() not in context:
            continue

        # "Town Square Theater - Magic Kingdom" -> "Town Square Theater"
        venue = location.split(" - ")[0].strip() if location else ""
        meets.append(_meet(name, venue, times))

    return meets if matched else None


SCHEDULE_STRATEGIES: list[Callable[[BeautifulSoup, Park], Optional[list[CharacterMeet]]]] = [
    _parse_card_layout,
    _parse_heading_layout,
]


def parse_character_schedule(html: Any, park: Park) -> Optional[list[CharacterMeet]]:
    """
    Run the layout strategies in order; the first one that recognizes the
    page wins. Returns ``None`` when no strategy recognizes the layout.
    """
    if not isinstance(html, str):
        raise ShapeError("themeparkiq_html", "HTML text", html)

    soup = BeautifulSoup(html, "html.parser")
    for strategy in SCHEDULE_STRATEGIES:
        meets = strategy(soup, park)
        if meets is not None:
            logger.debug(f"{strategy.__name__} matched {len(meets)} meets for {park.park_id}")
            return meets
    return None


def normalize_themeparkiq_html(raw: Any, park: Park) -> list[CharacterMeet]:
    meets = parse_character_schedule(raw, park)
    if meets is None:
        logger.warning(f"Theme Park IQ layout not recognized for {park.park_id}")
        return []
    return meets
