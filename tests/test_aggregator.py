"""Tests for entertainment aggregation."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

from src.aggregator import aggregate_entertainment, character_view, merge_records
from src.models import CharacterMeet, EntertainmentEvent, EventCategory
from src.parks import PARKS

FIXTURES = Path(__file__).resolve().parent / "fixtures"

MK = PARKS["magic-kingdom"]
EPCOT = PARKS["epcot"]

BASE = "touringplans.com/magic-kingdom/entertainment.json"
CASTLE = "touringplans.com/magic-kingdom/castle-shows.json"
CHARACTER_MEETS = "touringplans.com/magic-kingdom/character-meets.json"
SCHEDULE = "themeparkiq.com"

BASE_BODY = [
    {"id": "happily_ever_after", "name": "Happily Ever After", "category": "Fireworks",
     "showtimes": ["9:00 PM"], "location": "Cinderella Castle", "duration": 18},
    {"id": "country_bear_jamboree", "name": "Country Bear Jamboree", "category": "Show"},
]


def _run(coro):
    return asyncio.run(coro)


def _event(id: str, times: list[str]) -> EntertainmentEvent:
    return EntertainmentEvent(id=id, name=id, category=EventCategory.SHOW, times=times)


# ---------------------------------------------------------------------------
# merge_records / character_view
# ---------------------------------------------------------------------------


class TestMergeRecords:
    def test_last_write_wins_in_first_position(self):
        merged = merge_records([_event("a", ["1"]), _event("b", ["1"])], [_event("a", ["2"])])
        assert [(e.id, e.times) for e in merged] == [("a", ["2"]), ("b", ["1"])]

    def test_empty_lists(self):
        assert merge_records([], []) == []

    def test_character_view(self):
        meet = CharacterMeet(id="m", name="Meet", characters=["Goofy"])
        assert character_view([_event("a", []), meet]) == [meet]


# ---------------------------------------------------------------------------
# aggregate_entertainment
# ---------------------------------------------------------------------------


class TestAggregateAllDown:
    def test_static_fallback_and_baseline(self, ctx):
        result = _run(aggregate_entertainment(ctx, MK))
        assert result.source == "fallback"
        assert result.freshness_score == 0
        assert [e.id for e in result.data] == [
            "festival_of_fantasy",
            "happily_ever_after",
            "country_bear_jamboree",
            "princess_fairytale_hall",
            "town_square_theater_mickey",
            "town_square_theater_tinker_bell",
            "petes_silly_sideshow",
        ]
        assert len(result.views["characters"]) == 4
        assert set(result.sources.values()) == {"fallback"}

    def test_data_state_updated(self, ctx):
        _run(aggregate_entertainment(ctx, MK))
        assert ctx.data_state.get("entertainment").consecutive_errors == 1
        # feed exhausted and schedule page unreachable count as one failure
        assert ctx.data_state.get("characters").consecutive_errors == 1

    def test_characters_alert_after_three_aggregations(self, ctx):
        for _ in range(3):
            _run(aggregate_entertainment(ctx, MK))
        assert ctx.data_state.get("characters").consecutive_errors == 3
        assert ctx.data_state.severity("characters", 1800) == "alert"


class TestAggregateLive:
    def test_dedup_keeps_later_source(self, ctx, upstream):
        upstream.add(BASE, json=BASE_BODY)
        upstream.add(
            CASTLE,
            json={"castleShows": [{"id": "happily_ever_after", "name": "Happily Ever After",
                                   "location": "Cinderella Castle", "times": ["9:15 PM"]}]},
        )
        result = _run(aggregate_entertainment(ctx, MK))

        matches = [e for e in result.data if e.id == "happily_ever_after"]
        assert len(matches) == 1
        assert matches[0].times == ["9:15 PM"]
        assert result.source == "aggregated"

    def test_no_static_entertainment_when_live(self, ctx, upstream):
        upstream.add(BASE, json=BASE_BODY)
        result = _run(aggregate_entertainment(ctx, MK))
        ids = [e.id for e in result.data]
        assert "festival_of_fantasy" not in ids
        assert ids[:2] == ["happily_ever_after", "country_bear_jamboree"]
        # baseline still merged
        assert "princess_fairytale_hall" in ids

    def test_provenance_and_freshness(self, ctx, upstream):
        upstream.add(BASE, json=BASE_BODY)
        result = _run(aggregate_entertainment(ctx, MK))
        assert result.sources["entertainment"] == "touringplans"
        assert result.sources["castle_shows"] == "fallback"
        # 1 of 5 applicable paths live
        assert result.freshness_score == 20
        assert all(e.source == "touringplans" for e in result.data[:2])

    def test_live_schedule_overrides_baseline(self, ctx, upstream):
        upstream.add(SCHEDULE, text=(FIXTURES / "themeparkiq_cards.html").read_text(encoding="utf-8"))
        result = _run(aggregate_entertainment(ctx, MK))

        tinker = [e for e in result.data if e.id == "town_square_theater_tinker_bell"]
        assert len(tinker) == 1
        assert tinker[0].times == ["11:00 AM"]
        assert tinker[0].source == "theme_park_iq"
        assert result.sources["character_schedule"] == "theme_park_iq"
        assert ctx.data_state.get("characters").total_successes == 1

    def test_unrecognized_layout_not_counted_as_error(self, ctx, upstream):
        upstream.add(SCHEDULE, text=(FIXTURES / "themeparkiq_unrecognized.html").read_text(encoding="utf-8"))
        _run(aggregate_entertainment(ctx, MK))
        # only the structured characters feed failure counts
        assert ctx.data_state.get("characters").consecutive_errors == 1

    def test_one_live_character_path_is_a_success(self, ctx, upstream):
        upstream.add(CHARACTER_MEETS, json=[
            {"name": "Meet Goofy", "type": "character", "character": "Goofy"},
        ])
        _run(aggregate_entertainment(ctx, MK))
        state = ctx.data_state.get("characters")
        assert state.total_successes == 1
        assert state.total_errors == 0
        assert state.consecutive_errors == 0


class TestAggregateParkScope:
    def test_park_restricted_paths_not_applicable(self, ctx, upstream):
        upstream.add("touringplans.com/epcot/entertainment.json", json=[
            {"id": "epcot_forever", "name": "EPCOT Forever", "category": "Fireworks"},
        ])
        result = _run(aggregate_entertainment(ctx, EPCOT))
        assert result.sources["castle_shows"] == "not_applicable"
        assert result.sources["character_schedule"] == "not_applicable"
        # 1 of 3 applicable paths live
        assert result.freshness_score == 33
        assert not upstream.calls_to("castle")
        assert not upstream.calls_to(SCHEDULE)

    def test_failing_path_is_isolated(self, ctx, upstream):
        upstream.add(BASE, json=BASE_BODY)
        with patch("src.aggregator._schedule_path", new=AsyncMock(side_effect=RuntimeError("boom"))):
            result = _run(aggregate_entertainment(ctx, MK))
        assert result.source == "aggregated"
        assert result.sources["character_schedule"] == "fallback"
