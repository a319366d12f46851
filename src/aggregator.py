"""
Entertainment aggregation.

Five independent paths are fetched concurrently and merged:

1. ``entertainment``: shows, parades and fireworks
2. ``characters``: structured character meet list
3. ``castle_shows``
4. ``streetmosphere``
5. ``character_schedule``: the Theme Park IQ HTML scrape

A path that fails contributes nothing; it never fails the aggregation. The
merged list is deduplicated by id with the last occurrence winning, so a
later path can refresh the times of a record an earlier path produced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from src.context import ProxyContext
from src.http_client import UpstreamError, fetch_with_retry
from src.models import (
    FALLBACK_SOURCE,
    CharacterMeet,
    Domain,
    EntertainmentEvent,
    EventCategory,
    Result,
)
from src.normalizers import ShapeError, parse_character_schedule
from src.parks import Park
from src.sources.fetch import SourcesExhausted, fetch_ordered

logger = logging.getLogger(__name__)

AGGREGATED_SOURCE = "aggregated"
NOT_APPLICABLE = "not_applicable"

FEED_PATHS = ("entertainment", "characters", "castle_shows", "streetmosphere")
SCHEDULE_PATH = "character_schedule"


@dataclass
class PathOutcome:
    path: str
    source: str = FALLBACK_SOURCE
    records: list = field(default_factory=list)
    applicable: bool = True
    error: Optional[str] = None  # set when the upstreams could not be reached

    @property
    def live(self) -> bool:
        return bool(self.records)


def merge_records(*lists: list) -> list:
    """Concatenate record lists and drop repeated ids; the last occurrence wins."""
    by_id: dict[str, EntertainmentEvent] = {}
    for records in lists:
        for record in records:
            by_id[record.id] = record
    return list(by_id.values())


def character_view(records: list) -> list[CharacterMeet]:
    return [r for r in records if r.category == EventCategory.CHARACTER_MEET]


async def _feed_path(ctx: ProxyContext, feed: str, park: Park) -> PathOutcome:
    if not ctx.registry.sources_for(feed, park.park_id):
        return PathOutcome(feed, source=NOT_APPLICABLE, applicable=False)

    try:
        source, records = await fetch_ordered(ctx, feed, park)
    except SourcesExhausted as e:
        logger.info(f"{feed} path empty for {park.park_id}: {e}")
        return PathOutcome(feed, error=str(e))

    return PathOutcome(feed, source=source, records=records)


async def _schedule_path(ctx: ProxyContext, park: Park) -> PathOutcome:
    """
    Scrape the character schedule page.

    Only an unreachable page counts as a characters error; a page that loads
    but matches no known layout is logged and contributes nothing.
    """
    sources = ctx.registry.sources_for(SCHEDULE_PATH, park.park_id)
    if not sources:
        return PathOutcome(SCHEDULE_PATH, source=NOT_APPLICABLE, applicable=False)

    errors = []
    for source in sources:
        try:
            html = await fetch_with_retry(
                source.url,
                client=ctx.client,
                timeout=source.timeout,
                retries=ctx.settings.http_retries,
                delay=ctx.settings.retry_delay_seconds,
                kind="text",
            )
        except UpstreamError as e:
            errors.append(f"{source.name}: {e}")
            continue

        try:
            meets = parse_character_schedule(html, park)
        except ShapeError as e:
            logger.warning(f"{source.name} returned an unusable page: {e}")
            continue
        if meets is None:
            logger.warning(f"{source.name} layout not recognized for {park.park_id}; skipping")
            continue

        return PathOutcome(SCHEDULE_PATH, source=source.name, records=meets)

    return PathOutcome(SCHEDULE_PATH, error="; ".join(errors) or None)


def _record_characters(ctx: ProxyContext, *outcomes: PathOutcome) -> None:
    """
    One characters DataState update per aggregation: success if any character
    path produced meets, failure only if one of them was unreachable.
    """
    if any(o.live for o in outcomes):
        ctx.data_state.record_success(Domain.CHARACTERS.value)
        return
    errors = [o.error for o in outcomes if o.error]
    if errors:
        ctx.data_state.record_failure(Domain.CHARACTERS.value, "; ".join(errors))


async def _isolated(path: str, coro) -> PathOutcome:
    try:
        return await coro
    except Exception as e:
        logger.error(f"{path} path failed: {type(e).__name__}: {e}")
        return PathOutcome(path, error=f"{type(e).__name__}: {e}")


async def aggregate_entertainment(ctx: ProxyContext, park: Park) -> Result:
    """
    Fetch every entertainment path for ``park`` concurrently and merge.

    Merge order: base entertainment, characters, castle shows, streetmosphere,
    the static character baseline, then the live character schedule. When no
    live path produced records the park's static entertainment set goes in
    ahead of the baseline.
    """
    outcomes = await asyncio.gather(
        *(_isolated(feed, _feed_path(ctx, feed, park)) for feed in FEED_PATHS),
        _isolated(SCHEDULE_PATH, _schedule_path(ctx, park)),
    )
    base, characters, castle, street, schedule = outcomes

    live = [o for o in outcomes if o.live]
    applicable = [o for o in outcomes if o.applicable]

    lists = [base.records, characters.records, castle.records, street.records]
    if not live:
        lists.append(ctx.fallback.entertainment(park))
    lists.append(ctx.fallback.character_baseline(park))
    lists.append(schedule.records)
    merged = merge_records(*lists)

    _record_characters(ctx, characters, schedule)
    if live:
        ctx.data_state.record_success(Domain.ENTERTAINMENT.value)
    else:
        ctx.data_state.record_failure(Domain.ENTERTAINMENT.value, "no live entertainment path")

    freshness = round(100 * len(live) / len(applicable)) if applicable else 0
    logger.info(
        f"Aggregated {len(merged)} entertainment records for {park.park_id} "
        f"({len(live)}/{len(applicable)} live paths)"
    )

    return Result(
        park=park.park_id,
        domain=Domain.ENTERTAINMENT,
        data=merged,
        source=AGGREGATED_SOURCE if live else FALLBACK_SOURCE,
        freshness_score=freshness,
        sources={o.path: o.source for o in outcomes},
        views={"characters": character_view(merged)},
    )
