"""
Acquisition facade: one entry point per (domain, park).

``acquire`` resolves the park, serves a warm cache entry when there is one,
otherwise acquires live data (falling back to static tables) and caches the
outcome. Static fallback Results are never cached, so the next request
after an outage retries the upstreams instead of serving stale fallback for
a whole TTL.

The only exception that escapes is ``UnknownParkError``.
"""

import logging
from typing import Awaitable, Callable, Optional, Union

from src.aggregator import aggregate_entertainment
from src.context import ProxyContext
from src.models import Domain, Result
from src.parks import Park, resolve_park
from src.resilience.freshness import freshness_score
from src.sources.fetch import SourcesExhausted, fetch_ordered

logger = logging.getLogger(__name__)

WAIT_TIMES_RETRIES = 1

__all__ = [
    "SourcesExhausted",
    "acquire",
    "get_from_cache",
    "put_in_cache",
]


def get_from_cache(ctx: ProxyContext, domain: Union[Domain, str], park_id: str) -> Optional[Result]:
    """
    Cached Result for ``(domain, park)`` or None.

    A hit is returned with ``from_cache=True`` and its freshness decayed by
    the entry's age over the domain TTL; ``data`` is the cached list itself.
    """
    domain = Domain(domain)
    cache = ctx.cache.for_domain(domain.value)
    entry = ctx.cache.get_entry(domain.value, park_id)
    if entry is None:
        return None

    result: Result = entry.value
    decay = freshness_score(cache.age(entry), cache.ttl_seconds)
    score = max(1, round(result.freshness_score * decay / 100))
    logger.debug(f"Cache hit: {domain.value} for {park_id} (freshness {score})")
    return result.as_cache_hit(score)


def put_in_cache(ctx: ProxyContext, domain: Union[Domain, str], park_id: str, result: Result) -> bool:
    """Cache ``result`` unless it is pure fallback. Returns whether it was stored."""
    if result.is_fallback:
        logger.debug(f"Not caching fallback {Domain(domain).value} for {park_id}")
        return False
    ctx.cache.put(Domain(domain).value, park_id, result)
    return True


async def _ordered_or_fallback(ctx: ProxyContext, domain: Domain, park: Park) -> Result:
    try:
        source, records = await fetch_ordered(ctx, domain.value, park)
    except SourcesExhausted as e:
        ctx.data_state.record_failure(domain.value, str(e))
        logger.warning(f"Serving fallback {domain.value} for {park.park_id}")
        return ctx.fallback.result(domain, park)

    ctx.data_state.record_success(domain.value)
    return Result(park=park.park_id, domain=domain, data=records, source=source)


async def _live_wait_times(ctx: ProxyContext, park: Park) -> Result:
    """Wrapped by the wait-times breaker; raises SourcesExhausted on failure."""
    try:
        source, records = await fetch_ordered(ctx, Domain.WAIT_TIMES.value, park, retries=WAIT_TIMES_RETRIES)
    except SourcesExhausted as e:
        ctx.data_state.record_failure(Domain.WAIT_TIMES.value, str(e))
        raise

    ctx.data_state.record_success(Domain.WAIT_TIMES.value)
    return Result(park=park.park_id, domain=Domain.WAIT_TIMES, data=records, source=source)


async def _acquire_wait_times(ctx: ProxyContext, park: Park) -> Result:
    return await ctx.wait_times_breaker.call_with_fallback(_live_wait_times, ctx, park)


async def _acquire_park_hours(ctx: ProxyContext, park: Park) -> Result:
    return await _ordered_or_fallback(ctx, Domain.PARK_HOURS, park)


async def _acquire_parades(ctx: ProxyContext, park: Park) -> Result:
    return await _ordered_or_fallback(ctx, Domain.PARADES, park)


async def _acquire_entertainment(ctx: ProxyContext, park: Park) -> Result:
    return await aggregate_entertainment(ctx, park)


async def _acquire_characters(ctx: ProxyContext, park: Park) -> Result:
    """Character meets are the ``characters`` view of the entertainment aggregation."""
    entertainment = await acquire(ctx, Domain.ENTERTAINMENT, park.park_id)
    return Result(
        park=park.park_id,
        domain=Domain.CHARACTERS,
        data=entertainment.views.get("characters", []),
        source=entertainment.source,
        last_updated=entertainment.last_updated,
        freshness_score=entertainment.freshness_score,
        from_cache=entertainment.from_cache,
        sources=dict(entertainment.sources),
    )


ACQUIRERS: dict[Domain, Callable[[ProxyContext, Park], Awaitable[Result]]] = {
    Domain.WAIT_TIMES: _acquire_wait_times,
    Domain.PARK_HOURS: _acquire_park_hours,
    Domain.ENTERTAINMENT: _acquire_entertainment,
    Domain.CHARACTERS: _acquire_characters,
    Domain.PARADES: _acquire_parades,
}


async def acquire(ctx: ProxyContext, domain: Union[Domain, str], park_id: str) -> Result:
    """
    Current data for one domain and park.

    Raises:
        UnknownParkError: If ``park_id`` is not a supported park. Raised before
            any cache lookup or upstream request.
    """
    park = resolve_park(park_id)
    domain = Domain(domain)

    cached = get_from_cache(ctx, domain, park.park_id)
    if cached is not None:
        return cached

    result = await ACQUIRERS[domain](ctx, park)
    if not result.from_cache:
        put_in_cache(ctx, domain, park.park_id, result)
    return result
