"""
Ordered-fallback fetching over a registry feed.

Sources are tried in priority order. A source fails when its request fails
after retries (``UpstreamError``), when its body has the wrong shape
(``ShapeError``), when its normalizer raises anything else, or when it
normalizes to no records at all; the next source is then tried. The first
source that yields records wins.
"""

import logging
from typing import Optional

from src.context import ProxyContext
from src.http_client import UpstreamError, fetch_with_retry
from src.models import EntertainmentEvent
from src.normalizers import TEXT_FORMATS, ShapeError, normalize
from src.parks import Park

logger = logging.getLogger(__name__)


class SourcesExhausted(Exception):
    """Every source of a feed failed for a park."""

    def __init__(self, feed: str, park_id: str, errors: list[str]):
        self.feed = feed
        self.park_id = park_id
        self.errors = errors
        detail = "; ".join(errors) if errors else "no sources"
        super().__init__(f"All {feed} sources failed for {park_id}: {detail}")


def _stamp(records: list, source_name: str) -> None:
    for record in records:
        if isinstance(record, EntertainmentEvent) and record.source == "unknown":
            record.source = source_name


async def fetch_ordered(
    ctx: ProxyContext,
    feed: str,
    park: Park,
    retries: Optional[int] = None,
) -> tuple[str, list]:
    """
    Fetch ``feed`` for ``park`` from the first source that yields records.

    Returns:
        (source name, normalized records)

    Raises:
        SourcesExhausted: If no source produced records.
    """
    if retries is None:
        retries = ctx.settings.http_retries

    errors = []
    for source in ctx.registry.sources_for(feed, park.park_id):
        try:
            raw = await fetch_with_retry(
                source.url,
                client=ctx.client,
                timeout=source.timeout,
                retries=retries,
                delay=ctx.settings.retry_delay_seconds,
                kind="text" if source.format_tag in TEXT_FORMATS else "json",
            )
        except UpstreamError as e:
            logger.warning(f"{feed}/{source.name} failed for {park.park_id}: {e}")
            errors.append(f"{source.name}: {e}")
            continue

        try:
            records = normalize(source.format_tag, raw, park)
        except ShapeError as e:
            logger.warning(f"{feed}/{source.name} failed for {park.park_id}: {e}")
            errors.append(f"{source.name}: {e}")
            continue
        except Exception as e:
            logger.error(f"{feed}/{source.name} normalizer error for {park.park_id}: {type(e).__name__}: {e}")
            errors.append(f"{source.name}: {type(e).__name__}: {e}")
            continue

        if not records:
            logger.info(f"{feed}/{source.name} returned no records for {park.park_id}")
            errors.append(f"{source.name}: no records")
            continue

        _stamp(records, source.name)
        logger.info(f"{feed}: {len(records)} records from {source.name} for {park.park_id}")
        return source.name, records

    raise SourcesExhausted(feed, park.park_id, errors)
