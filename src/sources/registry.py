"""
Source registry: which upstreams to try, in what order, for each feed.

The registry is static configuration (``config/sources.yaml``). The only
runtime step is templating each URL with the park's upstream identifiers,
which goes through ``resolve_park`` and therefore fails closed on an
unrecognized park.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from src.config import SOURCES_PATH, load_yaml_config
from src.parks import Park, resolve_park

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSpec:
    name: str
    url_template: str
    priority: int
    timeout: float
    format_tag: str


@dataclass(frozen=True)
class ResolvedSource:
    """A source ready to fetch for one park."""
    name: str
    url: str
    timeout: float
    format_tag: str


@dataclass
class Feed:
    name: str
    sources: list[SourceSpec]
    parks: Optional[frozenset[str]] = None  # None = every park

    def applies_to(self, park: Park) -> bool:
        return self.parks is None or park.park_id in self.parks


@dataclass
class SourceRegistry:
    feeds: dict[str, Feed] = field(default_factory=dict)

    def feed(self, name: str) -> Feed:
        try:
            return self.feeds[name]
        except KeyError:
            raise KeyError(f"Unknown feed '{name}'") from None

    def sources_for(self, feed_name: str, park_id: str) -> list[ResolvedSource]:
        """
        Ordered sources for a feed and park, lowest priority number first.

        Returns an empty list when the feed does not cover the park.

        Raises:
            UnknownParkError: If ``park_id`` is not a supported park.
            KeyError: If ``feed_name`` is not registered.
        """
        park = resolve_park(park_id)
        feed = self.feed(feed_name)
        if not feed.applies_to(park):
            return []

        return [
            ResolvedSource(
                name=spec.name,
                url=spec.url_template.format(
                    park=park.park_id,
                    queue_times_id=park.queue_times_id,
                    wiki_entity=park.wiki_entity,
                ),
                timeout=spec.timeout,
                format_tag=spec.format_tag,
            )
            for spec in sorted(feed.sources, key=lambda s: s.priority)
        ]

    def format_tags(self) -> set[str]:
        return {spec.format_tag for feed in self.feeds.values() for spec in feed.sources}


def parse_registry(data: dict, default_timeout: float = 8.0) -> SourceRegistry:
    """Build a registry from an already-validated config document."""
    feeds = {}
    for feed_name, cfg in data.get("feeds", {}).items():
        sources = [
            SourceSpec(
                name=src["name"],
                url_template=src["url"],
                priority=int(src["priority"]),
                timeout=float(src.get("timeout", default_timeout)),
                format_tag=src["format"],
            )
            for src in cfg.get("sources", [])
        ]
        parks = cfg.get("parks")
        feeds[feed_name] = Feed(
            name=feed_name,
            sources=sources,
            parks=frozenset(parks) if parks else None,
        )
    return SourceRegistry(feeds=feeds)


def load_registry(path: Path = SOURCES_PATH) -> SourceRegistry:
    """Load and validate ``config/sources.yaml``."""
    registry = parse_registry(load_yaml_config(path, "sources.schema.json"))
    logger.info(
        f"Loaded {sum(len(f.sources) for f in registry.feeds.values())} sources "
        f"across {len(registry.feeds)} feeds"
    )
    return registry
