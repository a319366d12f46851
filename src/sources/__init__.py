"""Upstream source registry."""

from src.sources.registry import (
    Feed,
    ResolvedSource,
    SourceRegistry,
    SourceSpec,
    load_registry,
    parse_registry,
)

__all__ = [
    "Feed",
    "ResolvedSource",
    "SourceRegistry",
    "SourceSpec",
    "load_registry",
    "parse_registry",
]
