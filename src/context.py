"""
Process-wide state for the proxy.

Everything that outlives a single request (the source registry, fallback
tables, per-domain caches, DataState, the wait-times circuit breaker and the
shared HTTP client) hangs off one ``ProxyContext``. The API builds it in its
lifespan handler; tests build their own with a mock transport.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from src.cache import CacheStore
from src.config import Settings, load_settings
from src.fallback import FallbackTables, load_fallback
from src.models import Domain, Result
from src.parks import Park
from src.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from src.resilience.freshness import DataState, worst_severity
from src.sources.registry import SourceRegistry, load_registry

logger = logging.getLogger(__name__)

WAIT_TIMES_BREAKER = "wait_times"


def domain_ttls(settings: Settings) -> dict[str, float]:
    return {
        Domain.WAIT_TIMES.value: settings.wait_times_ttl,
        Domain.PARK_HOURS.value: settings.park_hours_ttl,
        Domain.ENTERTAINMENT.value: settings.entertainment_ttl,
        Domain.CHARACTERS.value: settings.entertainment_ttl,
        Domain.PARADES.value: settings.entertainment_ttl,
    }


def _static_wait_times(ctx: "ProxyContext", park: Park) -> Result:
    return ctx.fallback.result(Domain.WAIT_TIMES, park)


@dataclass
class ProxyContext:
    settings: Settings
    registry: SourceRegistry
    fallback: FallbackTables
    cache: CacheStore
    data_state: DataState
    wait_times_breaker: CircuitBreaker
    client: httpx.AsyncClient
    started_at: float = field(default_factory=time.time)

    @property
    def ttls(self) -> dict[str, float]:
        return domain_ttls(self.settings)

    def breakers(self) -> dict[str, CircuitBreaker]:
        return {self.wait_times_breaker.name: self.wait_times_breaker}

    def health(self) -> dict:
        """
        Overall health: ``healthy`` when the breaker is closed and no domain is
        stale, ``degraded`` otherwise. Never raises.
        """
        data_state = self.data_state.snapshot(self.ttls)
        worst = worst_severity(entry.get("severity", "healthy") for entry in data_state.values())
        breaker = self.wait_times_breaker.to_dict()

        degraded = breaker["state"] != CircuitState.CLOSED.value or worst in ("alert", "critical")
        return {
            "status": "degraded" if degraded else "healthy",
            "uptimeSeconds": round(time.time() - self.started_at, 1),
            "waitTimesBreaker": breaker,
            "caches": self.cache.stats(),
            "dataState": data_state,
        }

    async def aclose(self) -> None:
        await self.client.aclose()


def build_context(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    registry: Optional[SourceRegistry] = None,
    fallback: Optional[FallbackTables] = None,
) -> ProxyContext:
    """Wire up a ProxyContext from settings, loading config files as needed."""
    settings = settings or load_settings()
    ttls = domain_ttls(settings)

    breaker = CircuitBreaker(
        WAIT_TIMES_BREAKER,
        CircuitBreakerConfig(
            error_threshold_percentage=settings.breaker_error_threshold,
            volume_threshold=settings.breaker_volume_threshold,
            rolling_window_seconds=settings.breaker_window_seconds,
            reset_timeout_seconds=settings.breaker_reset_seconds,
        ),
        fallback=_static_wait_times,
    )

    ctx = ProxyContext(
        settings=settings,
        registry=registry or load_registry(settings.sources_path),
        fallback=fallback or load_fallback(settings.fallback_path),
        cache=CacheStore(ttls),
        data_state=DataState(ttls),
        wait_times_breaker=breaker,
        client=client or httpx.AsyncClient(),
    )
    logger.info(f"Proxy context ready: domains={sorted(ttls)}")
    return ctx
