"""Health check and cache administration endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..context import ProxyContext
from ..models import Domain, utc_now_iso
from ._helpers import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


# --- Pydantic Models ---


class HealthResponse(BaseModel):
    status: str  # "healthy" or "degraded"
    uptimeSeconds: float
    waitTimesBreaker: dict[str, Any]
    caches: dict[str, dict[str, Any]]
    dataState: dict[str, dict[str, Any]]
    checkedAt: str


class CacheStatusResponse(BaseModel):
    caches: dict[str, dict[str, Any]]
    checkedAt: str


class FlushResponse(BaseModel):
    domain: str
    flushed: int


# --- Endpoints ---


@router.get("/health", response_model=HealthResponse)
async def get_health(ctx: ProxyContext = Depends(get_context)):
    """
    Process health: wait-times breaker state, cache statistics and per-domain
    fetch bookkeeping. Always 200; ``status`` carries the verdict.
    """
    return {**ctx.health(), "checkedAt": utc_now_iso()}


@router.get("/api/cache/status", response_model=CacheStatusResponse)
async def get_cache_status(ctx: ProxyContext = Depends(get_context)):
    return {"caches": ctx.cache.stats(), "checkedAt": utc_now_iso()}


@router.post("/api/cache/flush/{domain}", response_model=FlushResponse)
async def flush_cache(domain: str, ctx: ProxyContext = Depends(get_context)):
    """Drop every cached entry for one domain."""
    if domain not in {d.value for d in Domain}:
        raise HTTPException(status_code=404, detail=f"Cache '{domain}' not found")

    flushed = ctx.cache.flush(domain)
    logger.info(f"Cache flush requested: {domain} ({flushed} entries)")
    return FlushResponse(domain=domain, flushed=flushed)
