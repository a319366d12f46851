"""Park data endpoints consumed by the mobile client."""

import logging

from fastapi import APIRouter, Depends

from ..acquisition import acquire
from ..context import ProxyContext
from ..models import Domain
from ..parks import DEFAULT_PARK
from ._helpers import get_context, park_or_400

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/disney", tags=["Parks"])


async def _serve(ctx: ProxyContext, domain: Domain, park_id: str) -> dict:
    park = park_or_400(park_id)
    result = await acquire(ctx, domain, park.park_id)
    return result.to_dict()


@router.get("/park-hours")
@router.get("/park-hours/{park}")
async def get_park_hours(park: str = DEFAULT_PARK, ctx: ProxyContext = Depends(get_context)):
    """Operating hours for today onwards."""
    return await _serve(ctx, Domain.PARK_HOURS, park)


@router.get("/wait-times")
@router.get("/wait-times/{park}")
async def get_wait_times(park: str = DEFAULT_PARK, ctx: ProxyContext = Depends(get_context)):
    """
    Current standby waits. Served from static data with ``source="fallback"``
    while the upstreams are failing.
    """
    return await _serve(ctx, Domain.WAIT_TIMES, park)


@router.get("/entertainment")
@router.get("/entertainment/{park}")
async def get_entertainment(park: str = DEFAULT_PARK, ctx: ProxyContext = Depends(get_context)):
    """Shows, parades, fireworks and character meets merged from every entertainment source."""
    return await _serve(ctx, Domain.ENTERTAINMENT, park)


@router.get("/characters")
@router.get("/characters/{park}")
async def get_characters(park: str = DEFAULT_PARK, ctx: ProxyContext = Depends(get_context)):
    return await _serve(ctx, Domain.CHARACTERS, park)


@router.get("/parade-times")
@router.get("/parade-times/{park}")
async def get_parade_times(park: str = DEFAULT_PARK, ctx: ProxyContext = Depends(get_context)):
    return await _serve(ctx, Domain.PARADES, park)
