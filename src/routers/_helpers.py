"""Shared helpers used across multiple routers."""

from fastapi import HTTPException, Request

from ..context import ProxyContext
from ..parks import PARKS, Park, UnknownParkError, resolve_park


def get_context(request: Request) -> ProxyContext:
    """FastAPI dependency: the ProxyContext built in the app lifespan."""
    return request.app.state.context


def park_or_400(park_id: str) -> Park:
    """Resolve a park path parameter, mapping unknown parks to HTTP 400."""
    try:
        return resolve_park(park_id)
    except UnknownParkError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "unknown_park",
                "park": e.park_id,
                "supported": sorted(PARKS),
                "message": str(e),
            },
        ) from e
