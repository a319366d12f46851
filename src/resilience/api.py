"""
API endpoints for resilience monitoring.

Provides visibility into circuit breaker states and the API rate limiter.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..context import ProxyContext
from ..routers._helpers import get_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resilience", tags=["Resilience"])


@router.get("/circuits", summary="List all circuit breakers")
async def list_circuits(ctx: ProxyContext = Depends(get_context)):
    """
    Get status of all circuit breakers.

    Returns state, metrics, and configuration for each circuit.
    """
    circuits = ctx.breakers()
    return {"circuits": [cb.to_dict() for cb in circuits.values()], "count": len(circuits)}


@router.get("/circuits/{name}", summary="Get circuit breaker status")
async def get_circuit(name: str, ctx: ProxyContext = Depends(get_context)):
    """Get status of a specific circuit breaker."""
    cb = ctx.breakers().get(name)
    if not cb:
        raise HTTPException(status_code=404, detail=f"Circuit '{name}' not found")
    return cb.to_dict()


@router.post("/circuits/{name}/reset", summary="Reset a circuit breaker")
async def reset_circuit(name: str, ctx: ProxyContext = Depends(get_context)):
    """
    Manually reset a circuit breaker to CLOSED state.

    Use with caution - only when you've verified the upstreams
    have recovered.
    """
    cb = ctx.breakers().get(name)
    if not cb:
        raise HTTPException(status_code=404, detail=f"Circuit '{name}' not found")

    old_state = cb.state
    cb.reset()

    return {
        "success": True,
        "circuit": name,
        "previous_state": old_state.value,
        "current_state": cb.state.value,
        "message": f"Circuit '{name}' has been reset",
    }


@router.get("/rate-limits", summary="API rate limiter status")
async def get_rate_limits(request: Request):
    """Token availability and allow/deny totals for the ``/api/`` limiter."""
    limiter = request.app.state.rate_limiter
    return {"rate_limiters": [limiter.to_dict()], "count": 1}
