"""
Park Data Proxy API

FastAPI service that fronts the third-party park data sources: park hours,
wait times, entertainment, character meets and parade times, normalized and
cached, with static fallback when the upstreams are down.
"""

import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pythonjsonlogger import jsonlogger
from starlette.middleware.base import BaseHTTPMiddleware

from .config import Settings, load_settings
from .context import ProxyContext, build_context
from .parks import DEFAULT_PARK, PARKS
from .resilience.api import router as resilience_router
from .resilience.rate_limiter import RateLimiter
from .routers.health import router as health_router
from .routers.parks import router as parks_router

REQUEST_ID_HEADER = "X-Request-ID"

logger = logging.getLogger(__name__)


# --- Configuration & Logging ---


def configure_logging(level: str = "INFO") -> None:
    """Send JSON logs to stdout. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "severity"},
        )
    )
    root.addHandler(handler)


# --- Middleware ---


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "request_processed",
            extra={
                "event": "access_log",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "processing_time_ms": round(process_time, 2),
                "user_agent": request.headers.get("user-agent"),
                "client_ip": request.client.host if request.client else None,
            },
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client token bucket on ``/api/`` routes; 429 with Retry-After when empty."""

    def __init__(self, app, limiter: RateLimiter, prefix: str = "/api/"):
        super().__init__(app)
        self.limiter = limiter
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        if self.limiter.allow(client):
            return await call_next(request)

        retry_after = max(1, round(self.limiter.retry_after(client)))
        logger.warning(f"Rate limit exceeded for {client} on {request.url.path}")
        return JSONResponse(
            status_code=429,
            headers={"Retry-After": str(retry_after)},
            content={
                "error": "rate_limited",
                "message": "Too many requests from this client, please try again later.",
                "retryAfter": retry_after,
            },
        )


# --- FastAPI App ---


def create_app(settings: Optional[Settings] = None, context: Optional[ProxyContext] = None) -> FastAPI:
    """
    Build the API. When ``context`` is given it is used as-is (and left open
    on shutdown); otherwise one is built from ``settings`` at startup.
    """
    settings = settings or (context.settings if context else load_settings())
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or build_context(settings)
        app.state.context = ctx
        logger.info(f"Park data proxy started on port {settings.port}")
        try:
            yield
        finally:
            if context is None:
                await ctx.aclose()

    app = FastAPI(
        title="Park Data Proxy",
        description="Normalized, cached theme park data with upstream fallback",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.rate_limiter = RateLimiter.per_window(
        settings.rate_limit_requests, settings.rate_limit_window_seconds, name="api"
    )

    # Middleware (Applied in reverse order: Last added is first executed)

    # 3. Rate limit (Innermost)
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)

    # 2. Logging (measures total time including rate-limit rejections)
    app.add_middleware(LoggingMiddleware)

    # 1. CORS (Outermost - handles preflight)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Retry-After"],
    )

    app.include_router(parks_router)
    app.include_router(health_router)
    app.include_router(resilience_router)

    @app.get("/")
    async def index():
        """Service index."""
        return {
            "service": app.title,
            "version": app.version,
            "defaultPark": DEFAULT_PARK,
            "parks": sorted(PARKS),
            "endpoints": [
                "/api/disney/park-hours/{park}",
                "/api/disney/wait-times/{park}",
                "/api/disney/entertainment/{park}",
                "/api/disney/characters/{park}",
                "/api/disney/parade-times/{park}",
                "/health",
                "/api/cache/status",
                "/api/cache/flush/{domain}",
                "/api/resilience/circuits",
            ],
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=load_settings().port)
