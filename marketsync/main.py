"""
MarketSync - diagnostics and push-ingest API

Exposes cache statistics, manual invalidation, and an endpoint the data
service can push change notifications to.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request

from config.settings import settings
from marketsync.cache.keys import Domain, KeyPattern
from marketsync.live_updates.models import ChangeNotification
from marketsync.runtime import Runtime, build_runtime
from marketsync.schemas import (
    ChangeNotificationIn,
    InvalidateRequest,
    InvalidateResponse,
    NotifyResponse,
)

load_dotenv()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("main")

APP_NAME = "MarketSync"
APP_VERSION = "v0.1.0"


def get_runtime(request: Request) -> Runtime:
    runtime = request.app.state.runtime
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not started")
    return runtime


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """
    Build the API around a runtime.

    Without one, the runtime is built from settings when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.runtime is None:
            app.state.runtime = build_runtime(settings)
        app.state.runtime.start()
        yield
        app.state.runtime.shutdown()

    app = FastAPI(
        title=APP_NAME,
        description="Client-side cache and live update diagnostics",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/cache/stats")
    def cache_stats(runtime: Runtime = Depends(get_runtime)):
        """Get cache statistics."""
        return runtime.coordinator.get_stats()

    @app.post("/cache/invalidate", response_model=InvalidateResponse)
    def invalidate_cache(body: InvalidateRequest, runtime: Runtime = Depends(get_runtime)):
        """
        Invalidate cached entries.

        A key removes that key and every key below it; a domain (optionally
        narrowed by scope and leading qualifiers) removes every matching key.
        """
        if body.key:
            removed = runtime.coordinator.invalidate_cache(body.key)
        elif body.domain:
            try:
                pattern = KeyPattern(Domain(body.domain), body.scope, tuple(body.qualifiers))
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e))
            removed = runtime.coordinator.invalidate_cache(pattern)
        else:
            raise HTTPException(status_code=422, detail="Either key or domain is required")

        logger.info(f"Manual invalidation removed {removed} entries")
        return InvalidateResponse(invalidated=removed)

    @app.post("/live/notify", response_model=NotifyResponse)
    async def live_notify(body: ChangeNotificationIn, runtime: Runtime = Depends(get_runtime)):
        """Deliver a pushed change notification to the live update bridge."""
        try:
            notification = ChangeNotification.from_dict(body.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return NotifyResponse(delivered=runtime.bridge.publish(notification))

    return app


app = create_app()
