"""
FastAPI Backend for the World Heritage Map.

Serves the UNESCO World Heritage site list with year, category and
free-text filtering, popup images and the exported Leaflet map.
"""

import logging

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from api.cache import cache_get, cache_set
from api.dependencies import get_controller
from api.routes import map as map_routes
from api.routes import sites
from pipeline.config import get_settings
from pipeline.controller import HeritageMapController, create_controller
from pipeline.filters import count_by_type
from pipeline.models import ALL_TYPES
from pipeline.site_images import CommonsThumbnailResolver

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
SERVICE_NAME = "World Heritage Map API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {SERVICE_NAME}...")

    resolver = CommonsThumbnailResolver()
    controller = create_controller(resolver=resolver)
    app.state.controller = controller

    if get_settings().api.load_on_startup:
        # A failed load leaves the controller in its error state; the
        # client retries through POST /api/sites/reload
        if not await controller.load():
            logger.warning(f"[STARTUP] Initial load failed: {controller.context.error}")

    yield

    logger.info("Shutting down...")
    await resolver.aclose()


app = FastAPI(
    title=SERVICE_NAME,
    description="UNESCO World Heritage Sites on an interactive map",
    version=VERSION,
    lifespan=lifespan,
)

# CORS - allow frontend to connect (configured via API_CORS_ORIGINS env var)
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# GZip compression for responses > 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(sites.router, prefix="/api/sites", tags=["sites"])
app.include_router(map_routes.router, prefix="/api/map", tags=["map"])


@app.get("/")
async def root(controller: HeritageMapController = Depends(get_controller)):
    """Health check endpoint."""
    return {"status": "ok", "version": VERSION, "service": SERVICE_NAME, "loaded": controller.context.loaded}


@app.get("/api/stats")
async def stats(controller: HeritageMapController = Depends(get_controller)):
    """Site statistics (cached for 5 minutes, cleared on reload)."""
    cache_key = "api:stats"
    cached = cache_get(cache_key)
    if cached:
        return cached

    ctx = controller.context
    by_type = count_by_type(ctx.sites, ctx.max_year)
    countries = {c for site in ctx.sites for c in site.countries}
    years = [site.inscription_year for site in ctx.sites]

    response = {
        "total_sites": len(ctx.sites),
        "by_type": {k: v for k, v in by_type.items() if k != ALL_TYPES},
        "countries": len(countries),
        "first_inscription": min(years) if years else None,
        "latest_inscription": max(years) if years else None,
        "loaded_at": ctx.loaded_at.isoformat() if ctx.loaded_at else None,
    }

    if ctx.sites:
        cache_set(cache_key, response, ttl=300)
    return response
