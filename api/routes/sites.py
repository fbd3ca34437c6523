"""
Sites API Routes.

Supports:
- Year / category / free-text filtering of the loaded site set
- Per-category counts for the control panel
- Single site detail and popup images
- Manual reload (the error panel's retry action)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from api.cache import cache_delete_pattern, cache_get, cache_set
from api.dependencies import get_controller, load_error, require_loaded
from pipeline.controller import HeritageMapController
from pipeline.filters import count_by_type, count_inscribed_in, filter_sites, parse_search_input
from pipeline.models import ALL_TYPES, FilterCriteria

logger = logging.getLogger(__name__)
router = APIRouter()


def _criteria(controller: HeritageMapController, year: int | None, site_type: str, q: str | None) -> FilterCriteria:
    try:
        return FilterCriteria(
            selected_year=controller.context.criteria.selected_year if year is None else year,
            selected_type=site_type or ALL_TYPES,
            search_terms=tuple(parse_search_input(q or "")),
        )
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown site type: {site_type}")


@router.get("")
async def list_sites(
    year: int | None = Query(None, description="Show sites inscribed up to this year"),
    site_type: str = Query(ALL_TYPES, alias="type", description="all, cultural, natural or mixed"),
    q: str | None = Query(None, description="Comma-separated search terms, all must match"),
    controller: HeritageMapController = Depends(get_controller),
):
    """
    Filtered sites, in source order.

    Parameters left out fall back to the map's current year; the query never
    changes the map state.
    """
    require_loaded(controller)
    criteria = _criteria(controller, year, site_type, q)
    sites = filter_sites(controller.context.sites, criteria)

    return {
        "count": len(sites),
        "total": len(controller.context.sites),
        "criteria": criteria.to_dict(),
        "sites": [site.to_dict() for site in sites],
    }


@router.get("/counts")
async def get_counts(
    year: int | None = Query(None, description="Count sites inscribed up to this year"),
    site_type: str = Query(ALL_TYPES, alias="type"),
    controller: HeritageMapController = Depends(get_controller),
):
    """Category button counts and the slider bubble for a year (cached)."""
    require_loaded(controller)
    criteria = _criteria(controller, year, site_type, None)

    cache_key = f"sites:counts:{criteria.selected_year}:{criteria.selected_type}"
    cached = cache_get(cache_key)
    if cached:
        return cached

    sites = controller.context.sites
    count = count_inscribed_in(sites, criteria.selected_year, criteria.selected_type)
    response = {
        "year": criteria.selected_year,
        "counts": count_by_type(sites, criteria.selected_year),
        "inscribedThisYear": count,
        "sliderBubble": f"{criteria.selected_year} | {count} {'Site' if count == 1 else 'Sites'}",
    }
    cache_set(cache_key, response, ttl=300)
    return response


@router.post("/reload")
async def reload_sites(controller: HeritageMapController = Depends(get_controller)):
    """Fetch the site list again; 503 with a retry hint when the source fails."""
    ok = await controller.retry()
    cache_delete_pattern("sites:*")
    cache_delete_pattern("api:*")

    if not ok:
        logger.warning("Site reload failed")
        raise load_error(controller.context.error)

    return {
        "status": "ok",
        "total": len(controller.context.sites),
        "label": controller.total_sites_label(),
    }


@router.get("/{site_id}")
async def get_site(site_id: str, controller: HeritageMapController = Depends(get_controller)):
    require_loaded(controller)
    site = controller.context.sites.get(site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Site not found")
    return site.to_dict()


@router.get("/{site_id}/images")
async def get_site_images(site_id: str, controller: HeritageMapController = Depends(get_controller)):
    """
    Thumbnail URLs for a site's popup carousel.

    Resolved once per site and cached, including empty results.
    """
    require_loaded(controller)
    site = controller.context.sites.get(site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Site not found")
    if controller.renderer is None:
        raise HTTPException(status_code=501, detail="Image lookup not configured")

    images = await controller.renderer.image_cache.get(site.key, site.images)
    return {"id": site.id, "key": site.key, "count": len(images), "images": images}
