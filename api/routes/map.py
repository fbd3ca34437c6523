"""
Map API Routes.

The browser page reports control changes, camera gestures and popup opens
here; the controller re-filters and the renderer keeps the map state.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from api.dependencies import get_controller, require_loaded
from pipeline.controller import HeritageMapController
from pipeline.render import MapRenderer
from pipeline.utils.geo import LatLng

logger = logging.getLogger(__name__)
router = APIRouter()


class ControlsUpdate(BaseModel):
    """A control panel action; fields left out are not touched."""

    year: int | None = None
    type: str | None = None
    search: str | None = Field(None, description="Comma-separated terms to add")
    remove_term: str | None = None
    clear_search: bool = False
    toggle_panel: bool = False


class CameraGesture(BaseModel):
    """A pan or zoom the user made."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    zoom: float | None = None


def _renderer(controller: HeritageMapController) -> MapRenderer:
    if controller.renderer is None:
        raise HTTPException(status_code=501, detail="Map rendering not configured")
    return controller.renderer


@router.get("", response_class=HTMLResponse)
async def get_map(controller: HeritageMapController = Depends(get_controller)):
    """Standalone Leaflet page of the currently filtered sites."""
    require_loaded(controller)
    widget = _renderer(controller).widget
    if not hasattr(widget, "render_html"):
        raise HTTPException(status_code=501, detail="Map widget cannot export HTML")
    return HTMLResponse(widget.render_html())


@router.get("/state")
async def get_state(controller: HeritageMapController = Depends(get_controller)):
    renderer = _renderer(controller)
    session = renderer.session
    return {
        **controller.status(),
        "markers": len(renderer.sites),
        "autoFit": renderer.policy.auto_fit_enabled,
        "userHasAdjusted": renderer.policy.user_has_adjusted,
        "popup": {"siteId": session.site_id, "phase": session.phase.value} if session and session.is_open else None,
    }


@router.post("/controls")
async def update_controls(update: ControlsUpdate, controller: HeritageMapController = Depends(get_controller)):
    """Apply control panel actions in a fixed order: year, type, search, panel."""
    require_loaded(controller)
    try:
        if update.year is not None:
            controller.set_year(update.year)
        if update.type is not None:
            controller.set_type(update.type)
        if update.clear_search:
            controller.clear_search()
        if update.remove_term:
            controller.remove_search_term(update.remove_term)
        if update.search:
            controller.submit_search(update.search)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if update.toggle_panel:
        controller.toggle_controls()

    return controller.status()


@router.post("/gesture")
async def user_gesture(gesture: CameraGesture, controller: HeritageMapController = Depends(get_controller)):
    """A user pan or zoom; suspends auto-fit until the next filter action."""
    renderer = _renderer(controller)
    widget = renderer.widget
    if hasattr(widget, "user_move"):
        widget.user_move(LatLng(gesture.lat, gesture.lng), gesture.zoom)
    else:
        renderer.on_user_gesture()
    return {"autoFit": renderer.policy.auto_fit_enabled, "userHasAdjusted": renderer.policy.user_has_adjusted}


@router.post("/popup/{site_id}")
async def open_popup(site_id: str, controller: HeritageMapController = Depends(get_controller)):
    """Open a site's popup, loading its images and placing it in view."""
    require_loaded(controller)
    renderer = _renderer(controller)
    if site_id not in renderer.sites:
        raise HTTPException(status_code=404, detail="Site not on the map")

    session = await renderer.open_popup(site_id)
    return {
        "siteId": session.site_id,
        "phase": session.phase.value,
        "images": list(session.carousel.images),
        "centered": session.centered,
    }


@router.delete("/popup")
async def close_popup(controller: HeritageMapController = Depends(get_controller)):
    _renderer(controller).close_popup()
    return {"status": "ok"}
