"""
Map controller: binds the map controls to the filter engine and renderer.

All application state lives in an AppContext owned by the controller. Every
filter action re-filters the current site set, asks the renderer to frame the
result and redraws the markers.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from loguru import logger

from pipeline.config import LOAD_ERROR_MESSAGE, settings
from pipeline.filters import (
    add_search_terms,
    count_by_type,
    count_inscribed_in,
    filter_sites,
    remove_search_term,
    year_range,
)
from pipeline.models import ALL_TYPES, FilterCriteria, Site, SiteCollection
from pipeline.render import FoliumMapWidget, MapRenderer, PopupImageCache
from pipeline.site_images import CommonsThumbnailResolver
from pipeline.sources import DataSourceError, WorldHeritageSource


@dataclass
class AppContext:
    """Everything the map page shows, in one place."""

    sites: SiteCollection = field(default_factory=SiteCollection)
    filtered: list[Site] = field(default_factory=list)
    criteria: FilterCriteria = field(
        default_factory=lambda: FilterCriteria(selected_year=settings.map.default_max_year)
    )
    min_year: int = field(default_factory=lambda: settings.map.min_year)
    max_year: int = field(default_factory=lambda: settings.map.default_max_year)
    loading: bool = True
    error: str | None = None
    controls_collapsed: bool = True
    loaded_at: datetime | None = None

    @property
    def loaded(self) -> bool:
        return self.loaded_at is not None and self.error is None


class HeritageMapController:
    """
    Glue between the controls, the filter engine and the map renderer.

    Args:
        renderer: Map renderer; filtering still works without one
        source_factory: Returns a data source usable as an async context manager
        current_year: Calendar year used by the "up to <year>" label
    """

    def __init__(
        self,
        renderer: MapRenderer | None = None,
        source_factory: Callable[[], WorldHeritageSource] = WorldHeritageSource,
        current_year: int | None = None,
    ):
        self.renderer = renderer
        self.source_factory = source_factory
        self.current_year = current_year or datetime.now().year
        self.context = AppContext()
        self._load_lock = asyncio.Lock()

    # -- loading -----------------------------------------------------------

    async def load(self) -> bool:
        """
        Fetch the site set and show it.

        Failures are recorded on the context for the error panel; the
        previous site set stays in place.

        Returns:
            True on success
        """
        async with self._load_lock:
            ctx = self.context
            ctx.loading = True
            ctx.error = None

            try:
                async with self.source_factory() as source:
                    sites = await source.load()
            except DataSourceError as e:
                logger.error(f"Error loading sites: {e}")
                ctx.error = LOAD_ERROR_MESSAGE
                ctx.loading = False
                return False

            bounds = year_range(sites)
            ctx.sites = sites
            ctx.min_year = bounds.min_year
            ctx.max_year = bounds.max_year
            ctx.criteria = replace(ctx.criteria, selected_year=bounds.selected_year)
            ctx.loaded_at = datetime.now()
            ctx.loading = False

            logger.info(f"Loaded {len(sites)} sites ({bounds.min_year}-{bounds.max_year})")

            if self.renderer:
                self.renderer.reset()
            self.apply()
            return True

    async def retry(self) -> bool:
        """Manual retry from the error panel."""
        logger.info("Retrying site load")
        return await self.load()

    # -- filter actions ----------------------------------------------------

    def apply(self) -> list[Site]:
        """Re-filter the current site set and redraw the map."""
        ctx = self.context
        ctx.filtered = filter_sites(ctx.sites, ctx.criteria)
        if self.renderer:
            self.renderer.request_fit()
            self.renderer.render(ctx.filtered)
        return ctx.filtered

    def set_criteria(self, criteria: FilterCriteria) -> list[Site]:
        self.context.criteria = criteria
        return self.apply()

    def set_year(self, year: int) -> list[Site]:
        """Slider input; clamped to the slider range."""
        ctx = self.context
        year = max(ctx.min_year, min(ctx.max_year, int(year)))
        return self.set_criteria(replace(ctx.criteria, selected_year=year))

    def set_type(self, site_type: str) -> list[Site]:
        """
        Category button.

        Raises:
            ValueError: For an unknown category
        """
        return self.set_criteria(replace(self.context.criteria, selected_type=site_type or ALL_TYPES))

    def submit_search(self, raw: str) -> list[Site]:
        """Search form submit; comma-separated input adds several terms."""
        terms = add_search_terms(self.context.criteria.search_terms, raw)
        return self.set_criteria(replace(self.context.criteria, search_terms=terms))

    def remove_search_term(self, term: str) -> list[Site]:
        terms = remove_search_term(self.context.criteria.search_terms, term)
        return self.set_criteria(replace(self.context.criteria, search_terms=terms))

    def clear_search(self) -> list[Site]:
        return self.set_criteria(replace(self.context.criteria, search_terms=()))

    def toggle_controls(self) -> bool:
        """Collapse or expand the control panel; returns the new collapsed state."""
        self.context.controls_collapsed = not self.context.controls_collapsed
        return self.context.controls_collapsed

    # -- labels ------------------------------------------------------------

    def site_count_label(self) -> str:
        year = self.context.criteria.selected_year
        label = f"Showing {len(self.context.filtered)} UNESCO World Heritage Sites"
        if year < self.current_year:
            label += f" up to {year}"
        return label

    def total_sites_label(self) -> str:
        return f"{len(self.context.sites)} total sites"

    def slider_bubble_label(self) -> str:
        criteria = self.context.criteria
        count = count_inscribed_in(self.context.sites, criteria.selected_year, criteria.selected_type)
        return f"{criteria.selected_year} | {count} {'Site' if count == 1 else 'Sites'}"

    def type_counts(self) -> dict[str, int]:
        return count_by_type(self.context.sites, self.context.criteria.selected_year)

    def status(self) -> dict:
        """Snapshot of the page state for API responses."""
        ctx = self.context
        return {
            "loading": ctx.loading,
            "loaded": ctx.loaded,
            "error": ctx.error,
            "controlsCollapsed": ctx.controls_collapsed,
            "minYear": ctx.min_year,
            "maxYear": ctx.max_year,
            "criteria": ctx.criteria.to_dict(),
            "labels": {
                "siteCount": self.site_count_label(),
                "totalSites": self.total_sites_label(),
                "sliderBubble": self.slider_bubble_label(),
            },
            "counts": self.type_counts(),
        }


def create_controller(
    resolver: CommonsThumbnailResolver | None = None,
    widget: FoliumMapWidget | None = None,
    **kwargs,
) -> HeritageMapController:
    """Controller wired to a folium map and the Commons thumbnail resolver."""
    resolver = resolver or CommonsThumbnailResolver()
    image_cache = PopupImageCache(resolver.resolve, max_images=settings.images.max_images)
    renderer = MapRenderer(widget or FoliumMapWidget(), image_cache)
    return HeritageMapController(renderer=renderer, **kwargs)
