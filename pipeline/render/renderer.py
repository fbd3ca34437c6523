"""
Map renderer: reflects the filtered site set on a MapWidget.

Owns marker/cluster drawing, the auto-fit policy, hover and popup state,
popup image loading and popup viewport placement. Camera continuations are
superseded by a generation counter rather than cancelled.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace

from loguru import logger

from pipeline.config import settings
from pipeline.models import Site
from pipeline.render.camera import AutoFitPolicy
from pipeline.render.images import PopupImageCache
from pipeline.render.markers import build_marker, carousel_html, cluster_icon_html, popup_html, popup_size
from pipeline.render.popup import HoverState, PopupPhase, PopupSession, compute_popup_shift
from pipeline.render.widget import MapWidget, Rect


@dataclass(frozen=True)
class RenderResult:
    marker_count: int
    fitted: bool


class MapRenderer:
    """
    Draws sites on a widget and manages the per-marker interaction state.

    Args:
        widget: The map widget
        image_cache: Popup image cache backed by a thumbnail resolver
        policy: Auto-fit state machine
        clustering: Group markers into clusters (defaults to settings)
        obstructions: Fixed overlays, in container pixels, popups must avoid
    """

    def __init__(
        self,
        widget: MapWidget,
        image_cache: PopupImageCache,
        policy: AutoFitPolicy | None = None,
        clustering: bool | None = None,
        obstructions: Sequence[Rect] | None = None,
        fit_padding: int | None = None,
        popup_padding: int | None = None,
    ):
        map_settings = settings.map
        self.widget = widget
        self.image_cache = image_cache
        self.policy = policy or AutoFitPolicy()
        self.fit_padding = map_settings.fit_padding if fit_padding is None else fit_padding
        self.popup_padding = map_settings.popup_padding if popup_padding is None else popup_padding

        if obstructions is None:
            width, _ = widget.container_size()
            obstructions = [Rect(0, 0, width, map_settings.search_bar_height)]
        self.obstructions = list(obstructions)

        self.sites: dict[str, Site] = {}
        self.hover_state = HoverState()
        self.session: PopupSession | None = None
        self._generation = 0

        clustering = map_settings.clustering if clustering is None else clustering
        self.widget.set_clustering(clustering, cluster_icon_html if clustering else None)
        self.widget.on("movestart", self.on_user_gesture)
        self.widget.on("zoomstart", self.on_user_gesture)

    # -- auto-fit ----------------------------------------------------------

    def request_fit(self) -> None:
        self.policy.request_fit()

    def reset(self) -> None:
        """A fresh fetch replaced the site set."""
        self.policy.reset()
        self.image_cache.clear()

    def on_user_gesture(self) -> None:
        self.policy.user_gesture()

    def _programmatic_move(self, move, continuation=None) -> None:
        """Run a camera move that must not count as a user gesture."""
        self._generation += 1
        generation = self._generation
        self.policy.begin_programmatic_move()

        def on_move_end():
            if generation != self._generation:
                # A newer move owns the camera now
                return
            self.policy.end_programmatic_move()
            if continuation:
                continuation()

        self.widget.once_move_end(on_move_end)
        move()

    # -- markers -----------------------------------------------------------

    def render(self, sites: Sequence[Site]) -> RenderResult:
        """Replace all markers with the given sites, auto-fitting when requested."""
        self.widget.clear_markers()
        self.sites = {}

        for index, site in enumerate(sites):
            if site.key in self.sites:
                # Repeated ids (e.g. "unknown") still get one marker each
                site = replace(site, key=f"{site.key}-{index}")
            self.sites[site.key] = site
            self.widget.add_marker(build_marker(site))

        if self.session and self.session.site_id not in self.sites:
            self.session.close()
            self.session = None
        if self.hover_state.hovered_id not in self.sites:
            self.hover_state = HoverState()

        fitted = False
        marker_count = len(self.sites)
        if self.policy.should_fit(marker_count):
            bounds = self.widget.marker_bounds()
            self._programmatic_move(lambda: self.widget.fit_bounds(bounds, self.fit_padding))
            fitted = True
        self.policy.consume()

        logger.debug(f"Rendered {marker_count} markers (fitted={fitted})")
        return RenderResult(marker_count=marker_count, fitted=fitted)

    # -- hover -------------------------------------------------------------

    def hover(self, site_id: str) -> None:
        if site_id in self.sites:
            self.hover_state.enter(site_id)

    def unhover(self, site_id: str) -> None:
        self.hover_state.leave(site_id)

    # -- popups ------------------------------------------------------------

    def _bind_media(self, site: Site, session: PopupSession) -> None:
        carousel = session.carousel
        media = carousel_html(site, carousel.images, carousel.active_index, carousel.broken)
        self.widget.bind_popup(site.key, popup_html(site, media), popup_size(True))

    async def open_popup(self, site_id: str) -> PopupSession:
        """
        Open a site's popup, load its images and keep it inside the safe area.

        Raises:
            KeyError: If the site is not currently rendered
        """
        site = self.sites[site_id]

        if self.session and self.session.is_open:
            self.close_popup()

        session = PopupSession(site_id=site_id)
        self.session = session
        session.open()
        self.widget.open_popup(site_id)

        images: list[str] = []
        if site.images:
            session.start_loading()
            images = await self.image_cache.get(site.key, site.images)

        if self.session is not session or not session.is_open:
            # Closed or replaced while images were loading
            return session

        session.images_loaded(images)
        self._bind_media(site, session)
        self.adjust_popup(site_id)
        return session

    def adjust_popup(self, site_id: str) -> tuple[float, float]:
        """
        Pan the camera so the open popup clears the overlays and the container.

        If the marker sat in an exploded cluster, the cluster is re-spiderfied
        once the move ends, without centering the popup a second time.

        Returns:
            The (dx, dy) the popup was moved by on screen
        """
        session = self.session
        if session is None or session.site_id != site_id or not session.is_open:
            return 0.0, 0.0
        if session.centered or session.phase == PopupPhase.LOADING_IMAGES:
            return 0.0, 0.0

        rect = self.widget.popup_rect(site_id)
        if rect is None:
            return 0.0, 0.0

        dx, dy = compute_popup_shift(rect, self.widget.container_size(), self.obstructions, self.popup_padding)
        if session.phase != PopupPhase.ADJUSTED:
            session.adjusted()
        if (dx, dy) == (0.0, 0.0):
            return dx, dy

        cluster_id = self.widget.cluster_of(site_id)
        was_spiderfied = cluster_id is not None and self.widget.is_spiderfied(cluster_id)
        session.centered = True

        def respiderfy():
            current = self.widget.cluster_of(site_id)
            if current is not None and not self.widget.is_spiderfied(current):
                self.widget.spiderfy(current)
            if self.session is session and session.is_open:
                self.widget.open_popup(site_id)

        self._programmatic_move(
            lambda: self.widget.pan_by(-dx, -dy),
            respiderfy if was_spiderfied else None,
        )
        return dx, dy

    def show_image(self, index: int) -> None:
        """Dot navigation in the open popup's carousel."""
        if not self.session or not self.session.is_open:
            return
        self.session.carousel.show(index)
        self._bind_media(self.sites[self.session.site_id], self.session)

    def image_failed(self, index: int) -> None:
        """An image element broke; its slide degrades to the placeholder."""
        if not self.session or not self.session.is_open:
            return
        self.session.carousel.mark_broken(index)
        self._bind_media(self.sites[self.session.site_id], self.session)

    def close_popup(self) -> None:
        if self.session:
            self.session.close()
        self.widget.close_popup()
