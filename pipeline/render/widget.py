"""
Map widget interface.

MapRenderer talks to the map only through MapWidget, so the same rendering
logic drives the folium/Leaflet export and the in-memory widget used in tests.
ProjectedMapWidget implements the camera and projection half of the interface
with Web Mercator math; subclasses only draw.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from pipeline.config import settings
from pipeline.utils.geo import Bounds, LatLng, bounds_of, fit_zoom, project, unproject

# Leaflet divIcon geometry for heritage markers
ICON_SIZE = (42, 42)
ICON_ANCHOR = (21, 42)
POPUP_ANCHOR = (0, -32)

# Approximate rendered popup sizes (pixels)
POPUP_WIDTH = 300
POPUP_HEIGHT = 200
POPUP_MEDIA_HEIGHT = 180

# Leaflet.markercluster maxClusterRadius
CLUSTER_RADIUS = 80


@dataclass(frozen=True)
class Point:
    """A position in container pixels, origin top-left."""

    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle in container pixels."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def translate(self, dx: float, dy: float) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.width, self.height)


@dataclass
class MarkerSpec:
    """Everything the widget needs to draw one site marker."""

    id: str
    location: LatLng
    category: str
    icon_html: str
    tooltip_html: str = ""
    popup_html: str = ""
    popup_size: tuple[int, int] = (POPUP_WIDTH, POPUP_HEIGHT)


ClusterIconFactory = Callable[[list[str]], str]


class MapWidget(ABC):
    """Primitives the renderer needs from a map widget."""

    # -- markers -----------------------------------------------------------

    @abstractmethod
    def add_marker(self, marker: MarkerSpec) -> None:
        ...

    @abstractmethod
    def remove_marker(self, marker_id: str) -> None:
        ...

    @abstractmethod
    def clear_markers(self) -> None:
        ...

    @abstractmethod
    def marker_ids(self) -> list[str]:
        ...

    @abstractmethod
    def set_clustering(self, enabled: bool, icon_factory: ClusterIconFactory | None = None) -> None:
        """Group markers into clusters drawn with icon_factory(categories)."""

    @abstractmethod
    def cluster_of(self, marker_id: str) -> str | None:
        """Id of the cluster currently holding a marker, if any."""

    @abstractmethod
    def is_spiderfied(self, cluster_id: str) -> bool:
        ...

    @abstractmethod
    def spiderfy(self, cluster_id: str) -> None:
        ...

    # -- popups ------------------------------------------------------------

    @abstractmethod
    def bind_popup(self, marker_id: str, html: str, size: tuple[int, int] | None = None) -> None:
        """Set a marker's popup content, optionally with its new rendered size."""

    @abstractmethod
    def open_popup(self, marker_id: str) -> None:
        ...

    @abstractmethod
    def close_popup(self) -> None:
        ...

    @abstractmethod
    def popup_rect(self, marker_id: str) -> Rect | None:
        """Bounding box of an open popup in container pixels."""

    # -- camera ------------------------------------------------------------

    @abstractmethod
    def fly_to(self, center: LatLng, zoom: float | None = None) -> None:
        ...

    @abstractmethod
    def pan_by(self, dx: float, dy: float) -> None:
        ...

    @abstractmethod
    def fit_bounds(self, bounds: Bounds, padding: int = 0) -> None:
        ...

    @abstractmethod
    def marker_bounds(self, marker_ids: Iterable[str] | None = None) -> Bounds | None:
        ...

    @abstractmethod
    def latlng_to_container_point(self, latlng: LatLng) -> Point:
        ...

    @abstractmethod
    def container_point_to_latlng(self, point: Point) -> LatLng:
        ...

    @abstractmethod
    def container_size(self) -> tuple[int, int]:
        ...

    @abstractmethod
    def on(self, event: str, callback: Callable[[], None]) -> None:
        """Subscribe to "movestart" and "zoomstart"."""

    @abstractmethod
    def once_move_end(self, callback: Callable[[], None]) -> None:
        """Run callback once, when the current camera move ends."""


@dataclass
class CameraState:
    center: LatLng
    zoom: float


class ProjectedMapWidget(MapWidget):
    """
    Camera, projection, marker and popup bookkeeping shared by concrete widgets.

    Camera moves end immediately unless defer_move_end is set, in which case
    finish_move() ends them (standing in for an animation frame).
    """

    def __init__(
        self,
        width: int | None = None,
        height: int | None = None,
        center: LatLng | None = None,
        zoom: float | None = None,
        defer_move_end: bool = False,
    ):
        map_settings = settings.map
        self.width = width or map_settings.width
        self.height = height or map_settings.height
        self.min_zoom = map_settings.min_zoom
        self.max_zoom = map_settings.max_zoom
        self.camera = CameraState(
            center=center or LatLng(*map_settings.initial_center),
            zoom=map_settings.initial_zoom if zoom is None else zoom,
        )
        self.defer_move_end = defer_move_end

        self.markers: dict[str, MarkerSpec] = {}
        self.popups: dict[str, str] = {}
        self.open_popup_id: str | None = None
        self.clustering = False
        self.cluster_icon_factory: ClusterIconFactory | None = None
        self._clusters: dict[str, list[str]] = {}
        self._clusters_dirty = False
        self.spiderfied: set[str] = set()

        self._listeners: dict[str, list[Callable[[], None]]] = defaultdict(list)
        self._move_end_callbacks: list[Callable[[], None]] = []
        self._moving = False

    # -- markers -----------------------------------------------------------

    def add_marker(self, marker: MarkerSpec) -> None:
        self.markers[marker.id] = marker
        self._clusters_dirty = True
        if marker.popup_html:
            self.popups[marker.id] = marker.popup_html

    def remove_marker(self, marker_id: str) -> None:
        self.markers.pop(marker_id, None)
        self._clusters_dirty = True
        self.popups.pop(marker_id, None)
        if self.open_popup_id == marker_id:
            self.open_popup_id = None

    def clear_markers(self) -> None:
        for marker_id in list(self.markers):
            self.remove_marker(marker_id)
        self._clusters = {}
        self.spiderfied.clear()

    def marker_ids(self) -> list[str]:
        return list(self.markers)

    def set_clustering(self, enabled: bool, icon_factory: ClusterIconFactory | None = None) -> None:
        self.clustering = enabled
        self.cluster_icon_factory = icon_factory
        self._clusters_dirty = True

    @property
    def clusters(self) -> dict[str, list[str]]:
        """Cluster id -> member marker ids, grouped on a pixel grid at the current zoom."""
        if self._clusters_dirty:
            self._recluster()
        return self._clusters

    def _recluster(self) -> None:
        self._clusters_dirty = False
        if not self.clustering:
            self._clusters = {}
            self.spiderfied.clear()
            return

        cells: dict[tuple[int, int], list[str]] = defaultdict(list)
        for marker_id, marker in self.markers.items():
            x, y = project(marker.location, self.camera.zoom)
            cells[(int(x // CLUSTER_RADIUS), int(y // CLUSTER_RADIUS))].append(marker_id)

        zoom = int(self.camera.zoom)
        self._clusters = {
            f"cluster-{zoom}-{cx}-{cy}": members
            for (cx, cy), members in cells.items()
            if len(members) > 1 and zoom < self.max_zoom
        }
        self.spiderfied &= set(self._clusters)

    def cluster_of(self, marker_id: str) -> str | None:
        for cluster_id, members in self.clusters.items():
            if marker_id in members:
                return cluster_id
        return None

    def is_spiderfied(self, cluster_id: str) -> bool:
        return cluster_id in self.spiderfied

    def spiderfy(self, cluster_id: str) -> None:
        if cluster_id in self.clusters:
            self.spiderfied.add(cluster_id)

    def unspiderfy(self, cluster_id: str) -> None:
        self.spiderfied.discard(cluster_id)

    def cluster_icons(self) -> dict[str, str]:
        """Icon HTML per cluster, as the icon factory draws it."""
        if not self.cluster_icon_factory:
            return {}
        return {
            cluster_id: self.cluster_icon_factory([self.markers[m].category for m in members if m in self.markers])
            for cluster_id, members in self.clusters.items()
        }

    # -- popups ------------------------------------------------------------

    def bind_popup(self, marker_id: str, html: str, size: tuple[int, int] | None = None) -> None:
        self.popups[marker_id] = html
        if size and marker_id in self.markers:
            self.markers[marker_id].popup_size = size

    def open_popup(self, marker_id: str) -> None:
        if marker_id in self.markers:
            self.open_popup_id = marker_id

    def close_popup(self) -> None:
        self.open_popup_id = None

    def popup_rect(self, marker_id: str) -> Rect | None:
        marker = self.markers.get(marker_id)
        if marker is None or self.open_popup_id != marker_id:
            return None

        width, height = marker.popup_size
        anchor = self.latlng_to_container_point(marker.location)
        # Popup tip sits popup_anchor above the icon anchor
        tip_x = anchor.x + POPUP_ANCHOR[0]
        tip_y = anchor.y - ICON_ANCHOR[1] - POPUP_ANCHOR[1]
        return Rect(tip_x - width / 2, tip_y - height, width, height)

    # -- camera ------------------------------------------------------------

    def _origin(self) -> tuple[float, float]:
        cx, cy = project(self.camera.center, self.camera.zoom)
        return cx - self.width / 2, cy - self.height / 2

    def latlng_to_container_point(self, latlng: LatLng) -> Point:
        x, y = project(latlng, self.camera.zoom)
        ox, oy = self._origin()
        return Point(x - ox, y - oy)

    def container_point_to_latlng(self, point: Point) -> LatLng:
        ox, oy = self._origin()
        return unproject(point.x + ox, point.y + oy, self.camera.zoom)

    def container_size(self) -> tuple[int, int]:
        return self.width, self.height

    def on(self, event: str, callback: Callable[[], None]) -> None:
        self._listeners[event].append(callback)

    def once_move_end(self, callback: Callable[[], None]) -> None:
        self._move_end_callbacks.append(callback)

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            callback()

    def _move(self, center: LatLng, zoom: float) -> None:
        zoom_changed = zoom != self.camera.zoom
        self._emit("movestart")
        if zoom_changed:
            self._emit("zoomstart")

        self.camera = CameraState(center=center, zoom=max(self.min_zoom, min(self.max_zoom, zoom)))
        # Leaflet collapses exploded clusters when the camera moves
        self.spiderfied.clear()
        if zoom_changed:
            self._clusters_dirty = True
        self._moving = True
        if not self.defer_move_end:
            self.finish_move()

    def finish_move(self) -> None:
        """End the current camera move and run pending move-end callbacks."""
        if not self._moving:
            return
        self._moving = False
        callbacks, self._move_end_callbacks = self._move_end_callbacks, []
        for callback in callbacks:
            callback()

    @property
    def moving(self) -> bool:
        return self._moving

    def fly_to(self, center: LatLng, zoom: float | None = None) -> None:
        self._move(center, self.camera.zoom if zoom is None else zoom)

    def pan_by(self, dx: float, dy: float) -> None:
        target = self.container_point_to_latlng(Point(self.width / 2 + dx, self.height / 2 + dy))
        self._move(target, self.camera.zoom)

    def fit_bounds(self, bounds: Bounds, padding: int = 0) -> None:
        zoom = fit_zoom(bounds, self.width, self.height, padding, self.min_zoom, self.max_zoom)
        self._move(bounds.center, zoom)

    def marker_bounds(self, marker_ids: Iterable[str] | None = None) -> Bounds | None:
        ids = self.markers.keys() if marker_ids is None else marker_ids
        return bounds_of(self.markers[m].location for m in ids if m in self.markers)

    # -- user input --------------------------------------------------------

    def user_move(self, center: LatLng, zoom: float | None = None) -> None:
        """A pan or zoom the user made (reported by the browser)."""
        self.fly_to(center, zoom)
