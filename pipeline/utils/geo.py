"""Geographic utility functions for the map pipeline."""

import math
import re
from dataclasses import dataclass
from typing import Iterable

# Web Mercator (EPSG:3857) constants, matching Leaflet's spherical projection
TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798

# "Point(<lon> <lat>)" as emitted by Wikidata's geo:wktLiteral
_WKT_POINT_RE = re.compile(
    r"Point\s*\(\s*([-+]?\d+(?:\.\d+)?)\s+([-+]?\d+(?:\.\d+)?)\s*\)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LatLng:
    """A geographic position in degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class Bounds:
    """A geographic bounding box."""

    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> LatLng:
        return LatLng((self.south + self.north) / 2, (self.west + self.east) / 2)

    def contains(self, point: LatLng) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east

    def as_folium(self) -> list[list[float]]:
        """Return [[south, west], [north, east]] as folium's fit_bounds expects."""
        return [[self.south, self.west], [self.north, self.east]]


def is_finite_number(value) -> bool:
    """True for real ints/floats that are finite. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_coordinates(lat, lon) -> bool:
    """Check if latitude and longitude are finite and within geographic range.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees

    Returns:
        True if coordinates are valid, False otherwise
    """
    if not is_finite_number(lat) or not is_finite_number(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def parse_wkt_point(wkt: str) -> tuple[float | None, float | None]:
    """Parse a WKT Point string into lon, lat coordinates.

    Args:
        wkt: WKT string like "Point(2.2945 48.8584)"

    Returns:
        Tuple of (longitude, latitude) or (None, None) if parsing fails
    """
    if not wkt or not isinstance(wkt, str):
        return None, None

    match = _WKT_POINT_RE.search(wkt)
    if not match:
        return None, None

    return float(match.group(1)), float(match.group(2))


def bounds_of(points: Iterable[LatLng]) -> Bounds | None:
    """Smallest bounding box containing all points, or None for no points."""
    points = list(points)
    if not points:
        return None

    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return Bounds(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))


def world_size(zoom: float) -> float:
    """Width in pixels of the whole world at a zoom level."""
    return TILE_SIZE * (2 ** zoom)


def project(point: LatLng, zoom: float) -> tuple[float, float]:
    """Project a LatLng to absolute world pixel coordinates at a zoom level."""
    lat = max(min(point.lat, MAX_LATITUDE), -MAX_LATITUDE)
    size = world_size(zoom)
    x = (point.lng + 180.0) / 360.0 * size
    sin_lat = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * size
    return x, y


def unproject(x: float, y: float, zoom: float) -> LatLng:
    """Inverse of project()."""
    size = world_size(zoom)
    lng = x / size * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / size
    lat = math.degrees(math.atan(math.sinh(n)))
    return LatLng(lat, lng)


def fit_zoom(bounds: Bounds, width: float, height: float, padding: float = 0,
             min_zoom: int = 1, max_zoom: int = 19) -> int:
    """Largest integer zoom at which bounds fit in a padded viewport."""
    usable_w = max(width - 2 * padding, 1)
    usable_h = max(height - 2 * padding, 1)

    for zoom in range(max_zoom, min_zoom - 1, -1):
        x1, y1 = project(LatLng(bounds.north, bounds.west), zoom)
        x2, y2 = project(LatLng(bounds.south, bounds.east), zoom)
        if abs(x2 - x1) <= usable_w and abs(y2 - y1) <= usable_h:
            return zoom

    return min_zoom
