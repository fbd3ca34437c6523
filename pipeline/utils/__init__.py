"""Utility modules for the map pipeline."""

from pipeline.utils.geo import (
    Bounds,
    LatLng,
    bounds_of,
    is_finite_number,
    is_valid_coordinates,
    parse_wkt_point,
)
from pipeline.utils.http import HTTPError, RateLimitError, afetch
from pipeline.utils.logging import setup_logging
from pipeline.utils.text import (
    build_search_text,
    escape_html,
    normalize_for_search,
    strip_diacritics,
)

__all__ = [
    # HTTP utilities
    "afetch",
    "HTTPError",
    "RateLimitError",
    # Logging
    "setup_logging",
    # Geographic utilities
    "LatLng",
    "Bounds",
    "bounds_of",
    "is_finite_number",
    "is_valid_coordinates",
    "parse_wkt_point",
    # Text utilities
    "normalize_for_search",
    "strip_diacritics",
    "build_search_text",
    "escape_html",
]
