"""
Data normalization utilities.

These modules handle converting the data source's record shapes into the
canonical Site record.
"""

from .bindings import normalize_bindings
from .dates import parse_inscription_year
from .site import (
    extract_coordinates,
    extract_countries,
    normalize_images,
    normalize_site,
    normalize_sites,
)
from .site_type import classify_site_type, criteria_from_text

__all__ = [
    'parse_inscription_year',
    'classify_site_type',
    'criteria_from_text',
    'extract_coordinates',
    'extract_countries',
    'normalize_images',
    'normalize_site',
    'normalize_sites',
    'normalize_bindings',
]
