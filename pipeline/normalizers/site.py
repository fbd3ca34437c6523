"""
Site record normalization.

Coerces the record shapes the data source has produced over time (flat proxy
JSON, flattened SPARQL bindings, WKT coordinate strings, already-canonical
Site dicts) into one canonical Site.
"""

import json
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from loguru import logger

from pipeline.config import (
    DEFAULT_COUNTRY,
    DEFAULT_DESCRIPTION,
    DEFAULT_SITE_NAME,
    settings,
)
from pipeline.models import Site
from pipeline.normalizers.dates import parse_inscription_year
from pipeline.normalizers.site_type import classify_site_type
from pipeline.utils.geo import is_finite_number, is_valid_coordinates, parse_wkt_point
from pipeline.utils.text import build_search_text

MAX_IMAGES = 5

# Tried in order for the image list
IMAGE_FIELDS = ("images", "imageList", "media")


def _to_float(value) -> Optional[float]:
    """Number or numeric string to float (parseFloat semantics for strings)."""
    if is_finite_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _first_number(mapping: Mapping, *keys: str) -> Optional[float]:
    for key in keys:
        value = mapping.get(key)
        if is_finite_number(value):
            return float(value)
    return None


def _first_numeric(mapping: Mapping, *keys: str) -> Optional[float]:
    for key in keys:
        value = _to_float(mapping.get(key))
        if value is not None:
            return value
    return None


def extract_coordinates(record: Mapping[str, Any]) -> tuple[Optional[float], Optional[float]]:
    """Extract (latitude, longitude) from a raw record.

    Tries, in order: a coordinate object with numeric lat/lon fields, flat
    latitude/longitude (or lat/lon) fields, and a WKT "Point(lon lat)" string.
    Each axis falls back independently, as the sources mix shapes.

    Returns:
        (lat, lon); either may be None
    """
    coords = record.get("coord") or record.get("coordinate")

    lat = lon = None
    if isinstance(coords, Mapping):
        lat = _first_number(coords, "lat", "latitude")
        lon = _first_number(coords, "lon", "longitude")

    if lat is None:
        lat = _first_numeric(record, "latitude", "lat")
    if lon is None:
        lon = _first_numeric(record, "longitude", "lon")

    if lat is None or lon is None:
        for wkt in (record.get("coord"), record.get("coordinate"), record.get("wkt")):
            if isinstance(wkt, str):
                wkt_lon, wkt_lat = parse_wkt_point(wkt)
                if wkt_lat is not None:
                    lat = lat if lat is not None else wkt_lat
                    lon = lon if lon is not None else wkt_lon
                    break

    return lat, lon


def _clean_strings(values: Iterable[Any]) -> tuple[str, ...]:
    cleaned = (str(v).strip() for v in values if v is not None)
    return tuple(v for v in cleaned if v)[:MAX_IMAGES]


def normalize_images(value) -> tuple[str, ...]:
    """Normalize an image field into at most five reference strings.

    Accepts a list, a "|"-delimited string, a JSON-array-looking string, or
    a single bare string. Unparsable JSON degrades to the bare-string case.
    """
    if not value:
        return ()

    if isinstance(value, (list, tuple)):
        return _clean_strings(value)

    if isinstance(value, str):
        if "|" in value:
            return _clean_strings(value.split("|"))

        if value.startswith("["):
            try:
                parsed = json.loads(value)
            except ValueError as e:
                logger.warning(f"Unable to parse images JSON string: {e}")
            else:
                if isinstance(parsed, list):
                    return _clean_strings(parsed)

        return _clean_strings([value])

    return ()


def extract_images(record: Mapping[str, Any]) -> tuple[str, ...]:
    for key in IMAGE_FIELDS:
        if record.get(key):
            return normalize_images(record[key])
    return ()


def extract_countries(record: Mapping[str, Any]) -> tuple[str, ...]:
    """Prefer an explicit country list, else wrap a single country string."""
    countries = record.get("countries")
    if isinstance(countries, (list, tuple)):
        cleaned = tuple(str(c).strip() for c in countries if c is not None and str(c).strip())
        if cleaned:
            return cleaned

    country = record.get("country")
    # The "Unknown" placeholder is what an empty list serializes to
    if isinstance(country, str) and country.strip() and country.strip() != DEFAULT_COUNTRY:
        return (country.strip(),)

    return ()


def extract_site_id(record: Mapping[str, Any]) -> str:
    """Last path segment of the source URI, or "unknown"."""
    for key in ("site", "item", "id"):
        value = record.get(key)
        if value is None or value == "":
            continue
        segment = str(value).rstrip("/").split("/")[-1]
        if segment:
            return segment
    return "unknown"


def _text(record: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_site(record: Mapping[str, Any]) -> Optional[Site]:
    """
    Convert one raw record into a canonical Site.

    Only bad coordinates reject a record; every other field is defaulted.

    Args:
        record: Raw site dict

    Returns:
        Site, or None if coordinates are missing, non-finite or out of range
    """
    if not isinstance(record, Mapping):
        return None

    lat, lon = extract_coordinates(record)
    if not is_valid_coordinates(lat, lon):
        return None

    criteria = record.get("criteria")
    criteria = tuple(str(c) for c in criteria if c is not None) if isinstance(criteria, (list, tuple)) else ()

    description_raw = _text(record, "description")
    countries = extract_countries(record)
    year = parse_inscription_year(record.get("inscriptionYear"))
    site_type = classify_site_type(record.get("type"), criteria, description_raw)

    name = _text(record, "label", "name") or DEFAULT_SITE_NAME
    country = ", ".join(countries) if countries else DEFAULT_COUNTRY
    description = description_raw or DEFAULT_DESCRIPTION

    return Site(
        id=extract_site_id(record),
        name=name,
        countries=countries,
        country=country,
        latitude=lat,
        longitude=lon,
        inscription_year=year if year is not None else settings.map.min_year,
        type=site_type,
        criteria=criteria,
        description=description,
        official_url=_text(record, "unescoUrl", "officialUrl") or "",
        images=extract_images(record),
        search_text=build_search_text(name, country, description, site_type.value),
    )


def normalize_sites(records: Iterable[Mapping[str, Any]]) -> list[Site]:
    """Normalize records, dropping those without valid coordinates. Order is preserved."""
    sites = []
    dropped = 0

    for record in records:
        site = normalize_site(record)
        if site is None:
            dropped += 1
            continue
        sites.append(site)

    logger.info(f"Processed valid sites: {len(sites)}")
    if dropped:
        logger.debug(f"Dropped {dropped} records with missing or invalid coordinates")

    return sites
