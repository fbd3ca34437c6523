"""
Legacy SPARQL JSON bindings to flat site records.

Wikidata returns one row per combination of multi-valued properties
(country, criteria, image), so rows sharing an item URI are merged.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional

from pipeline.normalizers.dates import parse_inscription_year
from pipeline.normalizers.site_type import criteria_from_text
from pipeline.utils.geo import parse_wkt_point


def binding_value(binding: Mapping[str, Any], *names: str) -> Optional[str]:
    """Return the first present "value" among the named variables."""
    for name in names:
        cell = binding.get(name)
        if isinstance(cell, Mapping) and cell.get("value") not in (None, ""):
            return cell["value"]
    return None


def _append_unique(values: list, value) -> None:
    if value and value not in values:
        values.append(value)


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def binding_to_record(binding: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten a single binding row."""
    wkt = binding_value(binding, "coordinate", "coord")
    lon, lat = parse_wkt_point(wkt)
    if lat is None:
        lat = _to_float(binding_value(binding, "latitude"))
        lon = _to_float(binding_value(binding, "longitude"))

    country = binding_value(binding, "countryLabel", "country")
    criteria = criteria_from_text(binding_value(binding, "criteriaLabel", "criteria"))
    image = binding_value(binding, "image")

    return {
        "site": binding_value(binding, "item"),
        "label": binding_value(binding, "itemLabel"),
        "description": binding_value(binding, "description", "itemDescription"),
        "country": country,
        "countries": [country] if country else [],
        "coord": {"lat": lat, "lon": lon} if lat is not None and lon is not None else None,
        "latitude": lat,
        "longitude": lon,
        "inscriptionYear": binding_value(binding, "inscriptionYear"),
        "unescoId": binding_value(binding, "unescoId"),
        "unescoUrl": binding_value(binding, "officialUrl"),
        "criteria": criteria,
        "type": binding_value(binding, "type"),
        "images": [image] if image else [],
    }


def normalize_bindings(bindings: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """
    Convert SPARQL result bindings into flat records, merging rows per item.

    Rows without an item URI are kept individually.

    Args:
        bindings: The "results.bindings" list of a SPARQL JSON response

    Returns:
        Flat records in first-seen order
    """
    records: list[dict[str, Any]] = []
    by_item: dict[str, dict[str, Any]] = {}

    for binding in bindings:
        if not isinstance(binding, Mapping):
            continue

        record = binding_to_record(binding)
        item = record["site"]

        if item is None or item not in by_item:
            records.append(record)
            if item is not None:
                by_item[item] = record
            continue

        merged = by_item[item]
        for country in record["countries"]:
            _append_unique(merged["countries"], country)
        for code in record["criteria"]:
            _append_unique(merged["criteria"], code)
        for image in record["images"]:
            _append_unique(merged["images"], image)

        # Earliest inscription wins when statements disagree
        year = parse_inscription_year(record["inscriptionYear"])
        current = parse_inscription_year(merged["inscriptionYear"])
        if year is not None and (current is None or year < current):
            merged["inscriptionYear"] = record["inscriptionYear"]

        for key in ("label", "description", "coord", "latitude", "longitude", "unescoId", "unescoUrl", "type"):
            if merged[key] is None and record[key] is not None:
                merged[key] = record[key]

    return records
