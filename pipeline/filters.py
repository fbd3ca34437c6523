"""
Filter engine for the site set.

Everything here is a pure function over (sites, criteria); nothing keeps
state between calls.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from pipeline.config import settings
from pipeline.models import ALL_TYPES, FilterCriteria, Site, SiteType
from pipeline.utils.text import normalize_for_search


def normalize_search_term(text: str) -> str:
    """Lowercase, strip diacritics and surrounding whitespace."""
    return normalize_for_search(text or "").strip()


def parse_search_input(raw: str) -> list[str]:
    """Split user input on commas into normalized, non-empty terms."""
    if not raw:
        return []
    terms = (normalize_search_term(part) for part in raw.split(","))
    return [t for t in terms if t]


def add_search_terms(existing: Sequence[str], raw: str) -> tuple[str, ...]:
    """Append the terms in raw input, skipping ones already active."""
    terms = list(existing)
    for term in parse_search_input(raw):
        if term not in terms:
            terms.append(term)
    return tuple(terms)


def remove_search_term(existing: Sequence[str], term: str) -> tuple[str, ...]:
    term = normalize_search_term(term)
    return tuple(t for t in existing if t != term)


def matches(site: Site, criteria: FilterCriteria) -> bool:
    """Year, type and search predicate for one site."""
    if site.inscription_year > criteria.selected_year:
        return False
    if criteria.selected_type != ALL_TYPES and site.type.value != criteria.selected_type:
        return False
    return all(term in site.search_text for term in criteria.search_terms)


def filter_sites(sites: Iterable[Site], criteria: FilterCriteria) -> list[Site]:
    """Stable filter: keeps the input order of matching sites."""
    return [site for site in sites if matches(site, criteria)]


def count_by_type(sites: Iterable[Site], selected_year: int) -> dict[str, int]:
    """Per-category counts of sites inscribed up to selected_year."""
    counts = {ALL_TYPES: 0, **{t.value: 0 for t in SiteType}}
    for site in sites:
        if site.inscription_year <= selected_year:
            counts[ALL_TYPES] += 1
            counts[site.type.value] += 1
    return counts


def count_inscribed_in(sites: Iterable[Site], year: int, selected_type: str = ALL_TYPES) -> int:
    """Sites inscribed in exactly this year, for the slider bubble."""
    return sum(
        1 for site in sites
        if site.inscription_year == year
        and (selected_type == ALL_TYPES or site.type.value == selected_type)
    )


@dataclass(frozen=True)
class YearRange:
    """Slider bounds and the default selected year."""

    min_year: int
    max_year: int
    selected_year: int


def year_range(sites: Iterable[Site], current_year: int | None = None) -> YearRange:
    """
    Compute the year slider range for a site set.

    The lower bound is always the first inscription year; the upper bound
    stretches past the configured default when newer inscriptions exist.
    """
    min_year = settings.map.min_year
    default_max = max(settings.map.default_max_year, current_year or 0)
    years = [site.inscription_year for site in sites]

    if not years:
        return YearRange(min_year, default_max, default_max)

    latest = max(years)
    return YearRange(
        min_year=min_year,
        max_year=max(settings.map.default_max_year, latest),
        selected_year=max(latest, min_year),
    )
