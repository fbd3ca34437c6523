"""
Canonical data models for World Heritage Sites.

A Site is produced once per load cycle by the normalizers and never mutated;
a reload replaces the whole SiteCollection.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pipeline.utils.geo import LatLng
from pipeline.utils.text import normalize_for_search


class SiteType(str, Enum):
    """UNESCO heritage categories."""

    CULTURAL = "cultural"
    NATURAL = "natural"
    MIXED = "mixed"


ALL_TYPES = "all"


@dataclass(frozen=True)
class Site:
    """
    Canonical heritage site record.

    Field names follow Python conventions; to_dict() emits the camelCase
    JSON shape the map front end and the normalizer both understand.
    """

    id: str
    name: str
    countries: tuple[str, ...]
    country: str
    latitude: float
    longitude: float
    inscription_year: int
    type: SiteType
    criteria: tuple[str, ...] = ()
    description: str = ""
    official_url: str = ""
    images: tuple[str, ...] = ()
    search_text: str = ""
    # Marker and lookup key; equals id unless the id repeats within a collection
    key: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.key:
            object.__setattr__(self, "key", self.id)

    @property
    def location(self) -> LatLng:
        return LatLng(self.latitude, self.longitude)

    @property
    def source_uri(self) -> str:
        return f"http://www.wikidata.org/entity/{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "site": self.source_uri,
            "name": self.name,
            "countries": list(self.countries),
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "inscriptionYear": self.inscription_year,
            "type": self.type.value,
            "criteria": list(self.criteria),
            "description": self.description,
            "officialUrl": self.official_url,
            "images": list(self.images),
            "searchText": self.search_text,
        }


@dataclass(frozen=True)
class FilterCriteria:
    """Filter state derived from the map controls."""

    selected_year: int
    selected_type: str = ALL_TYPES  # "all" or a SiteType value
    search_terms: tuple[str, ...] = ()

    def __post_init__(self):
        if self.selected_type != ALL_TYPES:
            # Raises ValueError for unknown categories
            object.__setattr__(self, "selected_type", SiteType(self.selected_type).value)
        object.__setattr__(
            self,
            "search_terms",
            tuple(normalize_for_search(t).strip() for t in self.search_terms if t and t.strip()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedYear": self.selected_year,
            "selectedType": self.selected_type,
            "activeSearchTerms": list(self.search_terms),
        }


@dataclass(frozen=True)
class SiteCollection:
    """Immutable, ordered set of sites from one load cycle."""

    sites: tuple[Site, ...] = ()
    _by_key: dict[str, Site] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        sites = []
        by_key = {}
        for index, site in enumerate(self.sites):
            # Sites without a URI all share the id "unknown"
            if site.key in by_key:
                site = replace(site, key=f"{site.id}-{index}")
            by_key[site.key] = site
            sites.append(site)
        object.__setattr__(self, "sites", tuple(sites))
        object.__setattr__(self, "_by_key", by_key)

    @classmethod
    def from_iterable(cls, sites: Iterable[Site]) -> "SiteCollection":
        return cls(tuple(sites))

    def __iter__(self) -> Iterator[Site]:
        return iter(self.sites)

    def __len__(self) -> int:
        return len(self.sites)

    def get(self, key: str) -> Site | None:
        """Site by key; a unique site id is also its key."""
        return self._by_key.get(key)
