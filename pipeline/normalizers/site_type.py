"""
Heritage category classification.

Wikidata and proxy records are often incomplete, so the category is derived
with an ordered fallback: explicit type, then UNESCO criteria codes, then
keywords in the description, then "cultural".
"""

import re
from collections.abc import Iterable
from typing import Optional

from pipeline.models import SiteType

# Criteria (i)-(vi) are cultural, (vii)-(x) natural
CULTURAL_CRITERIA_RE = re.compile(r"\b(i|ii|iii|iv|v|vi)\b", re.IGNORECASE)
NATURAL_CRITERIA_RE = re.compile(r"\b(vii|viii|ix|x)\b", re.IGNORECASE)

# Roman numeral codes inside a criteria string such as "(i)(iii)(vii)"
_CRITERION_CODE_RE = re.compile(r"\b(x|ix|viii|vii|vi|v|iv|iii|ii|i)\b", re.IGNORECASE)

# Checked in this order
DESCRIPTION_KEYWORDS = (
    ("mixed", SiteType.MIXED),
    ("natural", SiteType.NATURAL),
    ("cultural", SiteType.CULTURAL),
)


def parse_explicit_type(value) -> Optional[SiteType]:
    """Return the SiteType for an explicit type string, or None."""
    if not isinstance(value, str):
        return None
    try:
        return SiteType(value.strip().lower())
    except ValueError:
        return None


def classify_by_criteria(criteria: Iterable[str]) -> Optional[SiteType]:
    """Classify from UNESCO criterion codes, or None when no code is recognised."""
    codes = [str(c) for c in criteria or () if c is not None]
    has_cultural = any(CULTURAL_CRITERIA_RE.search(c) for c in codes)
    has_natural = any(NATURAL_CRITERIA_RE.search(c) for c in codes)

    if has_cultural and has_natural:
        return SiteType.MIXED
    if has_natural:
        return SiteType.NATURAL
    if has_cultural:
        return SiteType.CULTURAL
    return None


def classify_by_description(description: Optional[str]) -> Optional[SiteType]:
    """Keyword fallback on free text."""
    if not isinstance(description, str):
        return None

    text = description.lower()
    for keyword, site_type in DESCRIPTION_KEYWORDS:
        if keyword in text:
            return site_type
    return None


def classify_site_type(
    explicit_type=None,
    criteria: Iterable[str] = (),
    description: Optional[str] = None,
) -> SiteType:
    """Derive a site's heritage category. First match wins.

    Args:
        explicit_type: Type string from the source record, if any
        criteria: Raw criterion codes
        description: Free-text description

    Returns:
        SiteType, never None
    """
    return (
        parse_explicit_type(explicit_type)
        or classify_by_criteria(criteria)
        or classify_by_description(description)
        or SiteType.CULTURAL
    )


def criteria_from_text(text: Optional[str]) -> list[str]:
    """Split a criteria string like "(i)(iii)(vii)" into ["i", "iii", "vii"]."""
    if not text:
        return []

    codes = []
    for match in _CRITERION_CODE_RE.finditer(str(text)):
        code = match.group(1).lower()
        if code not in codes:
            codes.append(code)
    return codes
