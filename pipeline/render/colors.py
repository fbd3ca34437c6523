"""
Category colors and cluster coloring.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Optional

from pipeline.config import CATEGORY_STYLES, NEUTRAL_COLOR, settings
from pipeline.models import SiteType

# Tie-break order when two categories share the plurality count
CATEGORY_ORDER = [t.value for t in SiteType]


def category_color(category: Optional[str]) -> str:
    """Marker color for a category; unknown categories use the cultural color."""
    style = CATEGORY_STYLES.get(category) or CATEGORY_STYLES[SiteType.CULTURAL.value]
    return style["color"]


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def rgb_to_hex(rgb: tuple[int, int, int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(*(max(0, min(255, round(c))) for c in rgb))


def mix(color: str, target: str, factor: float) -> str:
    """Linear RGB interpolation from color toward target by factor (0..1)."""
    factor = max(0.0, min(1.0, factor))
    src = hex_to_rgb(color)
    dst = hex_to_rgb(target)
    return rgb_to_hex(tuple(s + (d - s) * factor for s, d in zip(src, dst)))


def lighten(color: str, factor: float | None = None) -> str:
    return mix(color, "#FFFFFF", settings.map.shade_factor if factor is None else factor)


def darken(color: str, factor: float | None = None) -> str:
    return mix(color, "#000000", settings.map.shade_factor if factor is None else factor)


def dominant_category(categories: Iterable[Optional[str]]) -> Optional[str]:
    """
    Category with the plurality count among clustered markers.

    Markers without a known category are ignored. Ties go to the category
    listed first in CATEGORY_ORDER.
    """
    counts = Counter(c for c in categories if c in CATEGORY_STYLES and c in CATEGORY_ORDER)
    if not counts:
        return None

    return max(counts, key=lambda c: (counts[c], -CATEGORY_ORDER.index(c)))


def cluster_color(categories: Iterable[Optional[str]]) -> str:
    """Fill color for a cluster of markers with the given categories."""
    category = dominant_category(categories)
    if category is None:
        return NEUTRAL_COLOR
    return category_color(category)


def cluster_style(categories: Iterable[Optional[str]], factor: float | None = None) -> dict[str, str]:
    """Fill, ring (lighter) and border (darker) colors for a cluster icon."""
    fill = cluster_color(categories)
    return {
        "fill": fill,
        "ring": lighten(fill, factor),
        "border": darken(fill, factor),
    }
