"""
HTML for markers, tooltips, popups, image carousels and cluster icons.

All site text is escaped before it reaches the map.
"""

from collections.abc import Collection, Sequence

from pipeline.config import CATEGORY_STYLES
from pipeline.models import Site, SiteType
from pipeline.render.colors import cluster_style
from pipeline.render.widget import POPUP_HEIGHT, POPUP_MEDIA_HEIGHT, POPUP_WIDTH, MarkerSpec
from pipeline.utils.text import escape_html

NO_IMAGE_HTML = '<div class="popup-media-empty" role="img" aria-label="No image available">No image available</div>'


def category_style(category: str) -> dict[str, str]:
    return CATEGORY_STYLES.get(category) or CATEGORY_STYLES[SiteType.CULTURAL.value]


def marker_icon_html(category: str) -> str:
    style = category_style(category)
    return (
        f'<div class="heritage-marker" style="background-color:{style["color"]};">'
        f'<span class="heritage-marker-icon">{style["icon"]}</span>'
        "</div>"
    )


def tooltip_html(site: Site) -> str:
    return f"<strong>{escape_html(site.name)}</strong>"


def carousel_html(site: Site, images: Sequence[str], active_index: int = 0, broken: Collection[int] = ()) -> str:
    """Swipeable slides with dot navigation; one slide active at a time.

    Slides listed in broken show the no-image placeholder in place.
    """
    images = list(images)[:5]
    if not images:
        return f'<div class="popup-media is-empty">{NO_IMAGE_HTML}</div>'

    active_index = max(0, min(active_index, len(images) - 1))
    name = escape_html(site.name)

    slides = "".join(
        f'<div class="popup-media-slide{" active" if i == active_index else ""}" data-index="{i}">'
        + (NO_IMAGE_HTML if i in broken else
           f'<img src="{escape_html(url)}" alt="{name} image {i + 1}" loading="lazy" data-fallback="no-image" />')
        + "</div>"
        for i, url in enumerate(images)
    )

    dots = ""
    if len(images) > 1:
        buttons = "".join(
            f'<button type="button" class="popup-media-dot{" active" if i == active_index else ""}" '
            f'data-index="{i}" aria-label="Show image {i + 1}"></button>'
            for i in range(len(images))
        )
        dots = f'<div class="popup-media-dots" role="tablist" aria-label="{name} images">{buttons}</div>'

    return (
        f'<div class="popup-media" data-active-index="{active_index}">'
        f'<div class="popup-media-track">{slides}</div>{dots}</div>'
    )


def loading_media_html() -> str:
    return '<div class="popup-media is-loading" aria-busy="true"></div>'


def popup_html(site: Site, media_html: str | None = None) -> str:
    """
    Popup card for a site.

    Args:
        site: The site
        media_html: Carousel, placeholder or loading block; omitted when None
    """
    style = category_style(site.type.value)
    card_classes = "popup-card has-media" if media_html else "popup-card"

    link = ""
    if site.official_url:
        link = (
            f'<a href="{escape_html(site.official_url)}" target="_blank" '
            f'rel="noopener noreferrer" class="popup-link">View on UNESCO &rarr;</a>'
        )

    return (
        f'<div class="{card_classes}" data-site-id="{escape_html(site.key)}">'
        f'{media_html or ""}'
        '<div class="popup-body">'
        '<div class="popup-header">'
        f'<h3>{escape_html(site.name)}</h3>'
        f'<span class="popup-badge" style="--badge-color:{style["color"]}">{style["label"]}</span>'
        "</div>"
        '<div class="popup-details">'
        f'<p class="popup-meta"><span>Country</span>{escape_html(site.country)}</p>'
        f'<p class="popup-meta"><span>Inscribed</span>{escape_html(site.inscription_year)}</p>'
        f'<p class="popup-description">{escape_html(site.description)}</p>'
        "</div>"
        f"{link}"
        "</div>"
        "</div>"
    )


def popup_size(has_media: bool) -> tuple[int, int]:
    return POPUP_WIDTH, POPUP_HEIGHT + (POPUP_MEDIA_HEIGHT if has_media else 0)


def build_marker(site: Site) -> MarkerSpec:
    """Marker for a site, with its popup shown before images are loaded."""
    has_media = bool(site.images)
    return MarkerSpec(
        id=site.key,
        location=site.location,
        category=site.type.value,
        icon_html=marker_icon_html(site.type.value),
        tooltip_html=tooltip_html(site),
        popup_html=popup_html(site, loading_media_html() if has_media else None),
        popup_size=popup_size(has_media),
    )


def cluster_icon_html(categories: Sequence[str]) -> str:
    """Cluster bubble colored by the dominant category."""
    colors = cluster_style(categories)
    return (
        '<div class="heritage-cluster" '
        f'style="background-color:{colors["ring"]};border-color:{colors["border"]};">'
        f'<div style="background-color:{colors["fill"]};"><span>{len(categories)}</span></div>'
        "</div>"
    )
