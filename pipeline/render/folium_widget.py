"""
folium/Leaflet implementation of MapWidget.

Camera and marker state live in ProjectedMapWidget; this class turns that
state into a standalone Leaflet page. Cluster icons are colored in the
browser by a JavaScript port of the dominant-category rule, fed with shades
precomputed by pipeline.render.colors.
"""

import json
from pathlib import Path

import folium
from folium.plugins import MarkerCluster
from loguru import logger

from pipeline.config import CATEGORY_STYLES, DATA_SOURCES, NEUTRAL_COLOR
from pipeline.render.colors import CATEGORY_ORDER, darken, lighten
from pipeline.render.markers import NO_IMAGE_HTML
from pipeline.render.widget import ICON_ANCHOR, ICON_SIZE, POPUP_ANCHOR, ProjectedMapWidget
from pipeline.utils.geo import Bounds

MAP_CSS = """
<style>
.heritage-marker{width:42px;height:42px;border-radius:50% 50% 50% 0;transform:rotate(-45deg);
  display:flex;align-items:center;justify-content:center;border:2px solid #fff;box-shadow:0 2px 6px rgba(0,0,0,.35)}
.heritage-marker-icon{transform:rotate(45deg);color:#fff;font-size:16px}
.heritage-marker-icon svg{width:16px;height:16px;fill:#fff}
.heritage-cluster{width:44px;height:44px;border-radius:50%;border:2px solid;display:flex;align-items:center;justify-content:center}
.heritage-cluster div{width:32px;height:32px;border-radius:50%;display:flex;align-items:center;justify-content:center;color:#fff;font-weight:600}
.popup-media-slide{display:none}.popup-media-slide.active{display:block}
.popup-media-slide img{width:100%;height:170px;object-fit:cover;border-radius:6px}
.popup-media-dots{display:flex;gap:6px;justify-content:center;margin-top:6px}
.popup-media-dot{width:8px;height:8px;border-radius:50%;border:0;background:#cbd5e1;cursor:pointer}
.popup-media-dot.active{background:#0f172a}
.popup-media-empty{height:120px;display:flex;align-items:center;justify-content:center;background:#f1f5f9;color:#64748b;border-radius:6px}
.popup-badge{background:var(--badge-color);color:#fff;border-radius:999px;padding:2px 8px;font-size:12px}
.popup-meta span{font-weight:600;margin-right:6px}
</style>
"""

# Dot navigation and in-place degradation of broken images
MAP_JS = """
<script>
document.addEventListener('click', function (e) {
  var dot = e.target.closest('.popup-media-dot');
  if (!dot) return;
  var media = dot.closest('.popup-media');
  var index = parseInt(dot.dataset.index, 10) || 0;
  media.querySelectorAll('.popup-media-slide').forEach(function (s, i) { s.classList.toggle('active', i === index); });
  media.querySelectorAll('.popup-media-dot').forEach(function (d, i) { d.classList.toggle('active', i === index); });
  media.dataset.activeIndex = String(index);
});
document.addEventListener('error', function (e) {
  var img = e.target;
  if (img.tagName !== 'IMG' || img.dataset.fallback !== 'no-image') return;
  img.outerHTML = %s;
}, true);
</script>
""" % json.dumps(NO_IMAGE_HTML)


def cluster_icon_js() -> str:
    """JavaScript iconCreateFunction implementing the cluster color rule."""
    styles = {
        category: {
            "fill": CATEGORY_STYLES[category]["color"],
            "ring": lighten(CATEGORY_STYLES[category]["color"]),
            "border": darken(CATEGORY_STYLES[category]["color"]),
        }
        for category in CATEGORY_ORDER
    }
    neutral = {"fill": NEUTRAL_COLOR, "ring": lighten(NEUTRAL_COLOR), "border": darken(NEUTRAL_COLOR)}

    return f"""
    function(cluster) {{
        var styles = {json.dumps(styles)};
        var order = {json.dumps(CATEGORY_ORDER)};
        var counts = {{}};
        cluster.getAllChildMarkers().forEach(function(m) {{
            var c = m.options.category;
            if (styles[c]) {{ counts[c] = (counts[c] || 0) + 1; }}
        }});
        var best = null;
        order.forEach(function(c) {{
            if (counts[c] && (best === null || counts[c] > counts[best])) {{ best = c; }}
        }});
        var s = best ? styles[best] : {json.dumps(neutral)};
        return L.divIcon({{
            html: '<div class="heritage-cluster" style="background-color:' + s.ring +
                  ';border-color:' + s.border + ';"><div style="background-color:' + s.fill +
                  ';"><span>' + cluster.getChildCount() + '</span></div></div>',
            className: 'heritage-cluster-icon',
            iconSize: L.point(44, 44)
        }});
    }}
    """


class FoliumMapWidget(ProjectedMapWidget):
    """MapWidget that exports the current map as a Leaflet HTML page."""

    def __init__(self, *args, tiles: str | None = None, attribution: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.tiles = tiles or DATA_SOURCES["osm"]["tiles"]
        self.attribution = attribution or (
            f'{DATA_SOURCES["osm"]["attribution"]} | {DATA_SOURCES["wikidata"]["attribution"]}'
        )
        self.fitted_bounds: tuple[Bounds, int] | None = None

    def fit_bounds(self, bounds: Bounds, padding: int = 0) -> None:
        super().fit_bounds(bounds, padding)
        self.fitted_bounds = (bounds, padding)

    def fly_to(self, center, zoom=None) -> None:
        self.fitted_bounds = None
        super().fly_to(center, zoom)

    def pan_by(self, dx: float, dy: float) -> None:
        self.fitted_bounds = None
        super().pan_by(dx, dy)

    def to_folium(self) -> folium.Map:
        """Build a folium.Map of the current camera and markers."""
        fmap = folium.Map(
            location=[self.camera.center.lat, self.camera.center.lng],
            zoom_start=self.camera.zoom,
            min_zoom=self.min_zoom,
            max_zoom=self.max_zoom,
            tiles=None,
            control_scale=True,
            width="100%",
            height="100%",
        )
        folium.TileLayer(
            tiles=self.tiles,
            attr=self.attribution,
            name="OpenStreetMap",
            min_zoom=self.min_zoom,
            max_zoom=self.max_zoom,
        ).add_to(fmap)
        fmap.get_root().header.add_child(folium.CssLink(
            "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.5.1/css/all.min.css"
        ))
        fmap.get_root().header.add_child(folium.Element(MAP_CSS))
        fmap.get_root().html.add_child(folium.Element(MAP_JS))

        layer = fmap
        if self.clustering:
            layer = MarkerCluster(
                name="World Heritage Sites",
                icon_create_function=cluster_icon_js(),
                show_coverage_on_hover=False,
                spiderfy_on_max_zoom=True,
            ).add_to(fmap)

        for marker_id, marker in self.markers.items():
            folium.Marker(
                location=[marker.location.lat, marker.location.lng],
                icon=folium.DivIcon(
                    html=marker.icon_html,
                    icon_size=ICON_SIZE,
                    icon_anchor=ICON_ANCHOR,
                    popup_anchor=POPUP_ANCHOR,
                    class_name="custom-heritage-marker",
                ),
                tooltip=folium.Tooltip(marker.tooltip_html, direction="top", offset=(0, -46)) if marker.tooltip_html else None,
                popup=folium.Popup(self.popups.get(marker_id, ""), max_width=marker.popup_size[0] + 20),
                category=marker.category,
            ).add_to(layer)

        if self.fitted_bounds and self.markers:
            bounds, padding = self.fitted_bounds
            fmap.fit_bounds(bounds.as_folium(), padding=(padding, padding))

        return fmap

    def render_html(self) -> str:
        return self.to_folium().get_root().render()

    def save(self, path: Path | str) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_folium().save(str(path))
        logger.info(f"Saved map with {len(self.markers)} markers to {path}")
        return path
