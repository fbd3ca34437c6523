"""
Map rendering: markers, clusters, popups and camera policy.
"""

from .camera import AutoFitPolicy
from .colors import cluster_color, cluster_style, darken, lighten
from .folium_widget import FoliumMapWidget
from .images import PopupImageCache
from .popup import CarouselState, HoverState, PopupPhase, PopupSession, compute_popup_shift
from .renderer import MapRenderer, RenderResult
from .widget import MapWidget, MarkerSpec, Point, ProjectedMapWidget, Rect

__all__ = [
    'AutoFitPolicy',
    'cluster_color',
    'cluster_style',
    'lighten',
    'darken',
    'FoliumMapWidget',
    'PopupImageCache',
    'CarouselState',
    'HoverState',
    'PopupPhase',
    'PopupSession',
    'compute_popup_shift',
    'MapRenderer',
    'RenderResult',
    'MapWidget',
    'MarkerSpec',
    'Point',
    'ProjectedMapWidget',
    'Rect',
]
