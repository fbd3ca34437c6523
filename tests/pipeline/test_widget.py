# SPDX-License-Identifier: MIT
"""Tests for the projected map widget and geometry helpers."""

import pytest

from pipeline.render import MarkerSpec, Point, ProjectedMapWidget
from pipeline.utils.geo import Bounds, LatLng, bounds_of, fit_zoom, parse_wkt_point, project, unproject


def _marker(marker_id, lat, lng, category="cultural"):
    return MarkerSpec(id=marker_id, location=LatLng(lat, lng), category=category, icon_html="<div></div>")


class TestGeo:
    """Projection helpers."""

    def test_project_origin(self):
        assert project(LatLng(0, 0), 0) == pytest.approx((128.0, 128.0))

    def test_unproject_inverts_project(self):
        x, y = project(LatLng(48.8584, 2.2945), 5)
        point = unproject(x, y, 5)
        assert point.lat == pytest.approx(48.8584)
        assert point.lng == pytest.approx(2.2945)

    def test_bounds_of(self):
        bounds = bounds_of([LatLng(1, 5), LatLng(-3, 2), LatLng(4, -1)])
        assert bounds == Bounds(south=-3, west=-1, north=4, east=5)
        assert bounds_of([]) is None

    def test_fit_zoom_single_point_is_max(self):
        assert fit_zoom(Bounds(1, 1, 1, 1), 800, 600, max_zoom=19) == 19

    def test_fit_zoom_world(self):
        assert fit_zoom(Bounds(-60, -170, 70, 170), 1000, 800, padding=50) == 1

    def test_parse_wkt(self):
        assert parse_wkt_point("Point(2.5 -3)") == (2.5, -3.0)
        assert parse_wkt_point("garbage") == (None, None)


class TestProjectedMapWidget:
    """Camera and marker bookkeeping."""

    def test_center_maps_to_middle(self):
        widget = ProjectedMapWidget(width=1000, height=800, center=LatLng(10, 20), zoom=4)
        point = widget.latlng_to_container_point(LatLng(10, 20))
        assert (point.x, point.y) == pytest.approx((500, 400))

    def test_container_point_round_trip(self):
        widget = ProjectedMapWidget(width=1000, height=800, zoom=3)
        latlng = widget.container_point_to_latlng(Point(120, 640))
        point = widget.latlng_to_container_point(latlng)
        assert (point.x, point.y) == pytest.approx((120, 640))

    def test_pan_by_shifts_content_opposite(self):
        widget = ProjectedMapWidget(width=1000, height=800, zoom=4)
        target = LatLng(30, 10)
        before = widget.latlng_to_container_point(target)
        widget.pan_by(0, -78)
        after = widget.latlng_to_container_point(target)
        assert after.y - before.y == pytest.approx(78)
        assert after.x == pytest.approx(before.x)

    def test_fit_bounds_shows_all_markers(self):
        widget = ProjectedMapWidget(width=1000, height=800)
        for i, (lat, lng) in enumerate([(13.4, 103.9), (-0.8, -91.2), (50.1, 19.9)]):
            widget.add_marker(_marker(f"m{i}", lat, lng))
        widget.fit_bounds(widget.marker_bounds(), 50)

        for marker_id in widget.marker_ids():
            point = widget.latlng_to_container_point(widget.markers[marker_id].location)
            assert 0 <= point.x <= 1000
            assert 0 <= point.y <= 800

    def test_move_events(self):
        widget = ProjectedMapWidget(width=1000, height=800, zoom=3)
        events = []
        widget.on("movestart", lambda: events.append("move"))
        widget.on("zoomstart", lambda: events.append("zoom"))

        widget.pan_by(10, 10)
        widget.fly_to(LatLng(0, 0), 5)
        assert events == ["move", "move", "zoom"]

    def test_deferred_move_end(self):
        widget = ProjectedMapWidget(width=1000, height=800, defer_move_end=True)
        ended = []
        widget.once_move_end(lambda: ended.append(True))
        widget.pan_by(5, 5)
        assert widget.moving and ended == []
        widget.finish_move()
        assert ended == [True]
        widget.finish_move()
        assert ended == [True]

    def test_clusters_group_nearby_markers(self):
        widget = ProjectedMapWidget(width=1000, height=800, center=LatLng(20, 0), zoom=2)
        widget.set_clustering(True, lambda categories: f"{len(categories)}")
        widget.add_marker(_marker("a", 60, 10))
        widget.add_marker(_marker("b", 60.5, 10.5, "natural"))
        widget.add_marker(_marker("c", -30, -60))

        cluster_id = widget.cluster_of("a")
        assert cluster_id is not None
        assert widget.cluster_of("b") == cluster_id
        assert widget.cluster_of("c") is None
        assert widget.cluster_icons() == {cluster_id: "2"}

    def test_spiderfy_collapses_on_move(self):
        widget = ProjectedMapWidget(width=1000, height=800, center=LatLng(20, 0), zoom=2)
        widget.set_clustering(True)
        widget.add_marker(_marker("a", 60, 10))
        widget.add_marker(_marker("b", 60.5, 10.5))

        cluster_id = widget.cluster_of("a")
        widget.spiderfy(cluster_id)
        assert widget.is_spiderfied(cluster_id)
        widget.pan_by(20, 0)
        assert not widget.is_spiderfied(cluster_id)

    def test_popup_rect_above_marker(self):
        widget = ProjectedMapWidget(width=1000, height=800, center=LatLng(0, 0), zoom=3)
        widget.add_marker(_marker("a", 0, 0))
        assert widget.popup_rect("a") is None

        widget.open_popup("a")
        rect = widget.popup_rect("a")
        assert rect.width == 300 and rect.height == 200
        assert rect.bottom == pytest.approx(400 - 42 + 32)
        assert rect.left == pytest.approx(350)

    def test_remove_marker_closes_popup(self):
        widget = ProjectedMapWidget(width=1000, height=800)
        widget.add_marker(_marker("a", 0, 0))
        widget.open_popup("a")
        widget.remove_marker("a")
        assert widget.open_popup_id is None
        assert widget.marker_bounds() is None
