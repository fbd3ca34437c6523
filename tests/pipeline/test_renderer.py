# SPDX-License-Identifier: MIT
"""Tests for the map renderer."""

import asyncio

import pytest

from pipeline.render import AutoFitPolicy, MapRenderer, PopupImageCache, PopupPhase, ProjectedMapWidget
from pipeline.render.markers import NO_IMAGE_HTML
from pipeline.models import SiteCollection
from pipeline.normalizers import normalize_site, normalize_sites
from pipeline.utils.geo import LatLng


def _site(site_id, lat, lng, site_type="cultural", images=None, name=None):
    return normalize_site({
        "site": f"http://www.wikidata.org/entity/{site_id}",
        "label": name or site_id,
        "latitude": lat,
        "longitude": lng,
        "type": site_type,
        "images": images or [],
        "inscriptionYear": 1990,
    })


@pytest.fixture
def clustered(fake_resolver):
    """Renderer with clustering, no pending auto-fit, camera over the northern hemisphere."""
    widget = ProjectedMapWidget(width=1000, height=800, center=LatLng(20, 0), zoom=2, defer_move_end=True)
    policy = AutoFitPolicy(auto_fit_enabled=False)
    return MapRenderer(widget, PopupImageCache(fake_resolver), policy=policy, clustering=True)


class TestRender:
    """Marker drawing and auto-fit."""

    def test_adds_one_marker_per_site(self, renderer, sample_sites):
        result = renderer.render(list(sample_sites))
        assert result.marker_count == 6
        assert sorted(renderer.widget.marker_ids()) == sorted(s.id for s in sample_sites)

    def test_rerender_replaces_markers(self, renderer, sample_sites):
        renderer.render(list(sample_sites))
        renderer.render(list(sample_sites)[:2])
        assert len(renderer.widget.marker_ids()) == 2

    def test_first_render_fits_all_markers(self, renderer, sample_sites):
        result = renderer.render(list(sample_sites))
        renderer.widget.finish_move()

        assert result.fitted
        for site in sample_sites:
            point = renderer.widget.latlng_to_container_point(site.location)
            assert 0 <= point.x <= 1000 and 0 <= point.y <= 800

    def test_fit_is_not_a_user_gesture(self, renderer, sample_sites):
        renderer.render(list(sample_sites))
        assert renderer.policy.programmatic_move
        renderer.widget.finish_move()
        assert not renderer.policy.programmatic_move
        assert not renderer.policy.user_has_adjusted

    def test_user_gesture_suspends_fit(self, renderer, sample_sites):
        renderer.render(list(sample_sites))
        renderer.widget.finish_move()

        renderer.widget.user_move(LatLng(10, 10), 4)
        renderer.widget.finish_move()
        result = renderer.render(list(sample_sites)[:3])
        assert not result.fitted
        assert renderer.widget.camera.zoom == 4

    def test_request_fit_after_gesture(self, renderer, sample_sites):
        renderer.widget.user_move(LatLng(10, 10), 4)
        renderer.widget.finish_move()
        renderer.request_fit()
        assert renderer.render(list(sample_sites)).fitted

    def test_empty_set_never_fits(self, renderer):
        assert not renderer.render([]).fitted

    def test_sites_without_uri_get_one_marker_each(self, renderer):
        sites = normalize_sites([
            {"name": "A", "latitude": 10, "longitude": 10},
            {"name": "B", "latitude": 20, "longitude": 20},
            {"name": "C", "latitude": 40, "longitude": -70},
        ])
        assert {s.id for s in sites} == {"unknown"}

        result = renderer.render(sites)

        assert result.marker_count == 3
        assert renderer.widget.marker_ids() == ["unknown", "unknown-1", "unknown-2"]
        assert [renderer.sites[k].name for k in renderer.widget.marker_ids()] == ["A", "B", "C"]
        assert renderer.widget.markers["unknown-2"].location == LatLng(40, -70)

    def test_collection_keys_reach_the_renderer(self, renderer):
        sites = SiteCollection.from_iterable(normalize_sites([
            {"name": "A", "latitude": 10, "longitude": 10},
            {"name": "B", "latitude": 20, "longitude": 20},
        ]))
        assert [s.key for s in sites] == ["unknown", "unknown-1"]
        assert sites.get("unknown-1").name == "B"

        renderer.render(list(sites))
        assert sorted(renderer.sites) == ["unknown", "unknown-1"]

    def test_cluster_icon_uses_dominant_color(self, clustered):
        sites = [
            _site("A", 60, 10),
            _site("B", 60.2, 10.2),
            _site("C", 60.4, 10.4),
            _site("D", 60.1, 10.1, "natural"),
        ]
        clustered.render(sites)
        icons = clustered.widget.cluster_icons()

        assert len(icons) == 1
        html = next(iter(icons.values()))
        assert "#DC2626" in html
        assert ">4<" in html


class TestHover:
    """Tooltip hover state."""

    def test_hover(self, renderer, sample_sites):
        renderer.render(list(sample_sites))
        renderer.hover("Q43473")
        assert renderer.hover_state.markers_dimmed
        renderer.unhover("Q43473")
        assert not renderer.hover_state.markers_dimmed

    def test_hover_unknown_marker_ignored(self, renderer):
        renderer.render([])
        renderer.hover("nope")
        assert renderer.hover_state.hovered_id is None


@pytest.mark.anyio
class TestPopups:
    """Popup opening, image loading and placement."""

    async def test_open_with_images(self, renderer, resolver_calls):
        site = _site("Q1", 10, 10, images=["File:A.jpg", "File:B.jpg"])
        renderer.render([site])
        renderer.widget.finish_move()

        session = await renderer.open_popup("Q1")

        assert session.phase == PopupPhase.ADJUSTED
        assert session.carousel.images == [
            "https://thumbs.example.test/A.jpg",
            "https://thumbs.example.test/B.jpg",
        ]
        html = renderer.widget.popups["Q1"]
        assert "popup-media-dot" in html
        assert "https://thumbs.example.test/A.jpg" in html
        assert resolver_calls == [["File:A.jpg", "File:B.jpg"]]

    async def test_open_without_images_shows_placeholder(self, renderer, resolver_calls):
        renderer.render([_site("Q1", 10, 10)])
        renderer.widget.finish_move()

        session = await renderer.open_popup("Q1")
        assert session.carousel.is_empty
        assert NO_IMAGE_HTML in renderer.widget.popups["Q1"]
        assert resolver_calls == []

    async def test_reopen_uses_cache(self, renderer, resolver_calls):
        renderer.render([_site("Q1", 10, 10, images=["File:A.jpg"])])
        renderer.widget.finish_move()

        await renderer.open_popup("Q1")
        renderer.close_popup()
        await renderer.open_popup("Q1")
        assert len(resolver_calls) == 1

    async def test_popup_moved_below_search_bar(self, renderer):
        site = _site("Q1", 10, 10, images=["File:A.jpg"])
        renderer.render([site])
        renderer.widget.finish_move()

        # A single marker is centered, so its tall popup reaches under the search bar
        assert renderer.widget.latlng_to_container_point(site.location).y == pytest.approx(400)
        session = await renderer.open_popup("Q1")
        assert session.centered
        assert renderer.policy.programmatic_move
        assert not renderer.policy.user_has_adjusted

        renderer.widget.finish_move()
        rect = renderer.widget.popup_rect("Q1")
        assert rect.top == pytest.approx(72 + 16)
        assert not renderer.policy.programmatic_move

    async def test_popup_not_recentered(self, renderer):
        renderer.render([_site("Q1", 10, 10, images=["File:A.jpg"])])
        renderer.widget.finish_move()
        await renderer.open_popup("Q1")
        renderer.widget.finish_move()

        assert renderer.adjust_popup("Q1") == (0.0, 0.0)

    async def test_exploded_cluster_respiderfied_after_move(self, clustered):
        clustered.render([_site("A", 60, 10), _site("B", 60.5, 10.5)])
        widget = clustered.widget
        cluster_id = widget.cluster_of("A")
        widget.spiderfy(cluster_id)

        session = await clustered.open_popup("A")
        assert session.centered
        # The camera move collapsed the spider
        assert not widget.is_spiderfied(cluster_id)

        widget.finish_move()
        assert widget.is_spiderfied(widget.cluster_of("A"))
        assert widget.open_popup_id == "A"

    async def test_newer_adjustment_supersedes_pending_one(self, clustered):
        clustered.render([_site("A", 60, 10), _site("B", 60.5, 10.5), _site("C", 62, -40)])
        widget = clustered.widget
        widget.spiderfy(widget.cluster_of("A"))

        await clustered.open_popup("A")
        await clustered.open_popup("C")
        widget.finish_move()

        # Only the latest continuation ran: no re-spiderfy for A, popup C stays open
        assert not widget.spiderfied
        assert widget.open_popup_id == "C"
        assert not clustered.policy.programmatic_move

    async def test_close_while_loading(self, widget, resolver_calls):
        release = asyncio.Event()

        async def slow_resolve(refs):
            resolver_calls.append(refs)
            await release.wait()
            return ["https://thumbs.example.test/slow.jpg"]

        renderer = MapRenderer(widget, PopupImageCache(slow_resolve), clustering=False)
        renderer.render([_site("Q1", 10, 10, images=["File:Slow.jpg"])])
        widget.finish_move()

        task = asyncio.create_task(renderer.open_popup("Q1"))
        await asyncio.sleep(0)
        assert renderer.session.phase == PopupPhase.LOADING_IMAGES

        renderer.close_popup()
        release.set()
        session = await task

        assert session.phase == PopupPhase.CLOSED
        assert "slow.jpg" not in widget.popups["Q1"]
        assert renderer.image_cache.peek("Q1") == ["https://thumbs.example.test/slow.jpg"]

    async def test_carousel_navigation_and_broken_image(self, renderer):
        renderer.render([_site("Q1", 10, 10, images=["File:A.jpg", "File:B.jpg"])])
        renderer.widget.finish_move()
        await renderer.open_popup("Q1")

        renderer.show_image(1)
        assert 'data-active-index="1"' in renderer.widget.popups["Q1"]

        renderer.image_failed(1)
        html = renderer.widget.popups["Q1"]
        assert NO_IMAGE_HTML in html
        assert "https://thumbs.example.test/B.jpg" not in html
        assert "https://thumbs.example.test/A.jpg" in html

    async def test_filtered_out_site_closes_popup(self, renderer):
        renderer.render([_site("Q1", 10, 10), _site("Q2", 20, 20)])
        renderer.widget.finish_move()
        await renderer.open_popup("Q1")

        renderer.render([_site("Q2", 20, 20)])
        assert renderer.session is None

    async def test_popups_of_sites_sharing_an_id(self, renderer, resolver_calls):
        sites = normalize_sites([
            {"name": "A", "latitude": 10, "longitude": 10, "images": ["File:A.jpg"]},
            {"name": "B", "latitude": 20, "longitude": 20, "images": ["File:B.jpg"]},
        ])
        renderer.render(sites)
        renderer.widget.finish_move()

        first = await renderer.open_popup("unknown")
        renderer.widget.finish_move()
        second = await renderer.open_popup("unknown-1")

        assert first.carousel.images == ["https://thumbs.example.test/A.jpg"]
        assert second.carousel.images == ["https://thumbs.example.test/B.jpg"]
        assert "<h3>B</h3>" in renderer.widget.popups["unknown-1"]
        assert len(resolver_calls) == 2

    async def test_unknown_site(self, renderer):
        renderer.render([])
        with pytest.raises(KeyError):
            await renderer.open_popup("missing")
