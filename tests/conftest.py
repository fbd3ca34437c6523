# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for World Heritage Map tests."""

import os
from typing import Generator

import httpx
import pytest

# Set test environment variables before importing app
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DISABLE_LOGGING", "1")
os.environ["API_LOAD_ON_STARTUP"] = "false"

SOURCE_URL = "https://sites.example.test/whs"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def sample_records() -> list:
    """Raw proxy records covering the shapes the normalizer accepts."""
    return [
        {
            "site": "http://www.wikidata.org/entity/Q43473",
            "label": "Angkor",
            "description": "Remains of the capitals of the Khmer Empire.",
            "country": "Cambodia",
            "latitude": 13.4125,
            "longitude": 103.8667,
            "inscriptionYear": 1992,
            "type": "cultural",
            "images": ["File:Angkor Wat.jpg", "https://example.org/angkor.jpg"],
            "unescoUrl": "https://whc.unesco.org/en/list/668",
        },
        {
            "site": "http://www.wikidata.org/entity/Q38095",
            "label": "Galápagos Islands",
            "description": "Volcanic archipelago with endemic species.",
            "country": "Ecuador",
            "coord": "Point(-91.2109 -0.7893)",
            "inscriptionYear": 1978,
            "type": "natural",
        },
        {
            "site": "http://www.wikidata.org/entity/Q676203",
            "label": "Machu Picchu",
            "description": "Inca citadel in the Andes.",
            "country": "Peru",
            "latitude": "-13.1631",
            "longitude": "-72.5450",
            "inscriptionYear": "1983",
            "criteria": ["i", "iii", "vii", "ix"],
        },
        {
            "site": "http://www.wikidata.org/entity/Q12501",
            "label": "Great Wall",
            "country": "China",
            "coord": {"lat": 40.4319, "lon": 116.5704},
            "inscriptionYear": 1987,
            "type": "Cultural",
        },
        {
            "site": "http://www.wikidata.org/entity/Q1",
            "label": "Nowhere",
            "latitude": 120,
            "longitude": 10,
            "inscriptionYear": 2000,
        },
        {
            "site": "http://www.wikidata.org/entity/Q1137437",
            "label": "Historic Centre of Kraków",
            "description": "Royal capital with a medieval core.",
            "countries": ["Poland"],
            "latitude": 50.0614,
            "longitude": 19.9372,
            "inscriptionYear": 1978,
            "type": "cultural",
        },
        {
            "site": "http://www.wikidata.org/entity/Q207302",
            "label": "Serengeti National Park",
            "description": "Vast plains and the great migration.",
            "country": "Tanzania",
            "latitude": -2.3333,
            "longitude": 34.8333,
            "inscriptionYear": 1981,
            "type": "natural",
            "images": "File:Serengeti.jpg|File:Wildebeest.jpg",
        },
    ]


@pytest.fixture
def sample_sites(sample_records):
    """Normalized sample sites (the out-of-range record is dropped)."""
    from pipeline.models import SiteCollection
    from pipeline.normalizers import normalize_sites

    return SiteCollection.from_iterable(normalize_sites(sample_records))


@pytest.fixture
def source_transport(sample_records):
    """Mock data source answering with the sample records."""
    state = {"status": 200, "payload": {"sites": sample_records}, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if isinstance(state["payload"], str):
            return httpx.Response(state["status"], text=state["payload"])
        return httpx.Response(state["status"], json=state["payload"])

    transport = httpx.MockTransport(handler)
    transport.state = state
    return transport


@pytest.fixture
def source_factory(source_transport):
    """Data source factory wired to the mock transport."""
    from pipeline.sources import WorldHeritageSource

    def factory():
        return WorldHeritageSource(
            url=SOURCE_URL,
            method="GET",
            mode="proxy",
            http_client=httpx.AsyncClient(transport=source_transport),
        )

    return factory


@pytest.fixture
def resolver_calls() -> list:
    return []


@pytest.fixture
def fake_resolver(resolver_calls):
    """Thumbnail resolver turning each reference into a thumbnail URL."""

    async def resolve(refs):
        resolver_calls.append(list(refs))
        return [f"https://thumbs.example.test/{ref.replace('File:', '').replace(' ', '_')}" for ref in refs]

    return resolve


@pytest.fixture
def widget():
    """In-memory map widget; camera moves end when finish_move() is called."""
    from pipeline.render import ProjectedMapWidget

    return ProjectedMapWidget(width=1000, height=800, defer_move_end=True)


@pytest.fixture
def renderer(widget, fake_resolver):
    from pipeline.render import MapRenderer, PopupImageCache

    return MapRenderer(widget, PopupImageCache(fake_resolver), clustering=False)


@pytest.fixture
def controller(renderer, source_factory):
    from pipeline.controller import HeritageMapController

    return HeritageMapController(renderer=renderer, source_factory=source_factory, current_year=2025)


@pytest.fixture
def test_client(source_factory, fake_resolver) -> Generator:
    """Test client whose controller uses the mock source and a folium widget."""
    from fastapi.testclient import TestClient

    from api.cache import cache_clear
    from api.dependencies import get_controller
    from api.main import app
    from pipeline.controller import HeritageMapController
    from pipeline.render import FoliumMapWidget, MapRenderer, PopupImageCache

    renderer = MapRenderer(FoliumMapWidget(width=1000, height=800), PopupImageCache(fake_resolver))
    controller = HeritageMapController(renderer=renderer, source_factory=source_factory, current_year=2025)
    app.dependency_overrides[get_controller] = lambda: controller
    cache_clear()

    with TestClient(app) as client:
        client.controller = controller
        yield client

    app.dependency_overrides.clear()
    cache_clear()


@pytest.fixture
def loaded_client(test_client) -> Generator:
    """Test client after a successful reload."""
    response = test_client.post("/api/sites/reload")
    assert response.status_code == 200
    yield test_client
