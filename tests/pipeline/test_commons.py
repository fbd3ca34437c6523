# SPDX-License-Identifier: MIT
"""Tests for Wikimedia Commons thumbnail resolution."""

import httpx
import pytest

from pipeline.site_images import CommonsThumbnailResolver, reference_to_title

API_URL = "https://commons.example.test/w/api.php"


def _imageinfo_response(request: httpx.Request) -> httpx.Response:
    titles = request.url.params["titles"].split("|")
    normalized = [{"from": t, "to": t.replace("_", " ")} for t in titles if "_" in t]
    pages = []
    for title in titles:
        canonical = title.replace("_", " ")
        if "Missing" in title:
            pages.append({"title": canonical, "missing": True})
        else:
            thumb = f"https://upload.example.test/thumb/{canonical.split(':', 1)[1]}/640px"
            pages.append({"title": canonical, "imageinfo": [{"thumburl": thumb, "url": "full"}]})
    return httpx.Response(200, json={"query": {"normalized": normalized, "pages": pages}})


@pytest.fixture
def commons_requests():
    return []


@pytest.fixture
def resolver(commons_requests):
    def handler(request):
        commons_requests.append(request)
        return _imageinfo_response(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CommonsThumbnailResolver(api_url=API_URL, thumb_width=640, max_images=5, http_client=client)


class TestReferenceToTitle:
    """Reference classification."""

    def test_plain_url(self):
        assert reference_to_title("https://example.org/a.jpg") is None

    def test_file_path_url(self):
        ref = "http://commons.wikimedia.org/wiki/Special:FilePath/Angkor%20Wat_2.jpg"
        assert reference_to_title(ref) == "File:Angkor Wat 2.jpg"

    def test_file_title(self):
        assert reference_to_title("File:Angkor.jpg") == "File:Angkor.jpg"
        assert reference_to_title("file: Angkor.jpg") == "File:Angkor.jpg"

    def test_bare_name(self):
        assert reference_to_title("Angkor.jpg") == "File:Angkor.jpg"

    def test_blank(self):
        assert reference_to_title("  ") is None


@pytest.mark.anyio
class TestResolve:
    """Batched imageinfo lookups."""

    async def test_order_kept_and_urls_pass_through(self, resolver, commons_requests):
        images = await resolver.resolve(["File:A.jpg", "https://example.org/b.jpg", "File:C.jpg"])

        assert images == [
            "https://upload.example.test/thumb/A.jpg/640px",
            "https://example.org/b.jpg",
            "https://upload.example.test/thumb/C.jpg/640px",
        ]
        assert len(commons_requests) == 1
        assert commons_requests[0].url.params["iiurlwidth"] == "640"

    async def test_missing_dropped(self, resolver):
        assert await resolver.resolve(["File:Missing.jpg", "File:A.jpg"]) == [
            "https://upload.example.test/thumb/A.jpg/640px",
        ]

    async def test_normalized_titles(self, resolver):
        assert await resolver.resolve(["File:Old_Town.jpg"]) == [
            "https://upload.example.test/thumb/Old Town.jpg/640px",
        ]

    async def test_capped_at_five(self, resolver, commons_requests):
        refs = [f"File:{i}.jpg" for i in range(8)]
        images = await resolver.resolve(refs)
        assert len(images) == 5
        assert len(commons_requests[0].url.params["titles"].split("|")) == 5

    async def test_only_urls_makes_no_request(self, resolver, commons_requests):
        assert await resolver.resolve(["https://example.org/x.jpg"]) == ["https://example.org/x.jpg"]
        assert commons_requests == []

    async def test_empty(self, resolver):
        assert await resolver.resolve([]) == []

    async def test_failure_is_empty_list(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        resolver = CommonsThumbnailResolver(api_url=API_URL, http_client=client)
        assert await resolver.resolve(["File:A.jpg", "https://example.org/b.jpg"]) == []
