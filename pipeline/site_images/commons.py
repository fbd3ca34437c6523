"""
Wikimedia Commons thumbnail resolution for popup images.

Site records carry image references that are either plain URLs or Commons
file titles (Wikidata P18 values arrive as Special:FilePath URLs). Titles are
resolved to sized thumbnail URLs with one batched MediaWiki imageinfo query.
"""

import urllib.parse
from collections.abc import Sequence
from typing import Any

import httpx
from loguru import logger

from pipeline.config import settings

FILE_PATH_MARKER = "Special:FilePath/"


def reference_to_title(ref: str) -> str | None:
    """Return the Commons file title for a reference, or None for plain URLs."""
    ref = ref.strip()
    if not ref:
        return None

    if ref.startswith(("http://", "https://")):
        if FILE_PATH_MARKER not in ref:
            return None
        name = ref.split(FILE_PATH_MARKER, 1)[1].split("?")[0]
        return f"File:{urllib.parse.unquote(name).replace('_', ' ')}"

    if ref.lower().startswith("file:"):
        return f"File:{ref[5:].strip()}"
    return f"File:{ref}"


class CommonsThumbnailResolver:
    """
    Resolves image references to displayable thumbnail URLs.

    No retry and no timeout override: a failed lookup resolves to an empty
    list and the popup shows its placeholder.
    """

    def __init__(
        self,
        api_url: str | None = None,
        thumb_width: int | None = None,
        max_images: int | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        image_settings = settings.images
        self.api_url = api_url or image_settings.commons_api_url
        self.thumb_width = thumb_width or image_settings.thumb_width
        self.max_images = max_images or image_settings.max_images
        self.timeout = timeout or image_settings.timeout

        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
            )
            self._owns_client = True
        return self._http_client

    async def _image_info(self, titles: Sequence[str]) -> dict[str, str]:
        """Map each requested title to its thumbnail URL."""
        params = {
            "action": "query",
            "titles": "|".join(titles),
            "prop": "imageinfo",
            "iiprop": "url",
            "iiurlwidth": self.thumb_width,
            "format": "json",
            "formatversion": "2",
        }
        headers = {
            "User-Agent": "WorldHeritageMap/1.0 (UNESCO site explorer)",
            "Accept": "application/json",
        }

        response = await self.client.get(self.api_url, params=params, headers=headers)
        response.raise_for_status()
        query: dict[str, Any] = response.json().get("query", {})

        # Requested title -> canonical title the API answered with
        aliases = {t: t for t in titles}
        for entry in query.get("normalized", []):
            for requested, canonical in aliases.items():
                if canonical == entry.get("from"):
                    aliases[requested] = entry.get("to")

        thumbs = {}
        for page in query.get("pages", []):
            info = page.get("imageinfo") or []
            if not info:
                continue
            url = info[0].get("thumburl") or info[0].get("url")
            if url:
                thumbs[page.get("title")] = url

        return {requested: thumbs[canonical] for requested, canonical in aliases.items() if canonical in thumbs}

    async def resolve(self, refs: Sequence[str]) -> list[str]:
        """
        Resolve up to max_images references, in order.

        Args:
            refs: Image URLs or Commons file titles

        Returns:
            Thumbnail URLs; unresolvable entries are dropped
        """
        refs = [r.strip() for r in refs if r and r.strip()][: self.max_images]
        if not refs:
            return []

        titles = {ref: reference_to_title(ref) for ref in refs}
        wanted = list(dict.fromkeys(t for t in titles.values() if t))

        thumbs: dict[str, str] = {}
        if wanted:
            try:
                thumbs = await self._image_info(wanted)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Commons thumbnail lookup failed: {e}")
                return []

        resolved = []
        for ref in refs:
            title = titles[ref]
            if title is None:
                resolved.append(ref)
            elif title in thumbs:
                resolved.append(thumbs[title])

        logger.debug(f"Resolved {len(resolved)}/{len(refs)} image references")
        return resolved
