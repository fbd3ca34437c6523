"""
Per-site cache of resolved popup images.

Entries are written once per site id, including empty results, and never
expire within a load cycle. Opens of the same site while a lookup is in
flight await that lookup instead of starting another one.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

Resolver = Callable[[Sequence[str]], Awaitable[list[str]]]


class PopupImageCache:
    """Resolved thumbnail URLs keyed by site id."""

    def __init__(self, resolver: Resolver, max_images: int = 5):
        self._resolver = resolver
        self._max_images = max_images
        self._resolved: dict[str, list[str]] = {}
        self._pending: dict[str, asyncio.Future] = {}
        self.lookups = 0

    def __contains__(self, site_id: str) -> bool:
        return site_id in self._resolved

    def peek(self, site_id: str) -> list[str] | None:
        cached = self._resolved.get(site_id)
        return list(cached) if cached is not None else None

    def clear(self) -> None:
        """Drop resolved entries, e.g. when the site set is replaced."""
        self._resolved.clear()

    async def get(self, site_id: str, refs: Sequence[str]) -> list[str]:
        """
        Resolved images for a site, looking them up on first request.

        Args:
            site_id: Cache key
            refs: The site's image references

        Returns:
            Thumbnail URLs, possibly empty
        """
        if site_id in self._resolved:
            return list(self._resolved[site_id])

        if not refs:
            self._resolved[site_id] = []
            return []

        pending = self._pending.get(site_id)
        if pending is not None:
            return list(await asyncio.shield(pending))

        future = asyncio.get_running_loop().create_future()
        self._pending[site_id] = future
        self.lookups += 1

        try:
            images = list(await self._resolver(list(refs)[: self._max_images]))
        except asyncio.CancelledError:
            # Waiters fall back to the placeholder; nothing is cached so a later open retries
            future.set_result([])
            raise
        except Exception as e:
            logger.warning(f"Image lookup for {site_id} failed: {e}")
            images = []
        finally:
            self._pending.pop(site_id, None)

        # First writer wins
        images = self._resolved.setdefault(site_id, images)
        future.set_result(images)
        return list(images)
