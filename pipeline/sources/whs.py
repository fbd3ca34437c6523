"""
World Heritage Site data source.

Fetches the site list either from a proxy function returning
{"sites": [...]} or directly from the Wikidata SPARQL endpoint, whose
{"results": {"bindings": [...]}} shape is normalized on our side.

Data source: https://query.wikidata.org/
License: CC0
"""

from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger

from pipeline.config import WIKIDATA_WHS_QUERY, settings
from pipeline.models import SiteCollection
from pipeline.normalizers import normalize_bindings, normalize_sites
from pipeline.utils.http import HTTPError, afetch


class DataSourceError(Exception):
    """Base error for site data loading failures."""
    pass


class DataSourceUnavailableError(DataSourceError):
    """The data source could not be reached or answered with an error status."""
    pass


class MalformedResponseError(DataSourceError):
    """The response was not JSON or had neither a sites list nor SPARQL bindings."""
    pass


def extract_site_records(payload: Any) -> list[dict[str, Any]]:
    """
    Pull raw site records out of a top-level response.

    Args:
        payload: Decoded JSON response

    Returns:
        Flat raw records ready for normalize_sites()

    Raises:
        MalformedResponseError: For any other top-level shape
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponseError("Invalid data structure returned from data source")

    sites = payload.get("sites")
    if isinstance(sites, list):
        return [s for s in sites if isinstance(s, Mapping)]

    results = payload.get("results")
    bindings = results.get("bindings") if isinstance(results, Mapping) else None
    if isinstance(bindings, list):
        logger.warning("Received legacy SPARQL bindings, normalizing locally")
        return normalize_bindings(bindings)

    raise MalformedResponseError("Invalid data structure returned from data source")


class WorldHeritageSource:
    """
    HTTP client for the site list.

    Fetches once per call to load(); retries are left to the user.
    """

    def __init__(
        self,
        url: str | None = None,
        method: str | None = None,
        mode: str | None = None,
        query: str = WIKIDATA_WHS_QUERY,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the data source.

        Args:
            url: Proxy function or SPARQL endpoint URL
            method: GET or POST
            mode: "proxy" or "sparql"
            query: SPARQL query sent in sparql mode and in POST bodies
            timeout: Request timeout in seconds
            http_client: Optional shared HTTP client
        """
        source_settings = settings.source
        self.url = url or source_settings.url
        self.method = (method or source_settings.method).upper()
        self.mode = mode or source_settings.mode
        self.query = query
        self.timeout = timeout or source_settings.timeout

        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        if self._owns_client and self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
            )
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

    def _request_args(self) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.mode == "sparql":
            headers["Accept"] = "application/sparql-results+json"

        if self.method == "POST":
            return {"method": "POST", "headers": headers, "json_data": {"query": self.query}}

        params = {"query": self.query, "format": "json"} if self.mode == "sparql" else None
        return {"method": "GET", "headers": headers, "params": params}

    async def fetch_payload(self) -> Any:
        """
        Fetch and decode the top-level response.

        Raises:
            DataSourceUnavailableError: On network errors or error statuses
            MalformedResponseError: When the body is not JSON
        """
        logger.info(f"Loading sites from {self.url} ({self.mode}, {self.method})")

        try:
            response = await afetch(self.client, self.url, **self._request_args())
        except HTTPError as e:
            raise DataSourceUnavailableError(str(e)) from e
        except httpx.HTTPError as e:
            raise DataSourceUnavailableError(f"Request to {self.url} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response from {self.url} is not JSON") from e

    async def load(self) -> SiteCollection:
        """Fetch, extract and normalize the full site set."""
        payload = await self.fetch_payload()
        records = extract_site_records(payload)
        logger.info(f"Number of results: {len(records)}")

        return SiteCollection.from_iterable(normalize_sites(records))
