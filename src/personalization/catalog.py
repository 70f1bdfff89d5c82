"""
Content Catalog Adapters.

The content library is an external collaborator; this core only reads it.

Usage:
    catalog = StaticCatalog(demo_catalog())
    items = await catalog.items()

    async with HttpCatalog("https://library.example/api/catalog") as catalog:
        items = await catalog.items()
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx
from loguru import logger

from src.personalization.models import CatalogItem


class ContentCatalog(Protocol):
    """Read-only source of candidate content, in catalog order."""

    async def items(self) -> list[CatalogItem]:
        ...


class StaticCatalog:
    """Catalog held in memory (demo data, tests, cached snapshots)."""

    def __init__(self, items: Sequence[CatalogItem]):
        self._items = list(items)

    async def items(self) -> list[CatalogItem]:
        return list(self._items)


def parse_catalog_payload(payload: Any) -> list[CatalogItem]:
    """
    Parse a catalog response body.

    Accepts a bare list or {"items": [...]}. Entries without an id or with a
    badly shaped field are skipped one by one; the rest of the catalog is kept.
    """
    entries = payload.get("items", []) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        return []

    items = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping malformed catalog entry: {entry!r}")
            continue
        try:
            items.append(CatalogItem.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed catalog entry {entry.get('id')!r}: {e!r}")
    return items


class HttpCatalog:
    """
    Catalog fetched from the content library over HTTP.

    Connection errors and non-200 responses yield an empty catalog.
    """

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpCatalog:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def items(self) -> list[CatalogItem]:
        try:
            client = await self._ensure_client()
            response = await client.get(self.url)
        except httpx.RequestError as e:
            logger.error(f"Connection error fetching catalog: {e}")
            return []

        if response.status_code != 200:
            logger.warning(f"Failed to fetch catalog: {response.status_code}")
            return []

        try:
            items = parse_catalog_payload(response.json())
        except ValueError as e:
            logger.error(f"Catalog response is not JSON: {e}")
            return []
        logger.debug(f"Fetched {len(items)} catalog items")
        return items
