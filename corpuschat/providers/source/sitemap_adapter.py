"""Sitemap source adapter.

Reads an XML sitemap (``<urlset>``) or sitemap index (``<sitemapindex>``)
and fetches every listed page.  Each page becomes one raw item whose
``published_at`` is the entry's ``<lastmod>``.  Pages are fetched
concurrently with a bounded number of requests in flight; results keep
sitemap order.  Nested sitemap indexes are followed up to a fixed depth.

Compressed sitemaps (``.xml.gz``) are decompressed transparently.
"""

from __future__ import annotations

import gzip
import xml.etree.ElementTree as ET
from typing import Any

import httpx
import structlog

from corpuschat.interfaces.source_adapter import ISourceAdapter, RawItem, SourceDescriptor
from corpuschat.providers.source.web_page_adapter import WebPageSourceAdapter
from corpuschat.utils.concurrency import throttled_gather
from corpuschat.utils.errors import ConfigurationError, ItemFetchError

logger = structlog.get_logger(logger_name=__name__)

_MAX_INDEX_DEPTH = 3


class SitemapSourceAdapter(ISourceAdapter):
    """Fetches every page listed in a sitemap.

    Parameters
    ----------
    page_adapter:
        Adapter used to fetch the individual pages; its HTTP client is also
        used for the sitemap documents themselves.
    concurrency:
        Maximum number of page requests in flight.
    """

    def __init__(
        self,
        page_adapter: WebPageSourceAdapter | None = None,
        http_client: httpx.AsyncClient | None = None,
        concurrency: int = 4,
    ) -> None:
        self._page_adapter = page_adapter or WebPageSourceAdapter(http_client=http_client)
        self._client = http_client or self._page_adapter._client
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # ISourceAdapter implementation
    # ------------------------------------------------------------------

    async def fetch_all(self, descriptor: SourceDescriptor) -> list[RawItem]:
        url = descriptor.location.strip()
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(
                message=f"Sitemap location must be an http(s) URL, got {descriptor.location!r}",
                provider_name=self.get_provider_name(),
            )

        entries = await self._collect_entries(url, depth=0)
        logger.info("sitemap_parsed", sitemap=url, pages=len(entries))

        results = await throttled_gather(
            [self._page_adapter.fetch_page(loc, meta) for loc, meta in entries],
            limit=self._concurrency,
        )

        items: list[RawItem] = []
        for (loc, meta), result in zip(entries, results):
            if isinstance(result, BaseException):
                error = ItemFetchError(
                    message=f"Unexpected error fetching {loc}: {result}",
                    provider_name=self.get_provider_name(),
                    locator=loc,
                )
                items.append(RawItem(locator=loc, metadata=meta, error=error))
            else:
                items.append(result)
        return items

    def get_source_kind(self) -> str:
        return "sitemap"

    def get_provider_name(self) -> str:
        return "sitemap"

    async def aclose(self) -> None:
        await self._page_adapter.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _collect_entries(self, url: str, depth: int) -> list[tuple[str, dict[str, Any]]]:
        root = await self._fetch_xml(url)
        tag = _local_name(root.tag)

        if tag == "sitemapindex":
            if depth >= _MAX_INDEX_DEPTH:
                logger.warning("sitemap_index_too_deep", sitemap=url, depth=depth)
                return []
            entries: list[tuple[str, dict[str, Any]]] = []
            for child_url, _ in _iter_locations(root, "sitemap"):
                try:
                    entries.extend(await self._collect_entries(child_url, depth + 1))
                except ItemFetchError as exc:
                    logger.warning("child_sitemap_skipped", sitemap=child_url, error=str(exc))
            return entries

        if tag != "urlset":
            raise ItemFetchError(
                message=f"Unrecognised sitemap root element <{tag}>",
                provider_name=self.get_provider_name(),
                locator=url,
            )

        seen: set[str] = set()
        entries = []
        for loc, lastmod in _iter_locations(root, "url"):
            if loc in seen:
                continue
            seen.add(loc)
            meta: dict[str, Any] = {}
            if lastmod:
                meta["published_at"] = lastmod
            entries.append((loc, meta))
        return entries

    async def _fetch_xml(self, url: str) -> ET.Element:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ItemFetchError(
                message=f"HTTP {exc.response.status_code} for sitemap {url}",
                provider_name=self.get_provider_name(),
                locator=url,
            ) from exc
        except httpx.HTTPError as exc:
            raise ItemFetchError(
                message=f"Could not fetch sitemap {url}: {exc}",
                provider_name=self.get_provider_name(),
                locator=url,
            ) from exc

        payload = response.content
        if payload[:2] == b"\x1f\x8b":
            try:
                payload = gzip.decompress(payload)
            except OSError as exc:
                raise ItemFetchError(
                    message=f"Corrupt compressed sitemap {url}: {exc}",
                    provider_name=self.get_provider_name(),
                    locator=url,
                ) from exc

        try:
            return ET.fromstring(payload)
        except ET.ParseError as exc:
            raise ItemFetchError(
                message=f"Sitemap {url} is not valid XML: {exc}",
                provider_name=self.get_provider_name(),
                locator=url,
            ) from exc


def _local_name(tag: str) -> str:
    """Strip an ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _iter_locations(root: ET.Element, entry_tag: str):
    """Yield ``(loc, lastmod)`` pairs for each ``entry_tag`` child of *root*."""
    for entry in root:
        if _local_name(entry.tag) != entry_tag:
            continue
        loc = ""
        lastmod = ""
        for field in entry:
            name = _local_name(field.tag)
            if name == "loc" and field.text:
                loc = field.text.strip()
            elif name == "lastmod" and field.text:
                lastmod = field.text.strip()
        if loc:
            yield loc, lastmod
