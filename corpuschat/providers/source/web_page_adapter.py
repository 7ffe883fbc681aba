"""Single web page source adapter using httpx.

Fetches one URL and hands back its HTML as a raw item.  Network and HTTP
failures are captured on the item rather than raised, so callers that
fetch many pages (the sitemap adapter) keep going past one bad page.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from corpuschat.interfaces.source_adapter import ISourceAdapter, RawItem, SourceDescriptor
from corpuschat.utils.errors import ConfigurationError, ItemFetchError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; corpuschat/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def build_http_client(timeout: float = _DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Return the shared ``httpx.AsyncClient`` configuration for web fetches."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers=_DEFAULT_HEADERS,
        follow_redirects=True,
    )


class WebPageSourceAdapter(ISourceAdapter):
    """Fetches a single HTML page."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(timeout)

    # ------------------------------------------------------------------
    # ISourceAdapter implementation
    # ------------------------------------------------------------------

    async def fetch_all(self, descriptor: SourceDescriptor) -> list[RawItem]:
        url = descriptor.location.strip()
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(
                message=f"Page location must be an http(s) URL, got {descriptor.location!r}",
                provider_name=self.get_provider_name(),
            )
        return [await self.fetch_page(url)]

    def get_source_kind(self) -> str:
        return "page"

    def get_provider_name(self) -> str:
        return "web_page"

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    async def fetch_page(self, url: str, extra_metadata: dict[str, Any] | None = None) -> RawItem:
        """Fetch *url* and return it as a raw item; failures are attached, not raised."""
        metadata: dict[str, Any] = {"source_type": self.get_source_kind(), "url": url}
        if extra_metadata:
            metadata.update(extra_metadata)

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            return self._failed(url, f"Timeout fetching {url}: {exc}", metadata)
        except httpx.HTTPStatusError as exc:
            return self._failed(url, f"HTTP {exc.response.status_code} for {url}", metadata)
        except httpx.HTTPError as exc:
            return self._failed(url, f"HTTP error fetching {url}: {exc}", metadata)

        content_type = response.headers.get("content-type", "text/html").split(";")[0].strip()
        if content_type not in ("text/html", "application/xhtml+xml", "text/plain"):
            return self._failed(url, f"Unsupported content type {content_type!r}", metadata)

        logger.debug("page_fetched", url=url, status=response.status_code, size=len(response.text))
        return RawItem(
            locator=url,
            content=response.text,
            content_type=content_type,
            metadata=metadata,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _failed(self, url: str, message: str, metadata: dict[str, Any]) -> RawItem:
        logger.warning("page_fetch_failed", url=url, error=message)
        return RawItem(
            locator=url,
            metadata=metadata,
            error=ItemFetchError(
                message=message,
                provider_name=self.get_provider_name(),
                locator=url,
            ),
        )
