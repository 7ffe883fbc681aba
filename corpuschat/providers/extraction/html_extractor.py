"""HTML content extractor using trafilatura, with a BeautifulSoup fallback.

trafilatura isolates the main readable content of a page (dropping
navigation, ads, and boilerplate) and reports its title, byline, date,
site name, and language.  Pages it cannot make sense of (very short pages,
app shells) fall back to BeautifulSoup's plain text of ``<body>``.
"""

from __future__ import annotations

import json

import structlog
import trafilatura
from bs4 import BeautifulSoup

from corpuschat.interfaces.content_extractor import ExtractedContent, IContentExtractor
from corpuschat.interfaces.source_adapter import RawItem
from corpuschat.utils.errors import ItemFetchError

logger = structlog.get_logger(logger_name=__name__)


class HtmlContentExtractor(IContentExtractor):
    """Readable-content extraction for ``text/html`` items."""

    def extract(self, item: RawItem) -> ExtractedContent:
        html = item.content
        if not html or not html.strip():
            raise ItemFetchError(
                message="Empty HTML document",
                provider_name=self.get_provider_name(),
                locator=item.locator,
            )

        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        meta = self._extract_metadata(html, item.locator)
        soup = BeautifulSoup(html, "html.parser")

        if not text:
            logger.debug("trafilatura_extraction_empty", locator=item.locator)
            text = self._fallback_text(soup)
        if not text:
            raise ItemFetchError(
                message="No readable content found",
                provider_name=self.get_provider_name(),
                locator=item.locator,
            )

        title = meta.get("title") or self._html_title(soup)
        language = meta.get("language") or self._html_lang(soup)

        return ExtractedContent(
            text=text,
            title=title,
            author=meta.get("author") or None,
            language=language or None,
            published_at=meta.get("date") or None,
            site_name=meta.get("sitename") or meta.get("hostname") or None,
        )

    def get_provider_name(self) -> str:
        return "trafilatura"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_metadata(html: str, locator: str) -> dict[str, str]:
        raw = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
        )
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.debug("metadata_parse_failed", locator=locator)
            return {}
        return {k: str(v) for k, v in data.items() if isinstance(v, str) and v}

    @staticmethod
    def _fallback_text(soup: BeautifulSoup) -> str:
        for tag in soup(["script", "style", "noscript", "nav", "header", "footer"]):
            tag.decompose()
        root = soup.body or soup
        lines = (line.strip() for line in root.get_text("\n").splitlines())
        return "\n".join(line for line in lines if line)

    @staticmethod
    def _html_title(soup: BeautifulSoup) -> str:
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return ""

    @staticmethod
    def _html_lang(soup: BeautifulSoup) -> str:
        html_tag = soup.find("html")
        if html_tag is not None and html_tag.get("lang"):
            return str(html_tag["lang"]).strip()
        return ""
