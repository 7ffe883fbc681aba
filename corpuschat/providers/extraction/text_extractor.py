"""Plain-text content extractor.

Used for items whose adapter already produced text (PDF pages, video
transcripts).  Title, author, and language come from the item's own
metadata.
"""

from __future__ import annotations

from corpuschat.interfaces.content_extractor import ExtractedContent, IContentExtractor
from corpuschat.interfaces.source_adapter import RawItem
from corpuschat.utils.errors import ItemFetchError


class PlainTextExtractor(IContentExtractor):
    """Pass-through extraction for ``text/plain`` items."""

    def extract(self, item: RawItem) -> ExtractedContent:
        if not item.content or not item.content.strip():
            raise ItemFetchError(
                message="Item contains no text",
                provider_name=self.get_provider_name(),
                locator=item.locator,
            )
        meta = item.metadata
        return ExtractedContent(
            text=item.content,
            title=str(meta.get("title") or ""),
            author=meta.get("author"),
            language=meta.get("language"),
            published_at=meta.get("published_at"),
            site_name=meta.get("site_name"),
        )

    def get_provider_name(self) -> str:
        return "plain_text"
