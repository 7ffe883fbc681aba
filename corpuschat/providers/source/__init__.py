"""Source adapters: one per ingestible source kind."""

from corpuschat.providers.source.pdf_adapter import PDFSourceAdapter
from corpuschat.providers.source.sitemap_adapter import SitemapSourceAdapter
from corpuschat.providers.source.web_page_adapter import WebPageSourceAdapter
from corpuschat.providers.source.youtube_adapter import YouTubeSourceAdapter, parse_video_id

__all__ = [
    "PDFSourceAdapter",
    "SitemapSourceAdapter",
    "WebPageSourceAdapter",
    "YouTubeSourceAdapter",
    "parse_video_id",
]
