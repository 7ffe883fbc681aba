"""Content extractors, keyed by the content type they handle."""

from corpuschat.interfaces.content_extractor import IContentExtractor
from corpuschat.providers.extraction.html_extractor import HtmlContentExtractor
from corpuschat.providers.extraction.text_extractor import PlainTextExtractor


def default_extractors() -> dict[str, IContentExtractor]:
    """Return the content-type to extractor mapping used by the CLI."""
    return {
        "text/html": HtmlContentExtractor(),
        "application/xhtml+xml": HtmlContentExtractor(),
        "text/plain": PlainTextExtractor(),
    }


__all__ = ["HtmlContentExtractor", "PlainTextExtractor", "default_extractors"]
