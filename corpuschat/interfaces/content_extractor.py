"""Abstract base class for content extractors.

A content extractor reduces one raw item's payload to readable text plus
whatever descriptive metadata it can find (title, byline, language,
publication date, site name).  The normalizer selects an extractor by the
item's ``content_type``; extractors are composed, never subclassed per
source.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from corpuschat.interfaces.source_adapter import RawItem


@dataclass(frozen=True)
class ExtractedContent:
    """Readable content extracted from a raw item.

    Attributes
    ----------
    text:
        The main body text with markup stripped.
    title:
        The page or document title.
    author:
        The byline, if identifiable.
    language:
        Language code, if identifiable.
    published_at:
        Publication date string, if identifiable.
    site_name:
        Name of the hosting site, if identifiable.
    """

    text: str
    title: str = ""
    author: str | None = None
    language: str | None = None
    published_at: str | None = None
    site_name: str | None = None


class IContentExtractor(ABC):
    """Contract for services that turn a raw payload into readable text."""

    @abstractmethod
    def extract(self, item: RawItem) -> ExtractedContent:
        """Extract readable content from *item*.

        Parameters
        ----------
        item:
            A successfully fetched raw item.

        Returns
        -------
        ExtractedContent
            The extracted text and metadata.

        Raises
        ------
        corpuschat.utils.errors.ItemFetchError
            If the payload cannot be parsed or contains no usable text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"trafilatura"``."""
