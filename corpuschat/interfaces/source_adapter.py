"""Abstract base class for source adapters.

A source adapter turns a source descriptor (a sitemap URL, a page URL, a
PDF path, a video URL) into a flat list of raw items.  Each item is one
unit the normalizer will try to turn into a document: one web page, one
PDF page, one transcript.  Adapters never abort a batch because one item
failed; the failed item is returned with its error attached so the
normalizer can log and skip it while keeping the batch order intact.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from corpuschat.utils.errors import ItemFetchError


@dataclass(frozen=True)
class SourceDescriptor:
    """What to ingest.

    Attributes
    ----------
    kind:
        Source kind, one of ``"sitemap"``, ``"page"``, ``"pdf"``, ``"youtube"``.
    location:
        The URL or filesystem path identifying the source.
    language:
        Preferred content language (used for video transcripts).
    """

    kind: str
    location: str
    language: str | None = None


@dataclass(frozen=True)
class RawItem:
    """One fetched (or failed) unit of source content.

    Attributes
    ----------
    locator:
        Unique reference to the item, e.g. a page URL or ``"file.pdf#page=3"``.
    content:
        The raw payload; HTML markup or plain text depending on
        ``content_type``.  Empty when ``error`` is set.
    content_type:
        MIME-like type used to pick a content extractor
        (``"text/html"``, ``"text/plain"``).
    metadata:
        Metadata the adapter already knows (title, url, path, published_at,
        extra, ...).  Extractor output takes precedence where both exist.
    error:
        Set when the item could not be fetched.
    """

    locator: str
    content: str = ""
    content_type: str = "text/plain"
    metadata: dict[str, Any] = field(default_factory=dict)
    error: ItemFetchError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ISourceAdapter(ABC):
    """Contract for components that fetch raw items for one source kind."""

    @abstractmethod
    async def fetch_all(self, descriptor: SourceDescriptor) -> list[RawItem]:
        """Fetch every item described by *descriptor*.

        Parameters
        ----------
        descriptor:
            The source to fetch.

        Returns
        -------
        list[RawItem]
            Items in source order.  Items that could not be fetched are
            included with ``error`` set.

        Raises
        ------
        corpuschat.utils.errors.ConfigurationError
            If the descriptor is missing or malformed for this adapter.
        corpuschat.utils.errors.ItemFetchError
            If the source as a whole (e.g. the sitemap itself) cannot be read.
        """

    @abstractmethod
    def get_source_kind(self) -> str:
        """Return the descriptor ``kind`` this adapter handles."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this adapter."""
