"""Document normalization: raw source items to uniform documents.

The normalizer is the seam between source-specific fetching and the
source-agnostic RAG pipeline.  It picks a content extractor by each item's
``content_type``, merges what the adapter already knew about the item with
what the extractor found, and produces an immutable
:class:`~corpuschat.models.rag.Document`.

A batch never fails as a whole: an item that was not fetched, has no
extractor, or yields no text is logged and skipped, and the surviving
documents keep their original relative order.
"""

from __future__ import annotations

import hashlib

import structlog

from corpuschat.interfaces.content_extractor import IContentExtractor
from corpuschat.interfaces.source_adapter import RawItem, SourceDescriptor
from corpuschat.models.rag import Document, DocumentMetadata, ItemFailure, NormalizationResult
from corpuschat.utils.errors import ItemFetchError

logger = structlog.get_logger(logger_name=__name__)


def source_id_for(locator: str) -> str:
    """Return the stable source id for an item locator."""
    return hashlib.sha256(locator.encode("utf-8")).hexdigest()[:32]


class DocumentNormalizer:
    """Converts raw items into :class:`Document` records.

    Parameters
    ----------
    extractors:
        Mapping of content type (``"text/html"``, ``"text/plain"``) to the
        extractor that handles it.
    """

    def __init__(self, extractors: dict[str, IContentExtractor]) -> None:
        self._extractors = {k.lower(): v for k, v in extractors.items()}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, item: RawItem, descriptor: SourceDescriptor) -> Document:
        """Normalize one raw item.

        Raises
        ------
        ItemFetchError
            If the item failed to fetch, no extractor handles its content
            type, or it contains no usable text.
        """
        if item.error is not None:
            raise item.error

        extractor = self._extractors.get(_base_content_type(item.content_type))
        if extractor is None:
            raise ItemFetchError(
                message=f"No extractor for content type '{item.content_type}'",
                locator=item.locator,
            )

        content = extractor.extract(item)
        text = content.text.replace("\r\n", "\n").replace("\r", "\n").strip()
        if not text:
            raise ItemFetchError(
                message="Item contains no extractable text",
                provider_name=extractor.get_provider_name(),
                locator=item.locator,
            )

        known = item.metadata
        try:
            metadata = DocumentMetadata(
                source_type=known.get("source_type", descriptor.kind),
                title=content.title or known.get("title") or item.locator,
                url=known.get("url"),
                path=known.get("path"),
                author=content.author or known.get("author"),
                language=content.language or known.get("language") or descriptor.language,
                length=len(text),
                published_at=known.get("published_at") or content.published_at,
                site_name=content.site_name or known.get("site_name"),
                extra=known.get("extra", {}),
            )
        except ValueError as exc:
            raise ItemFetchError(
                message=f"Invalid item metadata: {exc}",
                locator=item.locator,
            ) from exc

        return Document(source_id=source_id_for(item.locator), text=text, metadata=metadata)

    def normalize_all(self, items: list[RawItem], descriptor: SourceDescriptor) -> NormalizationResult:
        """Normalize a batch, skipping (and recording) items that fail."""
        documents: list[Document] = []
        failures: list[ItemFailure] = []

        for item in items:
            try:
                documents.append(self.normalize(item, descriptor))
            except ItemFetchError as exc:
                logger.warning("item_skipped", locator=item.locator, error=str(exc))
                failures.append(ItemFailure(locator=item.locator, error=str(exc)))

        logger.info(
            "normalization_complete",
            source=descriptor.location,
            documents=len(documents),
            skipped=len(failures),
        )
        return NormalizationResult(documents=documents, failures=failures)


def _base_content_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()
