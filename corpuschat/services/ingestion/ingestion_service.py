"""Orchestrator for the full document ingestion pipeline.

Pipeline stages: **fetch -> normalize -> chunk -> embed -> store**.

The :class:`IngestionService` coordinates its collaborators without any of
them knowing about each other:

    1. ISourceAdapter -- fetches raw items for the descriptor's kind
    2. DocumentNormalizer -- turns items into documents, skipping bad ones
    3. RecursiveTextChunker -- splits documents into overlapping windows
    4. Indexer -- embeds chunks and upserts them into the collection

One service instance handles every source kind; the per-kind behaviour
lives entirely in the injected adapters and the pipeline configuration.

Re-ingestion is content-addressed: every chunk stores a hash of its
document's text and chunking parameters.  A document whose hash matches
what the collection already holds, with all of its chunks present, is
skipped.  A changed document, or one left incomplete by earlier embedding
failures, has its old chunks deleted before the new ones are written.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from corpuschat.models.rag import DocumentChunk, IngestionReport, ItemFailure
from corpuschat.utils.errors import ConfigurationError, ItemFetchError

if TYPE_CHECKING:
    from corpuschat.interfaces.source_adapter import ISourceAdapter, SourceDescriptor
    from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider
    from corpuschat.services.ingestion.chunker import RecursiveTextChunker
    from corpuschat.services.ingestion.indexer import Indexer
    from corpuschat.services.ingestion.normalizer import DocumentNormalizer

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Orchestrates ingestion of one source descriptor into one collection.

    Parameters
    ----------
    adapters:
        Mapping of source kind (``"sitemap"``, ``"pdf"``, ...) to adapter.
    normalizer:
        Converts raw items to documents.
    chunker:
        Splits documents into chunks.
    indexer:
        Embeds and stores chunks.
    vector_store:
        The same connected store the indexer writes to; used for
        re-ingestion bookkeeping and rebuilds.
    """

    def __init__(
        self,
        adapters: dict[str, ISourceAdapter],
        normalizer: DocumentNormalizer,
        chunker: RecursiveTextChunker,
        indexer: Indexer,
        vector_store: IVectorStoreProvider,
    ) -> None:
        self._adapters = adapters
        self._normalizer = normalizer
        self._chunker = chunker
        self._indexer = indexer
        self._vector_store = vector_store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        descriptor: SourceDescriptor,
        collection_name: str,
        rebuild: bool = False,
    ) -> IngestionReport:
        """Fetch, normalize, chunk, and index everything *descriptor* names.

        Parameters
        ----------
        descriptor:
            The source to ingest.
        collection_name:
            Target collection.
        rebuild:
            Drop the collection before ingesting.

        Returns
        -------
        IngestionReport
            Counts and per-item / per-chunk failures for the run.

        Raises
        ------
        ConfigurationError
            If the descriptor is empty or no adapter handles its kind.
        IndexConnectionError
            If the vector store cannot be read or written.
        """
        start = time.monotonic()

        if not descriptor.location:
            raise ConfigurationError(message=f"No location given for source kind '{descriptor.kind}'")
        adapter = self._adapters.get(descriptor.kind)
        if adapter is None:
            known = ", ".join(sorted(self._adapters))
            raise ConfigurationError(
                message=f"Unsupported source kind '{descriptor.kind}' (expected one of: {known})"
            )

        if rebuild:
            dropped = await self._vector_store.drop_collection(collection_name)
            logger.info("collection_rebuild", collection=collection_name, dropped=dropped)

        try:
            items = await adapter.fetch_all(descriptor)
        except ItemFetchError as exc:
            logger.error("source_fetch_failed", source=descriptor.location, error=str(exc))
            return self._empty_report(
                collection_name,
                start,
                failures=[ItemFailure(locator=descriptor.location, error=str(exc))],
            )

        normalized = self._normalizer.normalize_all(items, descriptor)
        stored_hashes = await self._vector_store.get_source_hashes(collection_name)
        stored_counts = await self._vector_store.get_source_chunk_counts(collection_name)

        pending: list[DocumentChunk] = []
        chunks_created = 0
        unchanged = 0
        for document in normalized.documents:
            chunks = self._chunker.split(document)
            chunks_created += len(chunks)
            if not chunks:
                continue

            previous_hash = stored_hashes.get(document.source_id)
            stored = stored_counts.get(document.source_id, 0)
            if previous_hash == chunks[0].content_hash and stored == len(chunks):
                unchanged += 1
                logger.debug("document_unchanged", source_id=document.source_id)
                continue
            if previous_hash is not None:
                removed = await self._vector_store.delete_by_source(collection_name, document.source_id)
                logger.info(
                    "document_replaced",
                    source_id=document.source_id,
                    removed_chunks=removed,
                    incomplete=previous_hash == chunks[0].content_hash,
                )
            pending.extend(chunks)

        indexing = await self._indexer.upsert(pending, collection_name)

        report = IngestionReport(
            collection_name=collection_name,
            items_fetched=len(items),
            documents_loaded=len(normalized.documents),
            documents_unchanged=unchanged,
            chunks_created=chunks_created,
            chunks_indexed=indexing.chunks_indexed,
            item_failures=normalized.failures,
            chunk_failures=indexing.failures,
            ingestion_time=round(time.monotonic() - start, 2),
        )
        logger.info(
            "ingestion_complete",
            collection=collection_name,
            source=descriptor.location,
            documents=report.documents_loaded,
            unchanged=report.documents_unchanged,
            chunks=report.chunks_indexed,
            skipped_items=len(report.item_failures),
            failed_chunks=len(report.chunk_failures),
            time_s=report.ingestion_time,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _empty_report(
        collection_name: str,
        start: float,
        failures: list[ItemFailure],
    ) -> IngestionReport:
        """Return an :class:`IngestionReport` with zero counts."""
        return IngestionReport(
            collection_name=collection_name,
            item_failures=failures,
            ingestion_time=round(time.monotonic() - start, 2),
        )
