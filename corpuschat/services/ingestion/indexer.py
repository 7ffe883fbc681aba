"""Embedding and upserting of chunks into a named collection.

The indexer embeds chunk texts in batches and writes ``{vector, chunk}``
pairs to the vector store keyed by ``chunk_id``.  Embedding failures are
contained: a failed batch is retried one chunk at a time, and a chunk that
still cannot be embedded is left out and recorded in the
:class:`~corpuschat.models.rag.IndexingReport`.  Store failures are not
contained; an :class:`~corpuschat.utils.errors.IndexConnectionError`
propagates to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from corpuschat.models.rag import ChunkFailure, DocumentChunk, IndexingReport
from corpuschat.utils.errors import EmbeddingError

if TYPE_CHECKING:
    from corpuschat.interfaces.embedding_provider import IEmbeddingProvider
    from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


class Indexer:
    """Embeds chunks and upserts them into the vector store.

    Parameters
    ----------
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Connected store the embedded chunks are written to.
    batch_size:
        Number of chunk texts sent per embedding call.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        batch_size: int = 64,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._batch_size = max(1, batch_size)

    async def upsert(self, chunks: list[DocumentChunk], collection_name: str) -> IndexingReport:
        """Embed *chunks* and upsert them into *collection_name*.

        Returns
        -------
        IndexingReport
            Counts of received and indexed chunks plus one failure entry per
            chunk that could not be embedded.

        Raises
        ------
        IndexConnectionError
            If the vector store write fails.
        """
        if not chunks:
            return IndexingReport(collection_name=collection_name)

        indexed = 0
        failures: list[ChunkFailure] = []

        for i in range(0, len(chunks), self._batch_size):
            batch = chunks[i : i + self._batch_size]
            embedded, batch_failures = await self._embed_batch(batch)
            failures.extend(batch_failures)
            if embedded:
                ready_chunks = [chunk for chunk, _ in embedded]
                vectors = [vector for _, vector in embedded]
                indexed += await self._vector_store.upsert(collection_name, ready_chunks, vectors)

        report = IndexingReport(
            collection_name=collection_name,
            chunks_received=len(chunks),
            chunks_indexed=indexed,
            failures=failures,
        )
        logger.info(
            "indexing_complete",
            collection=collection_name,
            received=report.chunks_received,
            indexed=report.chunks_indexed,
            failed=report.failed_count,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_batch(
        self, batch: list[DocumentChunk]
    ) -> tuple[list[tuple[DocumentChunk, list[float]]], list[ChunkFailure]]:
        """Embed one batch, degrading to per-chunk calls when the batch fails."""
        try:
            vectors = await self._embedding_provider.embed([c.text for c in batch])
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    message=f"Expected {len(batch)} embeddings, got {len(vectors)}",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            return list(zip(batch, vectors)), []
        except EmbeddingError as exc:
            if len(batch) == 1:
                logger.warning("chunk_embedding_failed", chunk_id=batch[0].chunk_id, error=str(exc))
                return [], [_failure(batch[0], exc)]
            logger.warning(
                "embedding_batch_failed",
                batch_size=len(batch),
                error=str(exc),
            )

        embedded: list[tuple[DocumentChunk, list[float]]] = []
        failures: list[ChunkFailure] = []
        for chunk in batch:
            try:
                embedded.append((chunk, await self._embedding_provider.embed_single(chunk.text)))
            except EmbeddingError as exc:
                logger.warning("chunk_embedding_failed", chunk_id=chunk.chunk_id, error=str(exc))
                failures.append(_failure(chunk, exc))
        return embedded, failures


def _failure(chunk: DocumentChunk, exc: Exception) -> ChunkFailure:
    return ChunkFailure(chunk_id=chunk.chunk_id, source_id=chunk.source_id, error=str(exc))
