"""Nearest-neighbour retrieval of chunks for a question.

The retriever embeds the question exactly once, asks the vector store for
the ``k`` nearest chunks, and returns them most relevant first.  A store
that is temporarily unreachable is retried with exponential backoff; the
embedding call is not retried here, since providers already retry their
own transient failures.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from corpuschat.models.rag import RetrievedChunk
from corpuschat.utils.errors import ConfigurationError, IndexConnectionError

if TYPE_CHECKING:
    from corpuschat.interfaces.embedding_provider import IEmbeddingProvider
    from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


class Retriever:
    """Embeds questions and looks up their nearest chunks.

    Parameters
    ----------
    embedding_provider:
        Must be the provider the collection was indexed with.
    vector_store:
        Connected vector store.
    min_similarity:
        Results scoring below this cosine similarity are dropped.
        ``0.0`` disables the cutoff.
    max_retries:
        Attempts made against the store before giving up.
    backoff_seconds:
        Base delay; attempt *n* waits ``backoff_seconds * 2 ** (n - 1)``.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        min_similarity: float = 0.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._min_similarity = min_similarity
        self._max_retries = max(1, max_retries)
        self._backoff_seconds = backoff_seconds

    async def retrieve(self, query: str, collection_name: str, k: int) -> list[RetrievedChunk]:
        """Return up to *k* chunks from *collection_name* nearest to *query*.

        Parameters
        ----------
        query:
            The user's question.  Blank queries return no results.
        collection_name:
            Collection to search.
        k:
            Maximum number of results; must be at least 1.

        Returns
        -------
        list[RetrievedChunk]
            Results ordered by descending similarity.

        Raises
        ------
        ConfigurationError
            If ``k < 1``.
        EmbeddingError
            If the question cannot be embedded.
        IndexConnectionError
            If the store stays unreachable after all retries.
        """
        if k < 1:
            raise ConfigurationError(message=f"k must be >= 1 (got {k})")
        if not query or not query.strip():
            return []

        vector = await self._embedding_provider.embed_single(query)
        results = await self._query_with_retry(collection_name, vector, k)

        ranked = sorted(results, key=lambda r: r.similarity_score, reverse=True)
        if self._min_similarity > 0.0:
            ranked = [r for r in ranked if r.similarity_score >= self._min_similarity]
        ranked = ranked[:k]

        logger.debug(
            "retrieval_complete",
            collection=collection_name,
            k=k,
            results=len(ranked),
            top_score=ranked[0].similarity_score if ranked else None,
        )
        return ranked

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _query_with_retry(
        self, collection_name: str, vector: list[float], k: int
    ) -> list[RetrievedChunk]:
        attempt = 1
        while True:
            try:
                return await self._vector_store.query(collection_name, vector, top_k=k)
            except IndexConnectionError as exc:
                if attempt >= self._max_retries:
                    logger.error("index_query_failed", attempts=attempt, error=str(exc))
                    raise
                wait = self._backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "index_query_retry",
                    attempt=attempt,
                    wait_s=wait,
                    error=str(exc),
                )
                await asyncio.sleep(wait)
                attempt += 1
