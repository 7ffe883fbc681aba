"""Abstract base class for vector-store service providers.

Defines the contract for storing, querying, and managing embedded document
chunks in named collections.  The connection is owned explicitly: callers
``connect()`` once, share the provider between the indexer and the
retriever, and ``disconnect()`` once at shutdown.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from corpuschat.models.rag import CorpusStats, DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (corpuschat/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the RAG pipeline.

    All data methods are async to support network-backed stores without
    blocking the event loop.  Every data method takes the collection name
    explicitly so one connection can serve several corpora.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the store.

        Raises
        ------
        corpuschat.utils.errors.IndexConnectionError
            If the store cannot be reached.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection.  Calling it on a closed store is a no-op."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Return ``True`` between a successful :meth:`connect` and :meth:`disconnect`."""

    # ------------------------------------------------------------------
    # Data operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def query(
        self,
        collection_name: str,
        query_vector: list[float],
        top_k: int = 4,
    ) -> list[RetrievedChunk]:
        """Return the *top_k* chunks nearest to *query_vector*.

        Parameters
        ----------
        collection_name:
            Collection to search.  A missing collection yields no results.
        query_vector:
            Embedding of the question.
        top_k:
            Maximum number of results to return.

        Returns
        -------
        list[RetrievedChunk]
            Zero or more results ranked by similarity score (descending).

        Raises
        ------
        corpuschat.utils.errors.IndexConnectionError
            If the store cannot be queried.
        """

    @abstractmethod
    async def upsert(
        self,
        collection_name: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Insert or replace pre-embedded chunks, keyed by ``chunk_id``.

        Parameters
        ----------
        collection_name:
            Target collection; created on first write.
        chunks:
            The document chunks to store.
        embeddings:
            Embedding vectors corresponding positionally to *chunks*.

        Returns
        -------
        int
            The number of chunks written.

        Raises
        ------
        ValueError
            If ``len(chunks) != len(embeddings)``.
        corpuschat.utils.errors.IndexConnectionError
            If the write fails.
        """

    @abstractmethod
    async def delete_by_source(self, collection_name: str, source_id: str) -> int:
        """Delete all chunks of one source document and return how many were removed."""

    @abstractmethod
    async def get_source_hashes(self, collection_name: str) -> dict[str, str]:
        """Return ``{source_id: content_hash}`` for every source in the collection."""

    @abstractmethod
    async def get_source_chunk_counts(self, collection_name: str) -> dict[str, int]:
        """Return ``{source_id: number of stored chunks}`` for every source in the collection."""

    @abstractmethod
    async def drop_collection(self, collection_name: str) -> bool:
        """Delete the whole collection.  Returns ``False`` if it did not exist."""

    @abstractmethod
    async def get_stats(self, collection_name: str) -> CorpusStats:
        """Return aggregate statistics about one collection."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""
