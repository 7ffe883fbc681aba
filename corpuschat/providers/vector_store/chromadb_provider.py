"""ChromaDB vector store provider adapter.

Wraps a ChromaDB client to implement :class:`IVectorStoreProvider`.  Each
``collection_name`` maps to one Chroma collection using cosine distance.

The index location comes from a single connection string:

* empty, or a filesystem path -- ``chromadb.PersistentClient`` on local disk
* ``http://host:port`` / ``https://host:port`` -- ``chromadb.HttpClient``
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import urlparse

# Disable ChromaDB telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from corpuschat.config.loader import validate_collection_name
from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider
from corpuschat.models.rag import ChunkMetadata, CorpusStats, DocumentChunk, RetrievedChunk
from corpuschat.utils.errors import ConfigurationError, IndexConnectionError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000
_UPSERT_BATCH = 500
_EXTRA_PREFIX = "extra_"

# ChunkMetadata fields stored as top-level Chroma metadata keys.
_METADATA_FIELDS = (
    "source_type",
    "title",
    "url",
    "path",
    "author",
    "language",
    "length",
    "published_at",
    "site_name",
    "chunk_index",
    "offset_start",
    "offset_end",
)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    corpuschat always passes pre-computed embeddings, so ChromaDB's
    built-in embedding is never invoked.  Without this, ChromaDB downloads
    its default ONNX model on collection creation.
    """

    def __init__(self) -> None:
        pass

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "corpuschat uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    @staticmethod
    def name() -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB.

    Parameters
    ----------
    index_url:
        ``http(s)://host:port`` for a Chroma server; empty for local storage.
    persist_directory:
        Directory used by the local persistent client.
    """

    def __init__(
        self,
        index_url: str = "",
        persist_directory: str = "./data/chromadb",
    ) -> None:
        self._index_url = index_url.strip()
        self._persist_directory = persist_directory
        self._client: Any = None
        self._validated_dimensions: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._client is not None:
            return
        settings = chromadb.config.Settings(anonymized_telemetry=False)
        try:
            if self._index_url.startswith(("http://", "https://")):
                parsed = urlparse(self._index_url)
                ssl = parsed.scheme == "https"
                client = chromadb.HttpClient(
                    host=parsed.hostname or "localhost",
                    port=parsed.port or (443 if ssl else 8000),
                    ssl=ssl,
                    settings=settings,
                )
                location = self._index_url
            else:
                location = self._index_url or self._persist_directory
                client = chromadb.PersistentClient(path=location, settings=settings)
            client.heartbeat()
        except Exception as exc:
            raise IndexConnectionError(
                message=f"Could not connect to ChromaDB at {self._index_url or self._persist_directory}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._client = client
        logger.info("chromadb_connected", location=location)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client = None
        self._validated_dimensions.clear()
        logger.info("chromadb_disconnected")

    def is_connected(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def query(
        self,
        collection_name: str,
        query_vector: list[float],
        top_k: int = 4,
    ) -> list[RetrievedChunk]:
        """Return the *top_k* nearest chunks; a missing or empty collection yields ``[]``."""
        try:
            collection = self._get_collection(collection_name, create=False)
            if collection is None:
                return []
            count = collection.count()
            if count == 0:
                return []
            self._validate_dimension(collection_name, collection, len(query_vector))

            results = collection.query(
                query_embeddings=[query_vector],
                n_results=min(top_k, count),
                include=["documents", "metadatas", "distances"],
            )
        except (IndexConnectionError, ConfigurationError):
            raise
        except Exception as exc:
            raise IndexConnectionError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["documents"] or not results["documents"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, doc_text, meta, distance in zip(ids, documents, metadatas, distances):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, meta or {}, doc_text or ""),
                    similarity_score=similarity,
                )
            )
        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)

        logger.debug(
            "chromadb_query",
            collection=collection_name,
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def upsert(
        self,
        collection_name: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Upsert pre-embedded chunks in batches of ``_UPSERT_BATCH``."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        try:
            collection = self._get_collection(collection_name, create=True)
            self._validate_dimension(collection_name, collection, len(embeddings[0]))

            total_stored = 0
            for start in range(0, len(chunks), _UPSERT_BATCH):
                batch_chunks = chunks[start : start + _UPSERT_BATCH]
                collection.upsert(
                    ids=[c.chunk_id for c in batch_chunks],
                    embeddings=embeddings[start : start + _UPSERT_BATCH],
                    documents=[c.text for c in batch_chunks],
                    metadatas=[self._chunk_to_metadata(c) for c in batch_chunks],
                )
                total_stored += len(batch_chunks)
        except (IndexConnectionError, ConfigurationError):
            raise
        except Exception as exc:
            raise IndexConnectionError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert", collection=collection_name, count=total_stored)
        return total_stored

    async def delete_by_source(self, collection_name: str, source_id: str) -> int:
        try:
            collection = self._get_collection(collection_name, create=False)
            if collection is None:
                return 0
            existing = collection.get(where={"source_id": source_id}, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                collection.delete(where={"source_id": source_id})
        except IndexConnectionError:
            raise
        except Exception as exc:
            raise IndexConnectionError(
                message=f"ChromaDB delete_by_source failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_by_source",
            collection=collection_name,
            source_id=source_id,
            deleted_count=count,
        )
        return count

    async def get_source_hashes(self, collection_name: str) -> dict[str, str]:
        """Return ``{source_id: content_hash}``, paginating to stay under SQLite limits."""
        hashes: dict[str, str] = {}
        for meta in self._iter_metadata(collection_name):
            source_id = meta.get("source_id")
            if source_id:
                hashes[str(source_id)] = str(meta.get("content_hash", ""))
        return hashes

    async def get_source_chunk_counts(self, collection_name: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for meta in self._iter_metadata(collection_name):
            source_id = meta.get("source_id")
            if source_id:
                counts[str(source_id)] = counts.get(str(source_id), 0) + 1
        return counts

    async def drop_collection(self, collection_name: str) -> bool:
        try:
            if collection_name not in self._collection_names():
                return False
            self._require_client().delete_collection(name=collection_name)
        except IndexConnectionError:
            raise
        except Exception as exc:
            raise IndexConnectionError(
                message=f"ChromaDB drop_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._validated_dimensions.pop(collection_name, None)
        logger.info("chromadb_drop_collection", collection=collection_name)
        return True

    async def get_stats(self, collection_name: str) -> CorpusStats:
        source_types: dict[str, str] = {}
        total_chunks = 0
        for meta in self._iter_metadata(collection_name):
            total_chunks += 1
            source_types[str(meta.get("source_id", ""))] = str(meta.get("source_type", "unknown"))

        sources_by_type: dict[str, int] = {}
        for source_type in source_types.values():
            sources_by_type[source_type] = sources_by_type.get(source_type, 0) + 1

        return CorpusStats(
            collection_name=collection_name,
            total_chunks=total_chunks,
            total_sources=len(source_types),
            sources_by_type=sources_by_type,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_client(self) -> Any:
        if self._client is None:
            raise IndexConnectionError(
                message="ChromaDB is not connected",
                provider_name=self.get_provider_name(),
            )
        return self._client

    def _collection_names(self) -> set[str]:
        # Chroma >= 0.6 returns names; older versions return Collection objects.
        return {
            c if isinstance(c, str) else c.name
            for c in self._require_client().list_collections()
        }

    def _get_collection(self, collection_name: str, create: bool) -> Any:
        client = self._require_client()
        if not create and collection_name not in self._collection_names():
            return None
        validate_collection_name(collection_name)
        # Newer ChromaDB versions reject an embedding function that differs from
        # the persisted one; fall back to the persisted configuration.
        try:
            return client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    def _iter_metadata(self, collection_name: str) -> list[dict[str, Any]]:
        try:
            collection = self._get_collection(collection_name, create=False)
            if collection is None:
                return []
            metadatas: list[dict[str, Any]] = []
            offset = 0
            while True:
                page = collection.get(include=["metadatas"], limit=_PAGE_SIZE, offset=offset)
                batch = page["metadatas"] or []
                metadatas.extend(m or {} for m in batch)
                if len(batch) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
            return metadatas
        except IndexConnectionError:
            raise
        except Exception as exc:
            raise IndexConnectionError(
                message=f"ChromaDB metadata scan failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _validate_dimension(self, collection_name: str, collection: Any, dimension: int) -> None:
        """Fail loudly when vectors do not match the ones already stored.

        A mismatch means the collection was built with a different
        embedding model and every query would return garbage.
        """
        known = self._validated_dimensions.get(collection_name)
        if known is None:
            if collection.count() == 0:
                return
            sample = collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return
            known = len(embeddings[0])
            self._validated_dimensions[collection_name] = known

        if known != dimension:
            logger.error(
                "embedding_dimension_mismatch",
                collection=collection_name,
                stored_dim=known,
                expected_dim=dimension,
            )
            raise ConfigurationError(
                message=(
                    f"Embedding dimension mismatch: collection '{collection_name}' holds "
                    f"{known}-dim vectors but the embedding provider produces {dimension}-dim "
                    "vectors. Use the model the collection was built with, or re-ingest "
                    "with --rebuild."
                ),
                provider_name=self.get_provider_name(),
            )

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        """Flatten a chunk's metadata to Chroma-compatible scalar values."""
        values = chunk.metadata.model_dump()
        meta: dict[str, Any] = {
            "source_id": chunk.source_id,
            "content_hash": chunk.content_hash,
        }
        for field_name in _METADATA_FIELDS:
            value = values.get(field_name)
            if value is not None:
                meta[field_name] = value
        for key, value in chunk.metadata.extra.items():
            meta[f"{_EXTRA_PREFIX}{key}"] = value
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        """Rebuild a :class:`DocumentChunk` from stored Chroma metadata."""
        fields = {name: meta[name] for name in _METADATA_FIELDS if name in meta}
        fields.setdefault("source_type", "unknown")
        fields.setdefault("chunk_index", 0)
        fields.setdefault("offset_start", 0)
        fields.setdefault("offset_end", len(text))
        extra = {
            key[len(_EXTRA_PREFIX):]: value
            for key, value in meta.items()
            if key.startswith(_EXTRA_PREFIX)
        }
        return DocumentChunk(
            chunk_id=chunk_id,
            source_id=str(meta.get("source_id", "")),
            content_hash=str(meta.get("content_hash", "")),
            text=text,
            metadata=ChunkMetadata(**fields, extra=extra),
        )
