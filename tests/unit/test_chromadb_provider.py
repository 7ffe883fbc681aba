"""Unit tests for the ChromaDB vector store provider.

Runs against a real persistent Chroma store in a temporary directory.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from corpuschat.models.rag import ChunkMetadata, DocumentChunk
from corpuschat.providers.vector_store.chromadb_provider import ChromaDBProvider
from corpuschat.utils.errors import ConfigurationError, IndexConnectionError


def _make_chunk(
    chunk_id: str,
    source_id: str = "s1",
    text: str = "test text",
    source_type: str = "page",
    content_hash: str = "hash-1",
    **extra,
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        source_id=source_id,
        content_hash=content_hash,
        text=text,
        metadata=ChunkMetadata(
            source_type=source_type,
            title=f"Title {source_id}",
            url=f"https://example.com/{source_id}",
            chunk_index=0,
            offset_start=0,
            offset_end=len(text),
            extra=extra,
        ),
    )


@pytest_asyncio.fixture
async def provider(tmp_chromadb_dir: str):
    store = ChromaDBProvider(persist_directory=tmp_chromadb_dir)
    await store.connect()
    yield store
    await store.disconnect()


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, tmp_chromadb_dir: str) -> None:
        store = ChromaDBProvider(persist_directory=tmp_chromadb_dir)
        assert store.is_connected() is False

        await store.connect()
        assert store.is_connected() is True

        await store.disconnect()
        await store.disconnect()
        assert store.is_connected() is False
        assert store.get_provider_name() == "chromadb"

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, tmp_chromadb_dir: str) -> None:
        store = ChromaDBProvider(persist_directory=tmp_chromadb_dir)

        with pytest.raises(IndexConnectionError, match="not connected"):
            await store.query("docs", [1.0, 0.0, 0.0], top_k=1)

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self) -> None:
        store = ChromaDBProvider(index_url="http://127.0.0.1:9")

        with pytest.raises(IndexConnectionError, match="Could not connect"):
            await store.connect()


class TestStoreOperations:
    @pytest.mark.asyncio
    async def test_query_missing_collection_returns_empty(self, provider: ChromaDBProvider) -> None:
        assert await provider.query("nothing-here", [1.0, 0.0, 0.0], top_k=4) == []

    @pytest.mark.asyncio
    async def test_upsert_and_query_orders_by_similarity(self, provider: ChromaDBProvider) -> None:
        chunks = [
            _make_chunk("a", source_id="s1", text="solar"),
            _make_chunk("b", source_id="s2", text="wind"),
            _make_chunk("c", source_id="s3", text="hydro"),
        ]
        vectors = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.7, 0.7, 0.0]]

        stored = await provider.upsert("docs", chunks, vectors)
        results = await provider.query("docs", [1.0, 0.1, 0.0], top_k=2)

        assert stored == 3
        assert [r.chunk.chunk_id for r in results] == ["a", "c"]
        assert results[0].similarity_score > results[1].similarity_score
        assert 0.0 <= results[1].similarity_score <= 1.0

    @pytest.mark.asyncio
    async def test_top_k_larger_than_collection(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("docs", [_make_chunk("a")], [[1.0, 0.0, 0.0]])

        results = await provider.query("docs", [1.0, 0.0, 0.0], top_k=10)

        assert len(results) == 1
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.asyncio
    async def test_metadata_round_trip(self, provider: ChromaDBProvider) -> None:
        chunk = _make_chunk("a", source_type="pdf", page_number=3, total_pages=9)
        await provider.upsert("docs", [chunk], [[1.0, 0.0, 0.0]])

        result = (await provider.query("docs", [1.0, 0.0, 0.0], top_k=1))[0].chunk

        assert result.source_id == "s1"
        assert result.content_hash == "hash-1"
        assert result.text == "test text"
        assert result.metadata.source_type == "pdf"
        assert result.metadata.title == "Title s1"
        assert result.metadata.url == "https://example.com/s1"
        assert result.metadata.path is None
        assert result.metadata.extra == {"page_number": 3, "total_pages": 9}

    @pytest.mark.asyncio
    async def test_upsert_same_id_replaces(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("docs", [_make_chunk("a", text="old")], [[1.0, 0.0, 0.0]])
        await provider.upsert("docs", [_make_chunk("a", text="new")], [[1.0, 0.0, 0.0]])

        stats = await provider.get_stats("docs")
        results = await provider.query("docs", [1.0, 0.0, 0.0], top_k=4)

        assert stats.total_chunks == 1
        assert results[0].chunk.text == "new"

    @pytest.mark.asyncio
    async def test_upsert_length_mismatch_raises(self, provider: ChromaDBProvider) -> None:
        with pytest.raises(ValueError, match="mismatch"):
            await provider.upsert("docs", [_make_chunk("a")], [])

    @pytest.mark.asyncio
    async def test_delete_by_source(self, provider: ChromaDBProvider) -> None:
        chunks = [
            _make_chunk("a1", source_id="s1"),
            _make_chunk("a2", source_id="s1"),
            _make_chunk("b1", source_id="s2"),
        ]
        await provider.upsert("docs", chunks, [[1.0, 0.0, 0.0]] * 3)

        deleted = await provider.delete_by_source("docs", "s1")

        assert deleted == 2
        assert await provider.get_source_hashes("docs") == {"s2": "hash-1"}
        assert await provider.delete_by_source("docs", "s1") == 0
        assert await provider.delete_by_source("missing", "s1") == 0

    @pytest.mark.asyncio
    async def test_get_source_hashes(self, provider: ChromaDBProvider) -> None:
        chunks = [
            _make_chunk("a", source_id="s1", content_hash="h1"),
            _make_chunk("b", source_id="s2", content_hash="h2"),
        ]
        await provider.upsert("docs", chunks, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])

        assert await provider.get_source_hashes("docs") == {"s1": "h1", "s2": "h2"}
        assert await provider.get_source_hashes("missing") == {}

    @pytest.mark.asyncio
    async def test_get_source_chunk_counts(self, provider: ChromaDBProvider) -> None:
        chunks = [
            _make_chunk("a1", source_id="s1"),
            _make_chunk("a2", source_id="s1"),
            _make_chunk("b1", source_id="s2"),
        ]
        await provider.upsert("docs", chunks, [[1.0, 0.0, 0.0]] * 3)

        assert await provider.get_source_chunk_counts("docs") == {"s1": 2, "s2": 1}
        assert await provider.get_source_chunk_counts("missing") == {}

    @pytest.mark.asyncio
    async def test_get_stats(self, provider: ChromaDBProvider) -> None:
        chunks = [
            _make_chunk("a1", source_id="s1", source_type="pdf"),
            _make_chunk("a2", source_id="s1", source_type="pdf"),
            _make_chunk("b1", source_id="s2", source_type="page"),
        ]
        await provider.upsert("docs", chunks, [[1.0, 0.0, 0.0]] * 3)

        stats = await provider.get_stats("docs")

        assert stats.collection_name == "docs"
        assert stats.total_chunks == 3
        assert stats.total_sources == 2
        assert stats.sources_by_type == {"pdf": 1, "page": 1}

    @pytest.mark.asyncio
    async def test_drop_collection(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("docs", [_make_chunk("a")], [[1.0, 0.0, 0.0]])

        assert await provider.drop_collection("docs") is True
        assert await provider.drop_collection("docs") is False
        assert await provider.query("docs", [1.0, 0.0, 0.0], top_k=1) == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("docs", [_make_chunk("a")], [[1.0, 0.0, 0.0]])

        with pytest.raises(ConfigurationError, match="dimension mismatch"):
            await provider.query("docs", [1.0, 0.0, 0.0, 0.0], top_k=1)
        with pytest.raises(ConfigurationError):
            await provider.upsert("docs", [_make_chunk("b")], [[1.0, 0.0]])

    @pytest.mark.asyncio
    async def test_invalid_collection_name_is_a_configuration_error(
        self, provider: ChromaDBProvider
    ) -> None:
        with pytest.raises(ConfigurationError, match="Invalid collection name"):
            await provider.upsert("c", [_make_chunk("a")], [[1.0, 0.0, 0.0]])

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, provider: ChromaDBProvider) -> None:
        await provider.upsert("docs", [_make_chunk("a")], [[1.0, 0.0, 0.0]])
        await provider.upsert("other", [_make_chunk("b")], [[1.0, 0.0, 0.0]])

        results = await provider.query("other", [1.0, 0.0, 0.0], top_k=4)

        assert [r.chunk.chunk_id for r in results] == ["b"]
