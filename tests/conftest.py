"""Shared pytest fixtures for the corpuschat test suite."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from corpuschat.config.settings import Settings
from corpuschat.interfaces.embedding_provider import IEmbeddingProvider
from corpuschat.interfaces.llm_provider import ILLMProvider
from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider
from corpuschat.models.rag import CorpusStats

# ---------------------------------------------------------------------------
# Deterministic providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 256
_TOKEN_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset(
    "a an and are as at be by does do for from how in is it of on or the to was what "
    "when where which who why with".split()
)


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Bag-of-words embedding for tests.

    Every distinct content word gets its own dimension (in order of first
    appearance), so cosine similarity is exactly the normalized keyword
    overlap between two texts.  Deterministic for a given sequence of
    calls; share one instance between ingestion and querying.
    """

    def __init__(self, dim: int = _EMBEDDING_DIM) -> None:
        self._dim = dim
        self._vocabulary: dict[str, int] = {}
        self.calls = 0

    def vector(self, text: str) -> list[float]:
        values = [0.0] * self._dim
        for token in _TOKEN_RE.findall(text.lower()):
            if token in _STOPWORDS:
                continue
            index = self._vocabulary.setdefault(token, len(self._vocabulary) % self._dim)
            values[index] += 1.0
        magnitude = sum(v * v for v in values) ** 0.5
        if magnitude == 0.0:
            # Texts without content words point along the last axis.
            values[-1] = 1.0
            return values
        return [v / magnitude for v in values]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self.vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls += 1
        return self.vector(text)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "keyword-embedding"

    def is_available(self) -> bool:
        return True


class ScriptedLLM(ILLMProvider):
    """Language model that replays scripted replies and records every call."""

    def __init__(self, replies: list[str] | None = None, default: str = "Scripted answer.") -> None:
        self._replies = list(replies or [])
        self._default = default
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self._replies:
            return self._replies.pop(0)
        return self._default

    def get_provider_name(self) -> str:
        return "scripted-llm"

    def is_available(self) -> bool:
        return True


class FakeIO:
    """Console stand-in: replays input lines, then signals end of input."""

    def __init__(self, lines: list[str] | None = None) -> None:
        self._lines = list(lines or [])
        self.prompts: list[str] = []
        self.output: list[str] = []
        self.close_calls = 0

    async def read_line(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._lines:
            raise EOFError
        return self._lines.pop(0)

    def write(self, text: str) -> None:
        self.output.append(text)

    def close(self) -> None:
        self.close_calls += 1

    @property
    def transcript(self) -> str:
        return "\n".join(self.output)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def keyword_embedding() -> KeywordEmbeddingProvider:
    """Deterministic bag-of-words embedding provider."""
    return KeywordEmbeddingProvider()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    """Language model replaying a default answer."""
    return ScriptedLLM()


@pytest.fixture
def fake_io() -> FakeIO:
    """Console IO with no scripted input (immediate end of input)."""
    return FakeIO()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider whose complete() returns a fixed answer.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``mock_llm_provider.complete.side_effect = [...]`` per test.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.complete = AsyncMock(return_value="Mock answer.")
    return mock


@pytest.fixture
def mock_embedding_provider() -> IEmbeddingProvider:
    """Mock IEmbeddingProvider returning constant 8-dimensional vectors."""
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.get_provider_name.return_value = "mock-embedding"
    mock.get_dimension.return_value = 8
    mock.is_available.return_value = True
    mock.embed = AsyncMock(side_effect=lambda texts: [[0.1] * 8 for _ in texts])
    mock.embed_single = AsyncMock(return_value=[0.1] * 8)
    return mock


@pytest.fixture
def mock_vector_store() -> IVectorStoreProvider:
    """Mock IVectorStoreProvider with an empty index."""
    mock = MagicMock(spec=IVectorStoreProvider)
    mock.get_provider_name.return_value = "mock-vector-store"
    mock.is_connected.return_value = True
    mock.connect = AsyncMock(return_value=None)
    mock.disconnect = AsyncMock(return_value=None)
    mock.query = AsyncMock(return_value=[])
    mock.upsert = AsyncMock(side_effect=lambda collection, chunks, embeddings: len(chunks))
    mock.delete_by_source = AsyncMock(return_value=0)
    mock.get_source_hashes = AsyncMock(return_value={})
    mock.get_source_chunk_counts = AsyncMock(return_value={})
    mock.drop_collection = AsyncMock(return_value=True)
    mock.get_stats = AsyncMock(
        side_effect=lambda collection: CorpusStats(collection_name=collection)
    )
    return mock


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        openai_base_url="",
        openai_text_model="",
        openai_embedding_model="",
        rephrase_model="",
        ollama_base_url="http://localhost:11434",
        index_url="",
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        app_env="test",
    )


@pytest.fixture
def sample_article_text() -> str:
    """Multi-paragraph text for chunker tests."""
    return (
        "Solar power converts sunlight into electricity using photovoltaic "
        "cells. Dr. Smith installed the first panels on the roof in 2019. "
        "The system produces about four kilowatts on a clear day.\n\n"
        "Wind turbines capture the kinetic energy of moving air. Each blade "
        "is shaped like an aircraft wing, so moving air creates lift and "
        "turns the rotor. Larger rotors sweep more air and produce more "
        "power.\n\n"
        "Batteries store surplus energy for the evening. A typical home "
        "battery holds ten kilowatt hours, enough for lights, the fridge and "
        "a few appliances through the night.\n"
        "Charge controllers keep the batteries from overcharging.\n\n"
        "Hydroelectric plants use falling water to spin turbines. They can "
        "ramp output up or down within minutes, which makes them a good "
        "partner for variable sources like wind and sun."
    )


@pytest.fixture
def tmp_chromadb_dir(tmp_path: Path) -> str:
    """Directory for a throwaway persistent ChromaDB store."""
    return str(tmp_path / "chromadb_test")
