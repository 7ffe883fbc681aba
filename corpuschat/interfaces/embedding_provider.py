"""Abstract base class for embedding backends.

An embedding provider maps text to fixed-size float vectors.  Chunks are
embedded once at ingestion time and each question is embedded at query
time; both must go through the same provider, since vectors produced by
different models live in unrelated spaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (corpuschat/providers/embedding/):
#   OpenAIEmbeddingProvider  -- text-embedding-3-small (requires API key)
#   NomicEmbeddingProvider   -- nomic-embed-text via Ollama (local)
class IEmbeddingProvider(ABC):
    """Turns chunk texts and questions into vectors for similarity search."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts in one call.

        Parameters
        ----------
        texts:
            Texts to embed.  Callers may pass more than the backend accepts
            per request; the provider slices the input itself.

        Returns
        -------
        list[list[float]]
            ``result[i]`` is the vector for ``texts[i]``; every vector has
            :meth:`get_dimension` components.

        Raises
        ------
        corpuschat.utils.errors.EmbeddingError
            If the backend rejects the request or cannot be reached.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text, typically the user's question."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Vector length, e.g. ``1536`` for ``text-embedding-3-small``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Short identifier used in logs and error messages."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider can be used as configured."""
