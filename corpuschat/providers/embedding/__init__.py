"""Embedding provider implementations.

Embeddings turn text into vectors; chunks and questions must be embedded
by the same provider for similarity search to be meaningful.

    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), or any
       OpenAI-compatible endpoint.  Used when OPENAI_API_KEY is set.
    2. NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims).
       Free and local, but requires a running Ollama server.

A collection is bound to the dimension it was first written with; switching
providers requires ``--rebuild``.
"""

from corpuschat.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from corpuschat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
