"""Local embeddings with ``nomic-embed-text`` served by Ollama.

Ollama exposes an OpenAI-compatible ``/v1`` endpoint, so the shared
:class:`BatchedEmbeddingProvider` loop is reused with a smaller slice
size.  No API key is needed.
"""

from __future__ import annotations

import httpx
import openai

from corpuschat.config.settings import Settings
from corpuschat.providers.embedding.openai_embedding_provider import BatchedEmbeddingProvider

_NOMIC_MODEL = "nomic-embed-text"
_NOMIC_DIMENSION = 768
_OLLAMA_MAX_INPUTS = 512


class NomicEmbeddingProvider(BatchedEmbeddingProvider):
    error_label = "Nomic/Ollama embedding API"

    def __init__(self, settings: Settings) -> None:
        self._ollama_url = settings.ollama_base_url.rstrip("/")
        # Ollama ignores the key but the SDK refuses to start without one.
        client = openai.AsyncOpenAI(
            base_url=f"{self._ollama_url}/v1",
            api_key="ollama",
            timeout=openai.Timeout(settings.request_timeout, connect=5.0),
        )
        super().__init__(
            client=client,
            model=_NOMIC_MODEL,
            dimension=_NOMIC_DIMENSION,
            max_inputs=_OLLAMA_MAX_INPUTS,
        )

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Probe ``/api/tags``; ``False`` when the Ollama server is not answering."""
        if not self._ollama_url:
            return False
        try:
            reply = httpx.get(f"{self._ollama_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        return reply.status_code == 200
