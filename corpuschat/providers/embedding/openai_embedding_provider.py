"""OpenAI-compatible embedding provider adapter.

:class:`BatchedEmbeddingProvider` holds the request loop shared by every
backend that speaks the ``/v1/embeddings`` protocol: inputs are sent in
slices no larger than the backend accepts, and the vectors come back in
input order.  :class:`OpenAIEmbeddingProvider` points it at OpenAI or at
an OpenAI-compatible host (TogetherAI, Fireworks) via ``base_url``.
Transient HTTP failures are retried by the SDK itself (``max_retries``).
"""

from __future__ import annotations

import openai
import structlog

from corpuschat.config.settings import Settings
from corpuschat.interfaces.embedding_provider import IEmbeddingProvider
from corpuschat.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_MAX_INPUTS = 2048
_DEFAULT_MODEL = "text-embedding-3-small"

# Vector sizes of the models we know; anything else is assumed to be 768.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}


class BatchedEmbeddingProvider(IEmbeddingProvider):
    """Base for providers backed by an ``openai.AsyncOpenAI`` embeddings client.

    Subclasses build the client and pass it in together with the model
    name, the vector size, and the largest slice the server accepts.
    """

    #: Prefix for the message of every :class:`EmbeddingError` raised.
    error_label = "Embedding API"

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str,
        dimension: int,
        max_inputs: int,
    ) -> None:
        self._client = client
        self._model = model
        self._dimension = dimension
        self._max_inputs = max_inputs

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per entry of *texts*, in the same order."""
        if not texts:
            return []

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self._max_inputs):
            window = texts[offset : offset + self._max_inputs]
            vectors.extend(await self._request(window))

        if len(vectors) != len(texts):
            raise EmbeddingError(
                message=(
                    f"{self.error_label} returned {len(vectors)} vectors "
                    f"for {len(texts)} inputs"
                ),
                provider_name=self.get_provider_name(),
            )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        return vectors[0]

    def get_dimension(self) -> int:
        return self._dimension

    async def _request(self, window: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=window, model=self._model)
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self.error_label} error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "embedding_request_complete",
            provider=self.get_provider_name(),
            model=self._model,
            inputs=len(window),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return [list(item.embedding) for item in response.data]


class OpenAIEmbeddingProvider(BatchedEmbeddingProvider):
    """Embeddings from OpenAI (``text-embedding-3-small`` by default)."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._compatible_host = bool(settings.openai_base_url)

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.request_timeout, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        model = settings.openai_embedding_model or _DEFAULT_MODEL
        super().__init__(
            client=openai.AsyncOpenAI(**client_kwargs),
            model=model,
            dimension=_MODEL_DIMENSIONS.get(model, 768),
            max_inputs=_OPENAI_MAX_INPUTS,
        )
        self.error_label = f"{self.get_provider_name()} API"

    def get_provider_name(self) -> str:
        if self._compatible_host:
            return "openai-compatible_embedding"
        return "openai_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
