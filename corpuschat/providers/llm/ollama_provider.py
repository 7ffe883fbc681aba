"""Ollama LLM provider adapter.

Answers questions fully offline through a local Ollama server, which
exposes the OpenAI wire protocol under ``/v1``.

Setup: install Ollama (https://ollama.ai), ``ollama pull llama3``, and set
``OLLAMA_BASE_URL`` (default ``http://localhost:11434``).
"""

from __future__ import annotations

import httpx
import openai

from corpuschat.config.settings import Settings
from corpuschat.providers.llm.openai_provider import ChatCompletionProvider


class OllamaLLMProvider(ChatCompletionProvider):
    def __init__(self, settings: Settings, model: str | None = None) -> None:
        self._server_url = settings.ollama_base_url.rstrip("/")
        client = openai.AsyncOpenAI(
            base_url=f"{self._server_url}/v1",
            # The SDK requires a non-empty key; Ollama ignores it.
            api_key="ollama",
            timeout=openai.Timeout(settings.request_timeout, connect=5.0),
        )
        super().__init__(
            client=client,
            model=model or settings.ollama_text_model,
            label="Ollama",
            timeout=settings.request_timeout,
        )

    def get_provider_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """Return ``True`` if a server URL is configured."""
        return bool(self._server_url)

    async def validate_connection(self) -> bool:
        """Return ``True`` if the server answers on ``/api/tags``."""
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as http:
                reply = await http.get(f"{self._server_url}/api/tags")
        except httpx.HTTPError:
            return False
        return reply.status_code == 200
