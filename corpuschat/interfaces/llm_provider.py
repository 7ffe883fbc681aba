"""Abstract base class for LLM (Large Language Model) service providers.

Defines the contract that all LLM adapters must implement.  Concrete
implementations wrap the OpenAI Chat Completions API, or a local Ollama
server through its OpenAI-compatible endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ILLMProvider(ABC):
    """Contract for text-completion services used by the answer synthesizer."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> str:
        """Send a text prompt and return the model's completion.

        Parameters
        ----------
        system_prompt:
            Instructions that set the model's persona and constraints.
        user_prompt:
            The user-facing prompt containing context and the question.
        temperature:
            Sampling temperature.  ``0.0`` gives the most deterministic output.
        max_tokens:
            Maximum number of tokens in the completion.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        corpuschat.utils.errors.LanguageModelError
            If the API call fails, times out, or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"`` or ``"ollama"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
