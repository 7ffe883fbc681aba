"""Chat-completion providers over the OpenAI wire protocol.

:class:`ChatCompletionProvider` sends the system/user message pair and maps
SDK failures onto :class:`LanguageModelError`.  :class:`OpenAILLMProvider`
targets OpenAI, or any compatible host (TogetherAI, Fireworks, vLLM) when
``openai_base_url`` is set.  The Ollama adapter reuses the same base.
"""

from __future__ import annotations

import openai
import structlog

from corpuschat.config.settings import Settings
from corpuschat.interfaces.llm_provider import ILLMProvider
from corpuschat.utils.errors import LanguageModelError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TEXT_MODEL = "gpt-4o-mini"


class ChatCompletionProvider(ILLMProvider):
    """Base for providers that talk to a ``/v1/chat/completions`` endpoint.

    Parameters
    ----------
    client:
        A configured ``openai.AsyncOpenAI`` instance.
    model:
        Model identifier sent with every request.
    label:
        Name used in error messages and log events.
    timeout:
        Request timeout in seconds, reported when a call times out.
    """

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str,
        label: str,
        timeout: float,
    ) -> None:
        self._client = client
        self._model = model
        self._label = label
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise self._error(f"{self._label} timed out after {self._timeout:g}s") from exc
        except openai.APIError as exc:
            raise self._error(f"{self._label} API error: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise self._error(f"{self._label} returned empty response")

        logger.info(
            "chat_completion",
            provider=self._label,
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def _error(self, message: str) -> LanguageModelError:
        return LanguageModelError(message=message, provider_name=self.get_provider_name())


class OpenAILLMProvider(ChatCompletionProvider):
    """OpenAI chat completions.

    *model* overrides ``settings.openai_text_model``; the CLI builds a second
    instance with ``settings.rephrase_model`` for the rephrasing pass.
    """

    def __init__(self, settings: Settings, model: str | None = None) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(settings.request_timeout, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        super().__init__(
            client=openai.AsyncOpenAI(**client_kwargs),
            model=model or settings.openai_text_model or _DEFAULT_TEXT_MODEL,
            label="openai-compatible" if settings.openai_base_url else "openai",
            timeout=settings.request_timeout,
        )

    def get_provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        return bool(self._api_key)
