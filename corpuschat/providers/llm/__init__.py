"""Language model provider adapters.

    - OpenAILLMProvider -- gpt-4o-mini by default (also OpenAI-compatible APIs)
    - OllamaLLMProvider -- local models via the Ollama server

The CLI picks OpenAI when OPENAI_API_KEY is set and Ollama otherwise.
"""

from corpuschat.providers.llm.ollama_provider import OllamaLLMProvider
from corpuschat.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider"]
