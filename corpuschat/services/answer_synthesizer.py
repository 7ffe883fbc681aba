"""Grounded answer synthesis from retrieved chunks.

Turns a question plus its retrieved chunks into an :class:`Answer`:

  1. CONTEXT BUILD -- chunk texts are concatenated most-relevant first,
     each under a ``[Source: title]`` header, within a character limit.
     When the limit is exceeded the lowest-relevance chunks are dropped;
     a single oversized top chunk is truncated.
  2. GENERATION -- the system prompt fixes the persona and restricts the
     model to the supplied context, with a fixed "don't know" reply when
     the context does not contain the answer.
  3. REPHRASE (optional) -- a second, independent call reformulates the
     draft answer conversationally.  It sees only the draft, the source
     list, and the question; it never touches the index.
  4. CITATIONS -- ordered, de-duplicated ``{title, url}`` pairs from the
     chunks that actually made it into the context.

With no retrieved chunks the configured "don't know" answer is returned
without calling the model at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field

from corpuschat.models.rag import Answer, RetrievedChunk, SourceCitation
from corpuschat.utils.errors import LanguageModelError

if TYPE_CHECKING:
    from corpuschat.config.pipeline_config import PipelineConfig
    from corpuschat.interfaces.llm_provider import ILLMProvider

logger = structlog.get_logger(logger_name=__name__)

_PASSAGE_SEPARATOR = "\n\n---\n\n"


class GenerationConfig(BaseModel):
    """Language-model parameters for one answer."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1)
    max_context_chars: int = Field(default=12000, ge=1)
    dont_know_answer: str = "I don't know"
    persona: str = (
        "You are a helpful assistant. Answer only questions about the documents provided below."
    )
    rephrase_enabled: bool = False
    rephrase_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @classmethod
    def from_pipeline(cls, config: PipelineConfig) -> GenerationConfig:
        return cls(
            temperature=config.model_temperature,
            max_tokens=config.max_answer_tokens,
            max_context_chars=config.max_context_chars,
            dont_know_answer=config.dont_know_answer,
            persona=config.persona,
            rephrase_enabled=config.rephrase_enabled,
            rephrase_temperature=config.rephrase_temperature,
        )


class AnswerSynthesizer:
    """Generates grounded answers with source attribution.

    Parameters
    ----------
    llm:
        Provider for the grounded first pass.
    rephrase_llm:
        Provider for the optional second pass.  Defaults to *llm*.
    """

    def __init__(self, llm: ILLMProvider, rephrase_llm: ILLMProvider | None = None) -> None:
        self._llm = llm
        self._rephrase_llm = rephrase_llm or llm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def answer(
        self,
        question: str,
        results: list[RetrievedChunk],
        config: GenerationConfig,
    ) -> Answer:
        """Answer *question* from *results*.

        Raises
        ------
        LanguageModelError
            If generation fails or returns an empty answer.
        """
        if not results:
            logger.info("answer_no_context", question=question[:80])
            return Answer(text=config.dont_know_answer)

        ranked = sorted(results, key=lambda r: r.similarity_score, reverse=True)
        context, used = self._build_context(ranked, config.max_context_chars)
        sources = self._collect_sources(used)

        draft = await self._complete(
            self._llm,
            system_prompt=self._system_prompt(config),
            user_prompt=f"Context:\n{context}\n\nQuestion: {question}",
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )

        if not config.rephrase_enabled or draft == config.dont_know_answer:
            logger.info("answer_generated", question=question[:80], sources=len(sources))
            return Answer(text=draft, sources=sources)

        final = await self._complete(
            self._rephrase_llm,
            system_prompt=self._rephrase_system_prompt(config),
            user_prompt=self._rephrase_user_prompt(question, draft, sources),
            temperature=config.rephrase_temperature,
            max_tokens=config.max_tokens,
        )
        logger.info(
            "answer_generated",
            question=question[:80],
            sources=len(sources),
            rephrased=True,
        )
        return Answer(text=final, sources=sources, draft_text=draft, rephrased=True)

    # ------------------------------------------------------------------
    # Private helpers -- prompts
    # ------------------------------------------------------------------

    @staticmethod
    def _system_prompt(config: GenerationConfig) -> str:
        return (
            f"{config.persona}\n\n"
            "Answer using only the context passages in the user message. "
            "If the context does not contain the answer, reply exactly with "
            f'"{config.dont_know_answer}" and nothing else. '
            "Never make up an answer. Reply in the language of the question."
        )

    @staticmethod
    def _rephrase_system_prompt(config: GenerationConfig) -> str:
        return (
            "You rewrite draft answers for a chat conversation. Keep every fact "
            "of the draft and add no new facts. Use a friendly, conversational "
            "tone and reply in the language of the question. If the draft is "
            f'"{config.dont_know_answer}", reply exactly with it.'
        )

    @staticmethod
    def _rephrase_user_prompt(question: str, draft: str, sources: list[SourceCitation]) -> str:
        source_lines = "\n".join(f"- {s.title} ({s.url})" for s in sources) or "- none"
        return f"Question: {question}\n\nDraft answer: {draft}\n\nSources:\n{source_lines}"

    # ------------------------------------------------------------------
    # Private helpers -- context and citations
    # ------------------------------------------------------------------

    @staticmethod
    def _build_context(
        ranked: list[RetrievedChunk], max_chars: int
    ) -> tuple[str, list[RetrievedChunk]]:
        """Concatenate passages within *max_chars*, dropping the least relevant first."""
        blocks: list[str] = []
        used: list[RetrievedChunk] = []
        total = 0

        for result in ranked:
            title = result.chunk.metadata.title or "Untitled"
            block = f"[Source: {title}]\n{result.chunk.text}"
            cost = len(block) + (len(_PASSAGE_SEPARATOR) if blocks else 0)
            if total + cost <= max_chars:
                blocks.append(block)
                used.append(result)
                total += cost
                continue
            if not blocks:
                blocks.append(block[:max_chars])
                used.append(result)
            break

        dropped = len(ranked) - len(used)
        if dropped:
            logger.debug("context_limit_exceeded", dropped_chunks=dropped, max_chars=max_chars)
        return _PASSAGE_SEPARATOR.join(blocks), used

    @staticmethod
    def _collect_sources(used: list[RetrievedChunk]) -> list[SourceCitation]:
        sources: list[SourceCitation] = []
        seen: set[tuple[str, str]] = set()
        for result in used:
            metadata = result.chunk.metadata
            key = (metadata.title, metadata.citation_url)
            if key in seen:
                continue
            seen.add(key)
            sources.append(SourceCitation(title=metadata.title, url=metadata.citation_url))
        return sources

    # ------------------------------------------------------------------
    # Private helpers -- generation
    # ------------------------------------------------------------------

    @staticmethod
    async def _complete(
        llm: ILLMProvider,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        raw = await llm.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = (raw or "").strip()
        if not text:
            raise LanguageModelError(
                message="Language model returned an empty answer",
                provider_name=llm.get_provider_name(),
            )
        return text
