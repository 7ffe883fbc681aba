"""Resolved pipeline configuration records.

:class:`CorpusProfile` is one entry of ``profiles.yaml``: every field is
optional so a profile only states what differs for its corpus.
:class:`PipelineConfig` is the fully resolved, immutable record the
pipeline components are built from.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_EXIT_KEYWORDS: tuple[str, ...] = ("exit", "quit", "q", "sair")


class CorpusProfile(BaseModel):
    """Per-corpus constants loaded from ``profiles.yaml``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    collection_name: str | None = None
    chunk_size: int | None = None
    chunk_overlap: int | None = None
    retriever_k: int | None = None
    min_similarity: float | None = None
    model_temperature: float | None = None
    max_answer_tokens: int | None = None
    max_context_chars: int | None = None
    rephrase_enabled: bool | None = None
    rephrase_temperature: float | None = None
    dont_know_answer: str | None = None
    html_to_text: bool | None = None
    language: str | None = None
    banner: str | None = None
    persona: str | None = None
    exit_keywords: tuple[str, ...] | None = None


class PipelineConfig(BaseModel):
    """Effective configuration for one ingestion + chat run."""

    model_config = ConfigDict(frozen=True)

    collection_name: str = Field(min_length=1)
    chunk_size: int
    chunk_overlap: int
    retriever_k: int
    min_similarity: float = 0.0
    model_temperature: float = 0.0
    max_answer_tokens: int = 1000
    max_context_chars: int = 12000
    rephrase_enabled: bool = False
    rephrase_temperature: float = 0.7
    dont_know_answer: str = "I don't know"
    html_to_text: bool = False
    language: str | None = None
    banner: str = "Ask anything about the corpus!"
    persona: str = (
        "You are a helpful assistant. Answer only questions about the "
        "documents provided below."
    )
    exit_keywords: tuple[str, ...] = DEFAULT_EXIT_KEYWORDS
