"""RAG pipeline data models for corpuschat.

Defines Pydantic v2 models for normalized documents, chunks, retrieval
results, synthesized answers, and ingestion reports.  All models use
frozen config so that a record handed from one pipeline stage to the next
can never be mutated behind the caller's back.

Pipeline overview:

    1. NORMALIZATION: raw source items (HTML pages, PDF pages, transcripts)
       become :class:`Document` records with uniform metadata.
    2. CHUNKING: each document is split into overlapping
       :class:`DocumentChunk` windows that remember their source span.
    3. INDEXING: chunks are embedded and upserted into a named collection.
    4. RETRIEVAL: a question is embedded and the nearest chunks come back as
       :class:`RetrievedChunk` records, most relevant first.
    5. SYNTHESIS: the retrieved passages become the context of a language
       model prompt, producing an :class:`Answer` with its
       :class:`SourceCitation` list.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Scalar types every vector store can keep as chunk metadata.
MetadataValue = str | int | float | bool


# ---------------------------------------------------------------------------
# Document -- the normalized, source-agnostic unit of ingestion.
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Uniform descriptive metadata attached to every document.

    Web and video sources fill ``url``; file sources fill ``path``.
    Anything source-specific (page numbers, video duration, sitemap
    ``lastmod``) goes into ``extra``.
    """

    model_config = ConfigDict(frozen=True)

    source_type: str = Field(
        description='Kind of source: "page", "pdf", or "youtube".'
    )
    title: str = Field(default="", description="Human-readable title of the source.")
    url: str | None = Field(default=None, description="Canonical URL of the source, if any.")
    path: str | None = Field(default=None, description="Filesystem path of the source, if any.")
    author: str | None = Field(default=None, description="Author or byline, if known.")
    language: str | None = Field(default=None, description="Language code, if known.")
    length: int = Field(default=0, ge=0, description="Character length of the document text.")
    published_at: str | None = Field(
        default=None,
        description="Publication or last-modified date as reported by the source.",
    )
    site_name: str | None = Field(default=None, description="Name of the hosting site, if known.")
    extra: dict[str, MetadataValue] = Field(
        default_factory=dict,
        description="Source-specific scalar metadata (page number, duration, ...).",
    )

    @property
    def citation_url(self) -> str:
        """Return the link a citation should point at (URL, else path)."""
        return self.url or self.path or ""


class Document(BaseModel):
    """A normalized source document, ready for chunking."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(description="Stable identifier derived from the item locator.")
    text: str = Field(description="Plain text content of the document.")
    metadata: DocumentMetadata


# ---------------------------------------------------------------------------
# DocumentChunk -- the unit that is embedded and stored.
# ---------------------------------------------------------------------------
class ChunkMetadata(DocumentMetadata):
    """Document metadata plus the chunk's position within its document."""

    chunk_index: int = Field(ge=0, description="Zero-based position of the chunk in its document.")
    offset_start: int = Field(ge=0, description="Start offset of the chunk's source span.")
    offset_end: int = Field(ge=0, description="End offset (exclusive) of the chunk's source span.")


class DocumentChunk(BaseModel):
    """A window of document text, ready for embedding and storage.

    ``chunk_id`` is a deterministic hash of the parent ``source_id``, the
    chunk's position and its text, so re-ingesting identical content
    upserts the same ids instead of adding duplicates.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic identifier of this chunk.")
    source_id: str = Field(description="Identifier of the parent document.")
    content_hash: str = Field(
        default="",
        description="Hash of the parent document text and chunking parameters.",
    )
    text: str = Field(description="The chunk's textual content.")
    metadata: ChunkMetadata


# ---------------------------------------------------------------------------
# RetrievedChunk -- a search result from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A document chunk returned from a vector-store query with its score."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk = Field(description="The retrieved document chunk.")
    similarity_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Cosine similarity between the query and this chunk (1 = identical).",
    )


# ---------------------------------------------------------------------------
# Answer -- output of the answer synthesizer.
# ---------------------------------------------------------------------------
class SourceCitation(BaseModel):
    """A single source reference shown under an answer."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="", description="Title of the cited source.")
    url: str = Field(default="", description="URL or path of the cited source.")

    def as_markdown(self) -> str:
        """Render the citation as a Markdown link, ``[title](url)``."""
        label = self.title or self.url
        return f"[{label}]({self.url})"


class Answer(BaseModel):
    """A synthesized answer together with the sources it was grounded on."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="The final answer text shown to the user.")
    sources: list[SourceCitation] = Field(
        default_factory=list,
        description="Ordered, de-duplicated citations of the context chunks.",
    )
    draft_text: str | None = Field(
        default=None,
        description="First-pass answer when a rephrasing pass produced ``text``.",
    )
    rephrased: bool = Field(default=False, description="Whether a second pass ran.")


# ---------------------------------------------------------------------------
# Ingestion / indexing reports.
# ---------------------------------------------------------------------------
class ItemFailure(BaseModel):
    """A source item that was skipped during normalization."""

    model_config = ConfigDict(frozen=True)

    locator: str
    error: str


class ChunkFailure(BaseModel):
    """A chunk left out of the index because it could not be embedded."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    source_id: str
    error: str


class NormalizationResult(BaseModel):
    """Documents produced from a batch of raw items, plus the skipped items."""

    model_config = ConfigDict(frozen=True)

    documents: list[Document] = Field(default_factory=list)
    failures: list[ItemFailure] = Field(default_factory=list)


class IndexingReport(BaseModel):
    """Outcome of one :meth:`Indexer.upsert` call."""

    model_config = ConfigDict(frozen=True)

    collection_name: str
    chunks_received: int = Field(default=0, ge=0)
    chunks_indexed: int = Field(default=0, ge=0)
    failures: list[ChunkFailure] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


class IngestionReport(BaseModel):
    """Summary of a full ingestion run for one source descriptor.

    Returned by the ingestion service and printed by the CLI so the
    operator can see what was loaded, skipped, and left out.
    """

    model_config = ConfigDict(frozen=True)

    collection_name: str = Field(description="Collection the documents were indexed into.")
    items_fetched: int = Field(default=0, ge=0, description="Raw items yielded by the adapter.")
    documents_loaded: int = Field(default=0, ge=0, description="Documents that were normalized.")
    documents_unchanged: int = Field(
        default=0,
        ge=0,
        description="Documents skipped because the index already held identical content.",
    )
    chunks_created: int = Field(default=0, ge=0, description="Chunks produced by the chunker.")
    chunks_indexed: int = Field(default=0, ge=0, description="Chunks written to the index.")
    item_failures: list[ItemFailure] = Field(default_factory=list)
    chunk_failures: list[ChunkFailure] = Field(default_factory=list)
    ingestion_time: float = Field(
        default=0.0,
        ge=0.0,
        description="Wall-clock time in seconds for the ingestion run.",
    )


# ---------------------------------------------------------------------------
# CorpusStats -- a snapshot of one collection's size and composition.
# ---------------------------------------------------------------------------
class CorpusStats(BaseModel):
    """Aggregate statistics for one vector-store collection."""

    model_config = ConfigDict(frozen=True)

    collection_name: str
    total_chunks: int = Field(default=0, ge=0, description="Total number of chunks in the store.")
    total_sources: int = Field(
        default=0, ge=0, description="Total number of distinct source documents."
    )
    sources_by_type: dict[str, int] = Field(
        default_factory=dict,
        description='Breakdown of source count by type (e.g. {"page": 12}).',
    )
