"""corpuschat domain models -- re-exports all public model classes.

The models are organized across two submodules by domain concern:
    - rag.py      -- documents, chunks, retrieval results, answers, reports
    - session.py  -- interactive session state machine
"""

from __future__ import annotations

from corpuschat.models.rag import (
    Answer,
    ChunkFailure,
    ChunkMetadata,
    CorpusStats,
    Document,
    DocumentChunk,
    DocumentMetadata,
    IndexingReport,
    IngestionReport,
    ItemFailure,
    NormalizationResult,
    RetrievedChunk,
    SourceCitation,
)
from corpuschat.models.session import SessionPhase, SessionState

__all__ = [
    "Answer",
    "ChunkFailure",
    "ChunkMetadata",
    "CorpusStats",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "IndexingReport",
    "IngestionReport",
    "ItemFailure",
    "NormalizationResult",
    "RetrievedChunk",
    "SessionPhase",
    "SessionState",
    "SourceCitation",
]
