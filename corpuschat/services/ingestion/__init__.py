"""Ingestion pipeline: normalize -> chunk -> embed -> store."""

from corpuschat.services.ingestion.chunker import (
    DEFAULT_SEPARATORS,
    HtmlToTextTransform,
    RecursiveTextChunker,
)
from corpuschat.services.ingestion.indexer import Indexer
from corpuschat.services.ingestion.ingestion_service import IngestionService
from corpuschat.services.ingestion.normalizer import DocumentNormalizer, source_id_for

__all__ = [
    "DEFAULT_SEPARATORS",
    "DocumentNormalizer",
    "HtmlToTextTransform",
    "Indexer",
    "IngestionService",
    "RecursiveTextChunker",
    "source_id_for",
]
