"""Recursive text chunking with exact character overlap.

Splits a :class:`~corpuschat.models.rag.Document` into
:class:`~corpuschat.models.rag.DocumentChunk` windows sized in characters.

The chunking strategy works in two phases:

1. **Recursive splitting** -- The text is cut into contiguous *units* at
   the coarsest separator that works: paragraphs, then lines, then
   sentences (abbreviation-aware), then words, and finally fixed-width
   character slices.  A unit is only split further when it is longer than
   ``chunk_size - chunk_overlap``, so every unit fits in a chunk next to
   the overlap carried over from the previous chunk.

2. **Greedy packing with overlap** -- Units are packed into a chunk until
   the next one would exceed ``chunk_size``.  The following chunk starts
   exactly ``chunk_overlap`` characters before the previous chunk's end
   (or at its start, for a chunk shorter than the overlap), so concepts
   spanning a boundary appear whole in at least one chunk.

Units are tracked as ``(start, end)`` offsets into the original text, so
every chunk knows its source span and the overlap between neighbours is
a byte-exact slice of the document, not a re-joined approximation.

If the ladder is configured without the character level, a unit that is
still too long at the finest separator is kept whole rather than cut.
"""

from __future__ import annotations

import hashlib
import re
from typing import Callable

import structlog
from bs4 import BeautifulSoup

from corpuschat.config.loader import validate_chunking
from corpuschat.models.rag import ChunkMetadata, Document, DocumentChunk

logger = structlog.get_logger(logger_name=__name__)

PARAGRAPH = "\n\n"
LINE = "\n"
SENTENCE = "<sentence>"
WORD = " "
CHARACTER = ""

DEFAULT_SEPARATORS: tuple[str, ...] = (PARAGRAPH, LINE, SENTENCE, WORD, CHARACTER)

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = (
    "Dr",
    "Mr",
    "Mrs",
    "Ms",
    "Prof",
    "Jr",
    "Sr",
    "St",
    "Ave",
    "Vol",
    "No",
    "vs",
    "etc",
    "approx",
    "e.g",
    "i.e",
    "Sra",
    "Av",
)
_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS, key=len, reverse=True)) + r")\."
)
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s+|$)")

ChunkTransform = Callable[[str], str]


class HtmlToTextTransform:
    """Strip markup from chunk text with BeautifulSoup.

    Applied after splitting, so offsets still refer to the original text.
    """

    name = "html-to-text"

    def __call__(self, text: str) -> str:
        soup = BeautifulSoup(text, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text()


def document_content_hash(document: Document, chunk_size: int, chunk_overlap: int) -> str:
    """Hash a document's text together with the parameters that shape its chunks.

    Two ingestions of the same text with the same chunking settings
    produce the same hash, which lets the ingestion service skip sources
    the index already holds.
    """
    digest = hashlib.sha256()
    digest.update(f"{chunk_size}:{chunk_overlap}\n".encode("utf-8"))
    digest.update(document.text.encode("utf-8"))
    return digest.hexdigest()[:32]


class RecursiveTextChunker:
    """Splits documents into overlapping, offset-tracked chunks.

    Parameters
    ----------
    chunk_size:
        Maximum chunk length in characters.
    chunk_overlap:
        Exact number of characters shared by consecutive chunks.  Must be
        smaller than *chunk_size*.
    separators:
        Coarse-to-fine separator ladder.  ``SENTENCE`` selects the
        abbreviation-aware sentence splitter, ``CHARACTER`` (the empty
        string) selects fixed-width slicing.
    transform:
        Optional post-split transform applied to each chunk's text.  When
        it raises, the untransformed text is kept.

    Raises
    ------
    ConfigurationError
        If the chunk parameters are invalid.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: tuple[str, ...] = DEFAULT_SEPARATORS,
        transform: ChunkTransform | None = None,
    ) -> None:
        validate_chunking(chunk_size, chunk_overlap)
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._separators = tuple(separators)
        self._transform = transform

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self._chunk_overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        document: Document,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[DocumentChunk]:
        """Split *document* into overlapping :class:`DocumentChunk` objects.

        Parameters
        ----------
        document:
            The normalized document to split.
        chunk_size, chunk_overlap:
            Per-call overrides of the constructor values.

        Returns
        -------
        list[DocumentChunk]
            Chunks in document order.  Empty or whitespace-only text
            returns an empty list.
        """
        size = self._chunk_size if chunk_size is None else chunk_size
        overlap = self._chunk_overlap if chunk_overlap is None else chunk_overlap
        validate_chunking(size, overlap)

        if not document.text or not document.text.strip():
            return []

        content_hash = document_content_hash(document, size, overlap)
        base_metadata = document.metadata.model_dump()

        chunks: list[DocumentChunk] = []
        for start, end in self.split_spans(document.text, size, overlap):
            text = self._apply_transform(document.text[start:end], document.source_id)
            if not text.strip():
                continue
            index = len(chunks)
            chunks.append(
                DocumentChunk(
                    chunk_id=_chunk_id(document.source_id, index, text),
                    source_id=document.source_id,
                    content_hash=content_hash,
                    text=text,
                    metadata=ChunkMetadata(
                        **base_metadata,
                        chunk_index=index,
                        offset_start=start,
                        offset_end=end,
                    ),
                )
            )

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            chunk_size=size,
            chunk_overlap=overlap,
            source_id=document.source_id,
        )
        return chunks

    def split_spans(self, text: str, chunk_size: int, chunk_overlap: int) -> list[tuple[int, int]]:
        """Return the ``(start, end)`` source span of every chunk of *text*."""
        if not text:
            return []
        units = self._split_units(text, 0, len(text), 0, chunk_size - chunk_overlap)
        return self._pack(units, chunk_size, chunk_overlap)

    # ------------------------------------------------------------------
    # Recursive splitting
    # ------------------------------------------------------------------

    def _split_units(
        self, text: str, start: int, end: int, level: int, limit: int
    ) -> list[tuple[int, int]]:
        """Cut ``text[start:end]`` into contiguous spans of at most *limit* chars."""
        if end - start <= limit or level >= len(self._separators):
            return [(start, end)]

        separator = self._separators[level]
        if separator == CHARACTER:
            return [(i, min(i + limit, end)) for i in range(start, end, limit)]

        cuts = self._boundaries(text, start, end, separator)
        if not cuts:
            return self._split_units(text, start, end, level + 1, limit)

        units: list[tuple[int, int]] = []
        edges = [start, *cuts, end]
        for piece_start, piece_end in zip(edges, edges[1:]):
            if piece_end - piece_start > limit:
                units.extend(self._split_units(text, piece_start, piece_end, level + 1, limit))
            else:
                units.append((piece_start, piece_end))
        return units

    @staticmethod
    def _boundaries(text: str, start: int, end: int, separator: str) -> list[int]:
        """Return cut offsets strictly inside ``(start, end)``.

        Each cut sits right after a separator occurrence, so the separator
        stays attached to the preceding piece.
        """
        if separator == SENTENCE:
            # Mask abbreviation periods; same length, so indices stay aligned.
            masked = _ABBREVIATION_RE.sub(lambda m: m.group(1) + "\x00", text[start:end])
            cuts = (start + m.end() for m in _SENTENCE_END_RE.finditer(masked))
            return [c for c in cuts if c < end]

        cuts: list[int] = []
        pos = text.find(separator, start, end)
        while pos != -1:
            cut = pos + len(separator)
            if cut < end:
                cuts.append(cut)
            pos = text.find(separator, cut, end)
        return cuts

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    @staticmethod
    def _pack(
        units: list[tuple[int, int]], chunk_size: int, chunk_overlap: int
    ) -> list[tuple[int, int]]:
        """Greedily pack contiguous units into overlapping chunk spans."""
        spans: list[tuple[int, int]] = []
        chunk_start = units[0][0]
        i = 0
        while i < len(units):
            # Every chunk takes at least one new unit.
            chunk_end = units[i][1]
            i += 1
            while i < len(units) and units[i][1] - chunk_start <= chunk_size:
                chunk_end = units[i][1]
                i += 1
            spans.append((chunk_start, chunk_end))
            chunk_start = chunk_end - min(chunk_overlap, chunk_end - chunk_start)
        return spans

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_transform(self, text: str, source_id: str) -> str:
        if self._transform is None:
            return text
        try:
            return self._transform(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "chunk_transform_failed",
                source_id=source_id,
                error=str(exc),
            )
            return text


def _chunk_id(source_id: str, index: int, text: str) -> str:
    digest = hashlib.sha256(f"{source_id}:{index}:{text}".encode("utf-8"))
    return digest.hexdigest()[:32]
