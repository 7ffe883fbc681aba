"""PDF source adapter using PyMuPDF.

Reads a local PDF file page by page.  Each page with extractable text
becomes one raw item (locator ``"<path>#page=<n>"``, 1-based), so answers
can cite the page a passage came from.  Title and author come from the
PDF's embedded metadata when present; the title falls back to the file
name.  A page whose text cannot be read becomes a failed item instead of
aborting the whole file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from corpuschat.interfaces.source_adapter import ISourceAdapter, RawItem, SourceDescriptor
from corpuschat.utils.errors import ConfigurationError, ItemFetchError

logger = structlog.get_logger(logger_name=__name__)


class PDFSourceAdapter(ISourceAdapter):
    """Emits one raw text item per non-empty PDF page."""

    async def fetch_all(self, descriptor: SourceDescriptor) -> list[RawItem]:
        location = descriptor.location.strip()
        if not location:
            raise ConfigurationError(
                message="PDF location must be a file path",
                provider_name=self.get_provider_name(),
            )
        # PyMuPDF is synchronous; keep the event loop free while it parses.
        return await asyncio.to_thread(self._read_pages, location, descriptor.language)

    def get_source_kind(self) -> str:
        return "pdf"

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_pages(self, location: str, language: str | None) -> list[RawItem]:
        path = Path(location)
        if not path.is_file():
            raise ItemFetchError(
                message=f"PDF file not found: {location}",
                provider_name=self.get_provider_name(),
                locator=location,
            )

        try:
            doc = fitz.open(str(path))
        except Exception as exc:  # noqa: BLE001
            raise ItemFetchError(
                message=f"Could not open PDF {location}: {exc}",
                provider_name=self.get_provider_name(),
                locator=location,
            ) from exc

        items: list[RawItem] = []
        try:
            pdf_meta = doc.metadata or {}
            title = (pdf_meta.get("title") or "").strip() or path.stem
            author = (pdf_meta.get("author") or "").strip() or None
            total_pages = len(doc)

            for page_num in range(total_pages):
                locator = f"{path}#page={page_num + 1}"
                try:
                    text = doc[page_num].get_text("text").strip()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("pdf_page_unreadable", path=location, page=page_num + 1, error=str(exc))
                    items.append(
                        RawItem(
                            locator=locator,
                            error=ItemFetchError(
                                message=f"Could not read page {page_num + 1} of {location}: {exc}",
                                provider_name=self.get_provider_name(),
                                locator=locator,
                            ),
                        )
                    )
                    continue
                if not text:
                    logger.debug("pdf_page_empty", path=location, page=page_num + 1)
                    continue
                metadata: dict[str, Any] = {
                    "source_type": self.get_source_kind(),
                    "title": title,
                    "path": str(path),
                    "author": author,
                    "language": language,
                    "extra": {"page_number": page_num + 1, "total_pages": total_pages},
                }
                items.append(
                    RawItem(
                        locator=locator,
                        content=text,
                        content_type="text/plain",
                        metadata=metadata,
                    )
                )
        finally:
            doc.close()

        if not any(not item.failed for item in items):
            logger.warning("pdf_no_text_extracted", path=location, pages=total_pages)

        logger.info("pdf_read", path=location, pages=total_pages, items=len(items))
        return items
