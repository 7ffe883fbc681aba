"""YouTube transcript source adapter.

Fetches the transcript of one video with ``youtube-transcript-api`` and
its title and channel name from YouTube's public oEmbed endpoint.  The
whole transcript becomes a single raw text item; the chunker splits it
downstream.  Missing video info is not fatal, a missing transcript is.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx
import structlog
from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from corpuschat.interfaces.source_adapter import ISourceAdapter, RawItem, SourceDescriptor
from corpuschat.utils.errors import ConfigurationError, ItemFetchError

logger = structlog.get_logger(logger_name=__name__)

_OEMBED_URL = "https://www.youtube.com/oembed"
_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
_DEFAULT_LANGUAGE = "en"


def parse_video_id(location: str) -> str | None:
    """Return the 11-character video id in *location*, or ``None``.

    Accepts bare ids and ``watch?v=``, ``youtu.be/``, ``/shorts/``,
    ``/embed/`` and ``/live/`` URLs.
    """
    location = location.strip()
    if _VIDEO_ID_RE.match(location):
        return location

    parsed = urlparse(location)
    host = (parsed.hostname or "").lower()
    candidate = ""
    if host in ("youtu.be", "www.youtu.be"):
        candidate = parsed.path.lstrip("/").split("/", 1)[0]
    elif host.endswith("youtube.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [""])[0]
        else:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in ("shorts", "embed", "live", "v"):
                candidate = parts[1]

    return candidate if _VIDEO_ID_RE.match(candidate) else None


class YouTubeSourceAdapter(ISourceAdapter):
    """Emits one raw text item holding a video's full transcript."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        transcript_api: YouTubeTranscriptApi | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._transcript_api = transcript_api or YouTubeTranscriptApi()

    # ------------------------------------------------------------------
    # ISourceAdapter implementation
    # ------------------------------------------------------------------

    async def fetch_all(self, descriptor: SourceDescriptor) -> list[RawItem]:
        video_id = parse_video_id(descriptor.location)
        if video_id is None:
            raise ConfigurationError(
                message=f"Not a YouTube video URL or id: {descriptor.location!r}",
                provider_name=self.get_provider_name(),
            )

        url = f"https://www.youtube.com/watch?v={video_id}"
        language = descriptor.language or _DEFAULT_LANGUAGE
        text, language_code = await self._fetch_transcript(video_id, url, language)
        info = await self._fetch_video_info(url)

        metadata: dict[str, Any] = {
            "source_type": self.get_source_kind(),
            "url": url,
            "title": info.get("title") or url,
            "author": info.get("author_name"),
            "language": language_code,
            "extra": {"video_id": video_id},
        }
        logger.info("youtube_transcript_fetched", video_id=video_id, length=len(text))
        return [RawItem(locator=url, content=text, content_type="text/plain", metadata=metadata)]

    def get_source_kind(self) -> str:
        return "youtube"

    def get_provider_name(self) -> str:
        return "youtube"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_transcript(self, video_id: str, url: str, language: str) -> tuple[str, str]:
        try:
            transcript = await asyncio.to_thread(
                self._transcript_api.fetch, video_id, languages=[language]
            )
        except CouldNotRetrieveTranscript as exc:
            raise ItemFetchError(
                message=f"No '{language}' transcript available for {url}: {exc.__class__.__name__}",
                provider_name=self.get_provider_name(),
                locator=url,
            ) from exc
        except OSError as exc:
            # The library fetches over requests, whose exceptions derive from OSError.
            raise ItemFetchError(
                message=f"Could not reach YouTube for {url}: {exc}",
                provider_name=self.get_provider_name(),
                locator=url,
            ) from exc

        text = " ".join(
            snippet.text.replace("\n", " ").strip() for snippet in transcript if snippet.text.strip()
        )
        if not text:
            raise ItemFetchError(
                message=f"Transcript for {url} is empty",
                provider_name=self.get_provider_name(),
                locator=url,
            )
        return text, getattr(transcript, "language_code", language)

    async def _fetch_video_info(self, url: str) -> dict[str, Any]:
        try:
            response = await self._client.get(_OEMBED_URL, params={"url": url, "format": "json"})
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("youtube_video_info_unavailable", url=url, error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}
