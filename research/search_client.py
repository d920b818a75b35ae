"""Full-text search backend client for the transcript index.

Talks to an Elasticsearch index over HTTP. Passages are ranked by the
engine's own relevance scoring, with content boosted over filename and
speaker and fuzzy matching enabled.
"""

import logging
import re
from typing import Optional, Protocol

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from processors.content_extractor import has_transcript_extension
from research.config import ResearchConfig
from research.errors import DocumentNotFoundError, SearchBackendError
from schemas.hit import Document, EvidenceSet, Hit

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ["attachment.content^3", "content^3", "filename", "speaker"]
MAX_DOCUMENT_CHUNKS = 1000

_TIME = re.compile(r"(\d{1,2}):(\d{2}):(\d{2})(?:[.,](\d{1,3}))?")


class SearchBackend(Protocol):
    def search(
        self, query: str, size: int, filename_filter: Optional[str] = None
    ) -> EvidenceSet:
        ...

    def fetch_document(self, filename: str) -> Document:
        ...


def hit_from_source(source: dict, score: Optional[float] = None) -> Hit:
    """Map an indexed document's ``_source`` onto a Hit."""
    attachment = source.get("attachment") or {}
    timestamp = source.get("timestamp")
    if timestamp is None or timestamp == "":
        timestamp = source.get("start_time")
    return Hit(
        filename=source.get("filename") or "Unknown",
        content=attachment.get("content") or source.get("content") or source.get("text") or "",
        timestamp=timestamp_text(timestamp),
        speaker=source.get("speaker") or "",
        score=score,
    )


def timestamp_text(value) -> str:
    """Indexed timestamp as text; numeric values are seconds from the start."""
    if value is None or value == "":
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        millis = int(round(value * 1000))
        hours, millis = divmod(millis, 3_600_000)
        minutes, millis = divmod(millis, 60_000)
        seconds, millis = divmod(millis, 1000)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
    return str(value)


def timestamp_seconds(timestamp: str) -> Optional[float]:
    """Seconds from the start of the first ``HH:MM:SS[.mmm]`` in timestamp."""
    match = _TIME.search(timestamp or "")
    if not match:
        return None
    hours, minutes, seconds, millis = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + int((millis or "0").ljust(3, "0")) / 1000


def _span(timestamps: list[str]) -> str:
    if not timestamps:
        return ""
    if len(timestamps) == 1:
        return timestamps[0]
    first = _TIME.search(timestamps[0])
    last = list(_TIME.finditer(timestamps[-1]))
    if not first or not last:
        return timestamps[0]
    return f"{first.group(0)} – {last[-1].group(0)}"


class ElasticsearchSearchBackend:
    """Search and whole-document fetch against one transcript index."""

    def __init__(self, config: ResearchConfig, session: Optional[requests.Session] = None):
        config.require("search_endpoint", "search_api_key", "search_index")
        self.config = config
        self.index = config.search_index
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Authorization": f"ApiKey {config.search_api_key}",
        })

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def search(
        self, query: str, size: int, filename_filter: Optional[str] = None
    ) -> EvidenceSet:
        """Run one relevance search, optionally restricted to one transcript."""
        if not query or not query.strip():
            raise SearchBackendError("Query required")

        match_query = {
            "multi_match": {
                "query": query,
                "fields": SEARCH_FIELDS,
                "type": "best_fields",
                "fuzziness": "AUTO",
            }
        }
        if filename_filter:
            es_query = {
                "bool": {
                    "must": [match_query],
                    "filter": [{"match_phrase": {"filename": filename_filter}}],
                }
            }
        else:
            es_query = match_query

        data = self._post_search({"query": es_query, "size": size})
        result = EvidenceSet()
        for raw in data.get("hits", {}).get("hits", []):
            result.hits.append(hit_from_source(raw.get("_source", {}), raw.get("_score")))

        total = data.get("hits", {}).get("total", 0)
        result.total = total.get("value", 0) if isinstance(total, dict) else int(total or 0)
        logger.debug("Search %r: %d hits of %d", query, len(result.hits), result.total)
        return result

    def fetch_document(self, filename: str) -> Document:
        """Reassemble a whole transcript from all of its indexed chunks.

        Tries the name as given, then with ``.txt`` appended when it carries
        no transcript extension. Raises DocumentNotFoundError if neither
        matches.
        """
        candidates = [filename]
        if not has_transcript_extension(filename):
            candidates.append(f"{filename}.txt")

        for name in candidates:
            data = self._post_search({
                "query": {"bool": {"filter": [{"match_phrase": {"filename": name}}]}},
                "size": MAX_DOCUMENT_CHUNKS,
            })
            raw_hits = data.get("hits", {}).get("hits", [])
            if raw_hits:
                return self._assemble(name, [hit_from_source(h.get("_source", {})) for h in raw_hits])
            logger.info("No stored chunks for %r", name)

        raise DocumentNotFoundError(f"Transcript not found: {filename}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _assemble(self, requested: str, chunks: list[Hit]) -> Document:
        """Concatenate chunks in chronological order; untimed chunks keep index order."""
        order = {id(c): i for i, c in enumerate(chunks)}
        chunks = sorted(
            chunks,
            key=lambda c: (
                timestamp_seconds(c.timestamp) is None,
                timestamp_seconds(c.timestamp) or 0.0,
                order[id(c)],
            ),
        )
        speaker = next((c.speaker for c in chunks if c.speaker), "")
        timestamps = [c.timestamp for c in chunks if c.timestamp]
        filename = chunks[0].filename if chunks[0].has_known_filename else requested
        return Document(
            filename=filename,
            content="\n\n".join(c.body for c in chunks if c.body),
            speaker=speaker,
            timestamp=_span(timestamps),
            chunk_count=len(chunks),
        )

    def _post_search(self, body: dict) -> dict:
        url = f"{self.config.search_endpoint}/{self.index}/_search"
        try:
            response = _post_with_retry(self.session, url, body, self.config.search_timeout_seconds)
        except requests.RequestException as e:
            raise SearchBackendError(f"Search backend unreachable: {e}") from e

        if not response.ok:
            raise SearchBackendError(
                f"Search backend error: {response.status_code} - {response.text[:500]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise SearchBackendError("Search backend returned invalid JSON") from e


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)
def _post_with_retry(
    session: requests.Session, url: str, body: dict, timeout: float
) -> requests.Response:
    """Inner POST with retry decorator."""
    return session.post(url, json=body, timeout=timeout)
