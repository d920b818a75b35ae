"""Evidence collection across expanded search terms.

Runs every search term against the search backend, recovers missing
filenames, optionally restricts hits to one requested transcript, and drops
passages already collected under an earlier term.

When the query names one transcript, the whole document is fetched directly
and the search step is skipped; if the fetch fails, collection falls back to
term search restricted to that filename, and to unrestricted search when no
passage comes from a file of that name.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from processors.content_extractor import filenames_overlap, with_resolved_filename
from processors.deduplicator import DEFAULT_PREFIX_CHARS, Deduplicator
from research.errors import SearchBackendError, TurnCancelledError
from research.query_expander import QueryExpander
from research.search_client import SearchBackend
from schemas.hit import EvidenceSet, Hit

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200
DEFAULT_SEARCH_WORKERS = 4


class EvidenceCollector:
    """Collects one turn's deduplicated evidence from the search backend."""

    def __init__(
        self,
        backend: SearchBackend,
        page_size: int = DEFAULT_PAGE_SIZE,
        dedup_prefix_chars: int = DEFAULT_PREFIX_CHARS,
        search_workers: int = DEFAULT_SEARCH_WORKERS,
    ):
        self.backend = backend
        self.page_size = page_size
        self.dedup_prefix_chars = dedup_prefix_chars
        self.search_workers = search_workers

    # ------------------------------------------------------------------
    # Entry point for one user turn
    # ------------------------------------------------------------------

    def gather(
        self,
        query: str,
        expander: QueryExpander,
        file_reference: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
        parallel: bool = False,
    ) -> tuple[EvidenceSet, list[str]]:
        """Collect evidence for a query; returns the evidence and the terms searched."""
        if file_reference:
            evidence = self.fetch_whole_document(file_reference)
            if evidence is not None:
                return evidence, []

        _check_cancelled(cancel_event)
        terms = expander.expand(query)
        evidence = self.collect(
            terms,
            filename_filter=file_reference,
            cancel_event=cancel_event,
            parallel=parallel,
        )
        if file_reference and not evidence.total:
            # No transcript by that name; the quoted text was part of the question.
            logger.info("No passages from %r, searching all transcripts", file_reference)
            evidence = self.collect(terms, cancel_event=cancel_event, parallel=parallel)
        return evidence, terms

    def fetch_whole_document(self, filename: str) -> Optional[EvidenceSet]:
        """One-hit evidence holding the full transcript, or None if unavailable."""
        try:
            document = self.backend.fetch_document(filename)
        except SearchBackendError as e:
            logger.info("Full transcript fetch for %r failed, falling back to search: %s", filename, e)
            return None
        if not document.content:
            logger.info("Full transcript %r is empty, falling back to search", filename)
            return None

        logger.info(
            "Fetched full transcript %r: %d chunks, %d chars",
            document.filename, document.chunk_count, len(document.content),
        )
        evidence = EvidenceSet()
        evidence.add(document.as_hit())
        return evidence

    # ------------------------------------------------------------------
    # Multi-term search
    # ------------------------------------------------------------------

    def collect(
        self,
        terms: list[str],
        filename_filter: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
        parallel: bool = False,
    ) -> EvidenceSet:
        """Search every term and merge hits, first occurrence wins.

        With parallel=True the searches run on a thread pool, but merging and
        dedup still happen afterwards in term order, so the result is the
        same as a sequential run.
        """
        dedup = Deduplicator(prefix_chars=self.dedup_prefix_chars)
        evidence = EvidenceSet()

        if parallel and len(terms) > 1:
            _check_cancelled(cancel_event)
            with ThreadPoolExecutor(max_workers=self.search_workers) as executor:
                results = list(executor.map(
                    lambda t: self._search_term(t, filename_filter), terms
                ))
            _check_cancelled(cancel_event)
        else:
            results = []
            for term in terms:
                _check_cancelled(cancel_event)
                results.append(self._search_term(term, filename_filter))

        for term, hits in zip(terms, results):
            if hits is None:
                continue
            for hit in hits:
                hit = with_resolved_filename(hit)
                if filename_filter and not filenames_overlap(hit.filename, filename_filter):
                    continue
                if dedup.admit(hit):
                    evidence.add(hit)

        logger.info(
            "Collected %d unique passages from %d files across %d terms (%d duplicates skipped)",
            evidence.total, len(evidence.filenames), len(terms), dedup.skipped,
        )
        return evidence

    def _search_term(self, term: str, filename_filter: Optional[str]) -> Optional[list[Hit]]:
        """Hits for one term, or None when the search failed."""
        try:
            result = self.backend.search(term, self.page_size, filename_filter)
        except Exception as e:
            logger.warning("Search failed for %r: %s", term, e)
            return None
        logger.debug("Found %d hits for %r", len(result.hits), term)
        return result.hits


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TurnCancelledError("Turn cancelled")
