"""Post-hoc check that quotes in a generated answer exist in the evidence.

The generation prompts forbid invented quotes, but nothing enforces it. This
pass extracts every double-quoted span from the answer and reports the ones
that are not a substring of any supplied passage, after normalizing case,
curly quotes, and whitespace.
"""

import logging
import re
from dataclasses import dataclass, field

from schemas.hit import Hit

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r"[\"“]([^\"”]+)[\"”]")
_ELLIPSIS = re.compile(r"\s*(?:\.\.\.|…)\s*")
_TRANSLATE = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})

# Quoted spans shorter than this are labels or titles, not transcript quotes.
MIN_QUOTE_CHARS = 12


@dataclass
class VerificationReport:
    checked: int = 0
    unverified: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unverified


def _normalize(text: str) -> str:
    text = text.translate(_TRANSLATE).lower()
    return re.sub(r"\s+", " ", text).strip()


def extract_quotes(answer: str) -> list[str]:
    """Quoted spans long enough to be transcript quotes, in answer order."""
    quotes = []
    for match in _QUOTED.finditer(answer or ""):
        quote = match.group(1).strip()
        if len(quote) >= MIN_QUOTE_CHARS:
            quotes.append(quote)
    return quotes


def verify_quotes(answer: str, hits: list[Hit]) -> VerificationReport:
    """Report quotes in answer that do not appear in any hit's content.

    Quotes elided with ``...`` are checked fragment by fragment.
    """
    corpus = [_normalize(hit.body) for hit in hits]
    report = VerificationReport()

    for quote in extract_quotes(answer):
        report.checked += 1
        fragments = [
            _normalize(f) for f in _ELLIPSIS.split(quote) if len(f.strip()) >= 3
        ]
        if not fragments:
            continue
        if not any(all(f in doc for f in fragments) for doc in corpus):
            report.unverified.append(quote)

    if report.unverified:
        logger.warning(
            "%d of %d quotes not found in evidence", len(report.unverified), report.checked
        )
    return report
