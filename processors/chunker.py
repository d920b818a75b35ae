"""Token budgeting and chunking for transcript evidence.

Two strategies share one token estimate:
- Raw-text windowing: split one long transcript into overlapping windows,
  cutting at paragraph, line, or word boundaries where possible.
- Evidence batching: pack retrieved hits greedily into batches that fit a
  generation call, truncating any single oversized hit.
"""

import logging
import math

from schemas.hit import Batch, EvidenceSet, Hit

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

CHARS_PER_TOKEN = 4
DEFAULT_CHUNK_TOKENS = 100_000
DEFAULT_OVERLAP_TOKENS = 2_000

# A break point must keep at least this share of the target window.
MIN_WINDOW_FILL = 0.8

# Share of a batch budget a single hit may occupy before it is truncated.
MAX_HIT_SHARE = 0.2

# Share of a batch budget available to evidence; the rest covers instructions.
EVIDENCE_SHARE = 0.8

# Separators in priority order for window break points
SEPARATORS = ["\n\n", "\n", " "]

TRUNCATION_MARKER = "\n\n[... Content truncated due to length ...]"


def estimate_tokens(text: str) -> int:
    """Estimate generation-model tokens as ceil(chars / 4)."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


# ---------------------------------------------------------------------------
# Raw-text windowing
# ---------------------------------------------------------------------------

def chunk_content(
    text: str,
    max_tokens_per_chunk: int = DEFAULT_CHUNK_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> list[str]:
    """Split text into overlapping windows of at most max_tokens_per_chunk.

    Consecutive windows share roughly overlap_tokens worth of characters, so
    dropping the first ``overlap_tokens * 4`` characters of every window after
    the first and concatenating reproduces the input.
    """
    max_chars = max_tokens_per_chunk * CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN
    min_fill = int(max_chars * MIN_WINDOW_FILL)

    if max_chars <= 0:
        raise ValueError("max_tokens_per_chunk must be positive")
    if overlap_chars < 0 or overlap_chars >= min_fill:
        raise ValueError(
            f"overlap_tokens must be between 0 and {min_fill // CHARS_PER_TOKEN - 1}"
        )

    if len(text) <= max_chars:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = start + max_chars
        if end >= len(text):
            chunks.append(text[start:])
            break

        break_point = _find_break_point(text, start, end, min_fill)
        chunks.append(text[start:break_point])
        start = max(0, break_point - overlap_chars)

    logger.debug(
        "Split %d chars into %d windows (max %d chars, overlap %d chars)",
        len(text), len(chunks), max_chars, overlap_chars,
    )
    return chunks


def _find_break_point(text: str, start: int, end: int, min_fill: int) -> int:
    """Latest natural break in text[start:end] that keeps min_fill chars, else end."""
    for sep in SEPARATORS:
        idx = text.rfind(sep, start, end)
        if idx > start and idx - start >= min_fill:
            return idx
    return end


# ---------------------------------------------------------------------------
# Evidence batching
# ---------------------------------------------------------------------------

def truncate_hit(hit: Hit, max_chars: int) -> Hit:
    """Return a copy of hit with its body cut to max_chars plus a marker."""
    shortened = hit.body[:max_chars] + TRUNCATION_MARKER
    update = {"content": shortened}
    if hit.text is not None:
        update["text"] = shortened
    return hit.model_copy(update=update)


def chunk_search_results(
    evidence: EvidenceSet,
    max_tokens_per_chunk: int = DEFAULT_CHUNK_TOKENS,
) -> list[Batch]:
    """Pack evidence hits greedily into token-bounded batches.

    Any hit above 20% of the budget is truncated first. Hits are appended to
    the current batch while the running total stays within 80% of the budget.
    An empty evidence set yields one empty batch.
    """
    if not evidence.hits:
        return [Batch(hits=[], total=0)]

    max_tokens_per_hit = int(max_tokens_per_chunk * MAX_HIT_SHARE)
    max_chars_per_hit = max_tokens_per_hit * CHARS_PER_TOKEN
    effective_limit = int(max_tokens_per_chunk * EVIDENCE_SHARE)

    batches: list[Batch] = []
    current = Batch()

    for i, hit in enumerate(evidence.hits):
        hit_tokens = estimate_tokens(hit.body)
        if hit_tokens > max_tokens_per_hit:
            logger.debug(
                "Hit %d: truncating from %d to ~%d tokens", i, hit_tokens, max_tokens_per_hit
            )
            hit = truncate_hit(hit, max_chars_per_hit)
            hit_tokens = estimate_tokens(hit.body)

        if current.hits and current.token_count + hit_tokens > effective_limit:
            batches.append(current)
            current = Batch()

        current.add(hit)
        current.token_count += hit_tokens

    if current.hits:
        batches.append(current)

    logger.info(
        "Packed %d hits into %d batches (limit %d tokens each): %s",
        len(evidence.hits),
        len(batches),
        effective_limit,
        [b.token_count for b in batches],
    )
    return batches
