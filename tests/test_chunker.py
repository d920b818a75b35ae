import pytest

from processors.chunker import (
    TRUNCATION_MARKER,
    chunk_content,
    chunk_search_results,
    estimate_tokens,
    truncate_hit,
)
from schemas.hit import EvidenceSet, Hit


def _evidence(hits):
    evidence = EvidenceSet()
    for hit in hits:
        evidence.add(hit)
    return evidence


class TestEstimateTokens:
    def test_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_none_counts_as_empty(self):
        assert estimate_tokens(None) == 0

    @pytest.mark.parametrize("a,b", [("", "x"), ("abc", "defgh"), ("a" * 101, "b" * 3)])
    def test_monotonic_under_concatenation(self, a, b):
        assert estimate_tokens(a + b) >= estimate_tokens(a)


class TestChunkContent:
    def test_short_text_is_one_window(self):
        assert chunk_content("short text", max_tokens_per_chunk=100) == ["short text"]

    def test_windows_cover_text_without_gaps(self):
        text = "word " * 5000
        overlap_tokens = 50
        windows = chunk_content(text, max_tokens_per_chunk=1000, overlap_tokens=overlap_tokens)

        assert len(windows) > 1
        assert all(len(w) <= 4000 for w in windows)
        overlap_chars = overlap_tokens * 4
        rebuilt = windows[0] + "".join(w[overlap_chars:] for w in windows[1:])
        assert rebuilt == text

    def test_prefers_paragraph_breaks(self):
        paragraph = ("x" * 99 + "\n") * 9 + "\n"
        text = paragraph * 20
        windows = chunk_content(text, max_tokens_per_chunk=500, overlap_tokens=0)
        # Every window but the last ends right before a paragraph break
        position = 0
        for window in windows[:-1]:
            position += len(window)
            assert text[position:].startswith("\n\n")

    def test_hard_cut_without_separators(self):
        text = "x" * 10_000
        windows = chunk_content(text, max_tokens_per_chunk=1000, overlap_tokens=0)
        assert [len(w) for w in windows] == [4000, 4000, 2000]

    def test_rejects_overlap_that_cannot_advance(self):
        with pytest.raises(ValueError):
            chunk_content("x" * 10_000, max_tokens_per_chunk=1000, overlap_tokens=800)

    def test_rejects_negative_overlap(self):
        with pytest.raises(ValueError):
            chunk_content("x" * 10_000, max_tokens_per_chunk=1000, overlap_tokens=-1)


class TestChunkSearchResults:
    def test_empty_evidence_yields_one_empty_batch(self):
        batches = chunk_search_results(EvidenceSet(), 1000)
        assert len(batches) == 1
        assert batches[0].hits == []

    def test_batches_stay_within_evidence_budget(self):
        hits = [Hit(filename=f"f{i}", content="y" * 400) for i in range(30)]
        batches = chunk_search_results(_evidence(hits), 1000)

        assert [len(b) for b in batches] == [8, 8, 8, 6]
        for batch in batches:
            assert sum(estimate_tokens(h.body) for h in batch.hits) <= 800
            assert batch.token_count == sum(estimate_tokens(h.body) for h in batch.hits)

    def test_keeps_hit_order_across_batches(self):
        hits = [Hit(filename=f"f{i}", content="y" * 400) for i in range(30)]
        batches = chunk_search_results(_evidence(hits), 1000)
        flattened = [h.filename for b in batches for h in b.hits]
        assert flattened == [f"f{i}" for i in range(30)]

    def test_truncates_oversized_hit(self):
        big = Hit(filename="long", content="z" * 8000)
        batches = chunk_search_results(_evidence([big]), 1000)

        assert len(batches) == 1
        body = batches[0].hits[0].body
        assert body.startswith("z" * 800)
        assert body.endswith(TRUNCATION_MARKER)
        assert len(body) == 800 + len(TRUNCATION_MARKER)

    def test_does_not_mutate_input(self):
        big = Hit(filename="long", content="z" * 8000)
        evidence = _evidence([big])
        chunk_search_results(evidence, 1000)
        assert evidence.hits[0].content == "z" * 8000


class TestTruncateHit:
    def test_updates_text_field_when_present(self):
        hit = Hit(filename="a", content="abcdef", text="abcdef")
        cut = truncate_hit(hit, 3)
        assert cut.content == "abc" + TRUNCATION_MARKER
        assert cut.text == cut.content

    def test_leaves_missing_text_alone(self):
        cut = truncate_hit(Hit(filename="a", content="abcdef"), 3)
        assert cut.text is None
