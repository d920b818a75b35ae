import threading

import pytest

from research.collector import EvidenceCollector
from research.errors import TurnCancelledError
from research.query_expander import QueryExpander
from schemas.hit import Document
from tests.common import FakeSearchBackend, make_hit

DEBT = make_hit("Shivam Interview A Roll", "one million debt when I was 19")
PARENTS = make_hit("Shivam Interview A Roll", "prove myself to my parents")
RAIN = make_hit("Weather Report", "it rained all day")
ORPHAN = make_hit("Unknown", "Filename: Jane Doe Interview\n\nI left home at 16")


@pytest.fixture
def backend():
    return FakeSearchBackend(results={
        "debt": [DEBT, RAIN],
        "family": [PARENTS, DEBT],
        "home": [ORPHAN],
    })


class TestCollect:
    def test_merges_terms_first_occurrence_wins(self, backend):
        evidence = EvidenceCollector(backend).collect(["debt", "family"])
        assert [h.content for h in evidence.hits] == [DEBT.content, RAIN.content, PARENTS.content]
        assert evidence.total == 3

    def test_repeated_term_is_idempotent(self, backend):
        collector = EvidenceCollector(backend)
        once = collector.collect(["debt", "family"])
        twice = collector.collect(["debt", "debt", "family"])
        assert twice.hits == once.hits

    def test_failed_term_is_skipped(self):
        backend = FakeSearchBackend(results={"family": [PARENTS]}, failing=("debt",))
        evidence = EvidenceCollector(backend).collect(["debt", "family"])
        assert evidence.hits == [PARENTS]

    def test_recovers_unknown_filenames(self, backend):
        evidence = EvidenceCollector(backend).collect(["home"])
        assert evidence.filenames == ["Jane Doe Interview"]

    def test_filename_filter(self, backend):
        evidence = EvidenceCollector(backend).collect(["debt"], filename_filter="shivam interview a roll.txt")
        assert evidence.hits == [DEBT]
        assert backend.searches[0][2] == "shivam interview a roll.txt"

    def test_page_size_is_passed(self, backend):
        EvidenceCollector(backend, page_size=50).collect(["debt"])
        assert backend.searches[0][1] == 50

    def test_parallel_matches_sequential(self, backend):
        terms = ["family", "debt", "home", "debt"]
        collector = EvidenceCollector(backend)
        assert collector.collect(terms, parallel=True).hits == collector.collect(terms).hits

    def test_cancelled_before_search(self, backend):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(TurnCancelledError):
            EvidenceCollector(backend).collect(["debt"], cancel_event=cancel)
        assert backend.searches == []


class TestGather:
    def test_full_document_skips_search(self):
        document = Document(
            filename="Shivam Interview A Roll.txt",
            content="whole transcript",
            chunk_count=3,
        )
        backend = FakeSearchBackend(documents={"Shivam Interview A Roll.txt": document})

        evidence, terms = EvidenceCollector(backend).gather(
            "the end of Shivam", QueryExpander(), file_reference="Shivam Interview A Roll.txt"
        )

        assert terms == []
        assert len(evidence) == 1
        assert evidence.hits[0].content == "whole transcript"
        assert backend.searches == []

    def test_missing_document_falls_back_to_filtered_search(self, backend):
        evidence, terms = EvidenceCollector(backend).gather(
            "debt", QueryExpander(), file_reference="Shivam Interview A Roll"
        )

        assert backend.fetches == ["Shivam Interview A Roll"]
        assert terms[0] == "debt"
        assert all(call[2] == "Shivam Interview A Roll" for call in backend.searches)
        assert RAIN not in evidence.hits
        assert DEBT in evidence.hits

    def test_empty_document_falls_back(self, backend):
        backend.documents["Empty"] = Document(filename="Empty", content="")
        evidence, terms = EvidenceCollector(backend).gather("debt", QueryExpander(), file_reference="Empty")
        assert terms
        assert backend.fetches == ["Empty"]
        assert backend.searches[0][2] == "Empty"

    def test_unknown_name_searches_all_transcripts(self, backend):
        evidence, terms = EvidenceCollector(backend).gather(
            "debt", QueryExpander(), file_reference="Tough Times"
        )

        filters = [call[2] for call in backend.searches]
        assert filters[: len(terms)] == ["Tough Times"] * len(terms)
        assert filters[len(terms):] == [None] * len(terms)
        assert DEBT in evidence.hits
        assert RAIN in evidence.hits

    def test_no_file_reference_searches(self, backend):
        evidence, terms = EvidenceCollector(backend).gather("debt", QueryExpander())
        assert backend.fetches == []
        assert terms[0] == "debt"
        assert DEBT in evidence.hits
