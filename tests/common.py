"""In-memory stand-ins for the search and generation backends."""

import threading
from typing import Callable, Optional, Union

from research.errors import DocumentNotFoundError, GenerationError, SearchBackendError
from research.llm import Completion
from schemas.hit import Document, EvidenceSet, Hit


def make_hit(filename: str = "Interview A", content: str = "", **kwargs) -> Hit:
    return Hit(filename=filename, content=content, **kwargs)


class FakeSearchBackend:
    """Serves canned hits per search term and canned documents per filename."""

    def __init__(
        self,
        results: Optional[dict[str, list[Hit]]] = None,
        documents: Optional[dict[str, Document]] = None,
        failing: tuple[str, ...] = (),
    ):
        self.results = results or {}
        self.documents = documents or {}
        self.failing = set(failing)
        self.searches: list[tuple[str, int, Optional[str]]] = []
        self.fetches: list[str] = []
        self._lock = threading.Lock()

    def search(self, query: str, size: int, filename_filter: Optional[str] = None) -> EvidenceSet:
        with self._lock:
            self.searches.append((query, size, filename_filter))
        if query in self.failing:
            raise SearchBackendError(f"Search backend error: 500 - {query}")
        result = EvidenceSet()
        for hit in self.results.get(query, [])[:size]:
            result.add(hit)
        return result

    def fetch_document(self, filename: str) -> Document:
        self.fetches.append(filename)
        if filename in self.documents:
            return self.documents[filename]
        raise DocumentNotFoundError(f"Transcript not found: {filename}")


Reply = Union[str, Exception]


class FakeLLM:
    """Generation backend that answers through a callable over the messages.

    The responder returns the completion text, or an exception to raise.
    """

    def __init__(self, responder: Optional[Callable[[list[dict]], Reply]] = None):
        self.responder = responder or (lambda messages: "ok")
        self.calls: list[list[dict]] = []
        self._lock = threading.Lock()

    def complete(self, messages, temperature=None, max_tokens=None) -> Completion:
        with self._lock:
            self.calls.append(messages)
        reply = self.responder(messages)
        if isinstance(reply, Exception):
            raise reply
        return Completion(content=reply, model="fake", usage={"input_tokens": 0, "output_tokens": 0})

    @property
    def prompts(self) -> list[str]:
        return [m[-1]["content"] for m in self.calls]


def failing_llm(message: str = "upstream 502") -> FakeLLM:
    return FakeLLM(lambda messages: GenerationError(message))
