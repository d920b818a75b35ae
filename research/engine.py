"""Per-turn research engine.

Ties the pipeline together for one user turn: classify the query, collect
evidence (a whole transcript when the query names one, expanded multi-term
search otherwise), generate the answer through the chunk orchestrator, and
optionally check the answer's quotes against the evidence.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from processors.quote_verifier import verify_quotes
from research.collector import EvidenceCollector
from research.config import ResearchConfig
from research.intent import QueryAnalysis, QueryClassifier, RegexQueryClassifier
from research.llm import GenerationBackend, LLMClient
from research.orchestrator import ChunkOrchestrator
from research.prompt_builder import PromptBuilder
from research.query_expander import QueryExpander
from research.search_client import ElasticsearchSearchBackend, SearchBackend
from schemas.hit import EvidenceSet

logger = logging.getLogger(__name__)


@dataclass
class TurnContext:
    """State carried through the pipeline for one user turn."""
    query: str
    history: list[dict] = field(default_factory=list)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    analysis: Optional[QueryAnalysis] = None
    evidence: EvidenceSet = field(default_factory=EvidenceSet)
    search_terms: list[str] = field(default_factory=list)

    def cancel(self) -> None:
        self.cancel_event.set()


@dataclass
class TurnResult:
    """Complete result of one research turn."""
    query: str
    answer: str
    evidence_total: int
    files: list[str]
    search_terms: list[str]
    batches: int
    unverified_quotes: list[str]
    metadata: dict  # timings, backend and model info


class ResearchEngine:
    """Runs research turns against one search backend and one generation model."""

    def __init__(
        self,
        config: Optional[ResearchConfig] = None,
        search_backend: Optional[SearchBackend] = None,
        llm: Optional[GenerationBackend] = None,
        classifier: Optional[QueryClassifier] = None,
    ):
        self.config = config or ResearchConfig.from_env()
        self.search_backend = search_backend or ElasticsearchSearchBackend(self.config)
        self.llm = llm or LLMClient(self.config)
        self.classifier = classifier or RegexQueryClassifier()

        self.prompt_builder = PromptBuilder(self.classifier, max_hit_chars=self.config.max_hit_chars)
        self.expander = QueryExpander(self.llm, plan_temperature=self.config.plan_temperature)
        self.collector = EvidenceCollector(
            self.search_backend,
            page_size=self.config.search_page_size,
            dedup_prefix_chars=self.config.dedup_prefix_chars,
        )
        self.orchestrator = ChunkOrchestrator(
            self.llm,
            self.prompt_builder,
            generation_budget=self.config.generation_budget,
            safe_chunk_tokens=self.config.safe_chunk_tokens,
            instruction_overhead_tokens=self.config.instruction_overhead_tokens,
            max_workers=self.config.max_parallel_llm,
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_output_tokens,
        )

    def new_turn(self, query: str, history: Optional[list[dict]] = None) -> TurnContext:
        return TurnContext(query=query, history=list(history or []))

    def run(
        self,
        query: str,
        history: Optional[list[dict]] = None,
        cancel_event: Optional[threading.Event] = None,
        verify: Optional[bool] = None,
        parallel_search: bool = False,
    ) -> TurnResult:
        """Execute a full research turn and return the answer with its stats."""
        context = self.new_turn(query, history)
        if cancel_event is not None:
            context.cancel_event = cancel_event
        return self.run_turn(context, verify=verify, parallel_search=parallel_search)

    def run_turn(
        self,
        context: TurnContext,
        verify: Optional[bool] = None,
        parallel_search: bool = False,
    ) -> TurnResult:
        t_start = time.time()
        metadata: dict = {"timings": {}}

        context.analysis = self.classifier.analyze(context.query)
        metadata["query_analysis"] = {
            "intent": context.analysis.intent.value,
            "portion": context.analysis.portion.value,
            "subject": context.analysis.subject,
            "speaker": context.analysis.speaker,
            "file_reference": context.analysis.file_reference,
        }
        logger.info("Query %r analysed as %s", context.query, metadata["query_analysis"])

        t1 = time.time()
        context.evidence, context.search_terms = self.collector.gather(
            context.query,
            self.expander,
            file_reference=context.analysis.file_reference,
            cancel_event=context.cancel_event,
            parallel=parallel_search,
        )
        metadata["timings"]["collection_ms"] = int((time.time() - t1) * 1000)
        metadata["full_document"] = bool(context.analysis.file_reference) and not context.search_terms

        t2 = time.time()
        outcome = self.orchestrator.process(
            context.query,
            context.evidence,
            history=context.history,
            cancel_event=context.cancel_event,
        )
        metadata["timings"]["generation_ms"] = int((time.time() - t2) * 1000)
        metadata["generation_calls"] = outcome.calls
        metadata["usage"] = outcome.usage

        unverified: list[str] = []
        should_verify = self.config.verify_quotes if verify is None else verify
        if should_verify:
            t3 = time.time()
            report = verify_quotes(outcome.answer, context.evidence.hits)
            unverified = report.unverified
            metadata["quotes_checked"] = report.checked
            metadata["timings"]["verification_ms"] = int((time.time() - t3) * 1000)

        metadata["timings"]["total_ms"] = int((time.time() - t_start) * 1000)
        metadata["llm_provider"] = self.config.llm_provider
        metadata["llm_model"] = self.config.llm_model

        logger.info(
            "Turn complete: %d passages, %d batches, %d ms",
            context.evidence.total, outcome.batches, metadata["timings"]["total_ms"],
        )
        return TurnResult(
            query=context.query,
            answer=outcome.answer,
            evidence_total=context.evidence.total,
            files=context.evidence.filenames,
            search_terms=context.search_terms,
            batches=outcome.batches,
            unverified_quotes=unverified,
            metadata=metadata,
        )
