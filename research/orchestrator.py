"""Fan-out/fan-in generation over evidence that exceeds one context window.

Small evidence sets are answered with one generation call. Larger ones are
packed into token-bounded batches, each batch is answered independently on a
fixed-size worker pool, and a final combination call merges the per-batch
answers, in batch order, into one deduplicated response.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Optional

from processors.chunker import MAX_HIT_SHARE, chunk_content, chunk_search_results, estimate_tokens
from research.errors import GenerationError, TurnCancelledError
from research.intent import Portion, QueryAnalysis
from research.llm import GenerationBackend, with_system_prompt
from research.prompt_builder import PromptBuilder
from schemas.hit import Batch, EvidenceSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10
DEFAULT_GENERATION_BUDGET = 124_000
DEFAULT_SAFE_CHUNK_TOKENS = 60_000
CANCEL_POLL_SECONDS = 0.5


@dataclass
class Orchestration:
    """Outcome of one orchestrated answer."""
    answer: str
    batches: int = 1
    calls: int = 1
    usage: list[dict] = field(default_factory=list)


class ChunkOrchestrator:
    """Answers a query over an evidence set of any size."""

    def __init__(
        self,
        llm: GenerationBackend,
        prompt_builder: Optional[PromptBuilder] = None,
        generation_budget: int = DEFAULT_GENERATION_BUDGET,
        safe_chunk_tokens: int = DEFAULT_SAFE_CHUNK_TOKENS,
        instruction_overhead_tokens: int = 0,
        max_workers: int = DEFAULT_MAX_WORKERS,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ):
        self.llm = llm
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.generation_budget = generation_budget
        self.safe_chunk_tokens = safe_chunk_tokens
        self.instruction_overhead_tokens = instruction_overhead_tokens
        self.max_workers = max_workers
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(
        self,
        query: str,
        evidence: EvidenceSet,
        history: Optional[list[dict]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Orchestration:
        """Answer query over evidence, batching only when it will not fit."""
        analysis = self.prompt_builder.analyze(query)

        prompt = self.prompt_builder.build(query, evidence, analysis)
        messages = with_system_prompt([*(history or []), {"role": "user", "content": prompt}])
        prompt_tokens = sum(estimate_tokens(m["content"]) for m in messages)

        if prompt_tokens <= self.generation_budget and not self._cuts_content(evidence, analysis):
            logger.info("Evidence fits one call (~%d tokens)", prompt_tokens)
            _check_cancelled(cancel_event)
            completion = self._generate(messages)
            return Orchestration(answer=completion.content, usage=[completion.usage])

        batch_tokens = self.batch_token_budget(query, analysis)
        evidence = self._window_long_document(evidence, analysis, batch_tokens)
        batches = chunk_search_results(evidence, batch_tokens)
        logger.info(
            "Evidence needs ~%d tokens; split into %d batches of ≤%d tokens",
            prompt_tokens, len(batches), batch_tokens,
        )

        if len(batches) == 1:
            _check_cancelled(cancel_event)
            completion = self._generate(self._batch_messages(query, batches[0], analysis))
            return Orchestration(answer=completion.content, usage=[completion.usage])

        results, usage = self._dispatch(query, batches, analysis, cancel_event)

        _check_cancelled(cancel_event)
        combination = self.prompt_builder.build_combination(query, results, analysis)
        completion = self._generate(with_system_prompt([{"role": "user", "content": combination}]))
        usage.append(completion.usage)
        return Orchestration(
            answer=completion.content,
            batches=len(batches),
            calls=len(batches) + 1,
            usage=usage,
        )

    def batch_token_budget(self, query: str, analysis: Optional[QueryAnalysis] = None) -> int:
        """Per-batch budget handed to the batcher, net of instruction overhead."""
        overhead = max(
            self.instruction_overhead_tokens,
            self.prompt_builder.overhead_tokens(query, analysis),
        )
        ceiling = min(self.safe_chunk_tokens, self.generation_budget)
        return max(1000, ceiling - overhead)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cuts_content(self, evidence: EvidenceSet, analysis: QueryAnalysis) -> bool:
        """True when the prompt builder would truncate a hit that the query wants whole."""
        if analysis.portion != Portion.ALL:
            return False
        limit = self.prompt_builder.max_hit_chars
        return any(len(hit.body) > limit for hit in evidence.hits)

    def _window_long_document(
        self, evidence: EvidenceSet, analysis: QueryAnalysis, batch_tokens: int
    ) -> EvidenceSet:
        """Split a single fetched transcript into overlapping windows.

        Only applies to one-hit evidence (a whole-document request) when the
        query does not ask for a specific portion.
        """
        if len(evidence.hits) != 1 or analysis.portion != Portion.ALL:
            return evidence

        hit = evidence.hits[0]
        window_tokens = min(
            int(batch_tokens * MAX_HIT_SHARE),
            self.prompt_builder.max_hit_chars // 4,
        )
        if estimate_tokens(hit.body) <= window_tokens:
            return evidence

        overlap_tokens = max(0, window_tokens // 20)
        windows = chunk_content(hit.body, window_tokens, overlap_tokens)
        logger.info("Split transcript %r into %d overlapping windows", hit.filename, len(windows))

        windowed = EvidenceSet()
        for window in windows:
            windowed.add(hit.model_copy(update={"content": window, "text": None}))
        return windowed

    def _batch_messages(self, query: str, batch: Batch, analysis: QueryAnalysis) -> list[dict]:
        prompt = self.prompt_builder.build(query, batch, analysis)
        return with_system_prompt([{"role": "user", "content": prompt}])

    def _dispatch(
        self,
        query: str,
        batches: list[Batch],
        analysis: QueryAnalysis,
        cancel_event: Optional[threading.Event],
    ) -> tuple[list[str], list[dict]]:
        """Run one call per batch on the worker pool; results keep batch order."""
        results: list[Optional[str]] = [None] * len(batches)
        usage: list[dict] = []
        t_start = time.time()

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures: dict[Future, int] = {}
            for index, batch in enumerate(batches):
                _check_cancelled(cancel_event)
                future = executor.submit(self._run_batch, query, batch, analysis, cancel_event)
                futures[future] = index

            pending = set(futures)
            while pending:
                done, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
                for future in done:
                    index = futures[future]
                    try:
                        completion = future.result()
                    except TurnCancelledError:
                        raise
                    except Exception as e:
                        logger.error("Batch %d of %d failed: %s", index + 1, len(batches), e)
                        raise GenerationError(
                            f"Batch {index + 1} of {len(batches)} failed: {e}"
                        ) from e
                    results[index] = completion.content
                    usage.append(completion.usage)
                    logger.debug("Batch %d of %d done", index + 1, len(batches))
                _check_cancelled(cancel_event)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            "Processed %d batches in %d ms", len(batches), int((time.time() - t_start) * 1000)
        )
        return [r or "" for r in results], usage

    def _run_batch(
        self,
        query: str,
        batch: Batch,
        analysis: QueryAnalysis,
        cancel_event: Optional[threading.Event],
    ):
        _check_cancelled(cancel_event)
        return self._generate(self._batch_messages(query, batch, analysis))

    def _generate(self, messages: list[dict]):
        return self.llm.complete(
            messages,
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TurnCancelledError("Turn cancelled")
