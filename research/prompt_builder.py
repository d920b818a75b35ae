"""Render evidence and extraction instructions into generation prompts.

The instruction block depends on the query: biography and technical queries
ask for content that is normally excluded, while thematic queries get the
anti-fabrication rules, the quote rubric, worked examples, and, when the
query names a subject or a speaker, the matching verification block.

Evidence is grouped by resolved filename so the model sees every passage
from one transcript together, each introduced by its ``[timestamp]``.
"""

import logging
from typing import Optional

from processors.chunker import estimate_tokens
from processors.content_extractor import extract_timestamp, resolve_filename
from research import prompts
from research.intent import (
    Portion,
    QueryAnalysis,
    QueryClassifier,
    QueryIntent,
    RegexQueryClassifier,
)
from schemas.hit import EvidenceSet, Hit

logger = logging.getLogger(__name__)

DEFAULT_MAX_HIT_CHARS = 40_000


def extract_portion(content: str, portion: Portion, max_length: int = DEFAULT_MAX_HIT_CHARS) -> str:
    """Cut content to max_length, keeping the part of it the query asked for.

    START and ALL keep the head. END keeps the tail and MIDDLE a window
    centred in the document; both mark the skipped region.
    """
    if len(content) <= max_length or portion in (Portion.ALL, Portion.START):
        return content[:max_length]

    if portion == Portion.END:
        return prompts.SKIPPED_MIDDLE + content[-max_length:]

    start = (len(content) - max_length) // 2
    return (
        prompts.SKIPPED_BEGINNING
        + content[start:start + max_length]
        + prompts.SKIPPED_END
    )


def group_by_file(hits: list[Hit]) -> dict[str, list[Hit]]:
    """Group hits by resolved filename, keeping first-seen file order."""
    groups: dict[str, list[Hit]] = {}
    for hit in hits:
        groups.setdefault(resolve_filename(hit), []).append(hit)
    return groups


class PromptBuilder:
    """Builds extraction and combination prompts for one query."""

    def __init__(
        self,
        classifier: Optional[QueryClassifier] = None,
        max_hit_chars: int = DEFAULT_MAX_HIT_CHARS,
    ):
        self.classifier = classifier or RegexQueryClassifier()
        self.max_hit_chars = max_hit_chars

    def analyze(self, query: str) -> QueryAnalysis:
        return self.classifier.analyze(query)

    # ------------------------------------------------------------------
    # Extraction prompt
    # ------------------------------------------------------------------

    def build(
        self,
        query: str,
        evidence: EvidenceSet,
        analysis: Optional[QueryAnalysis] = None,
    ) -> str:
        """Render instructions plus grouped evidence into one prompt."""
        analysis = analysis or self.analyze(query)
        parts = [prompts.QUERY_HEADER.format(query=query)]
        parts.append(self.instructions(query, analysis))
        parts.append(self.render_evidence(query, evidence, analysis.portion))
        return "".join(parts)

    def instructions(self, query: str, analysis: QueryAnalysis) -> str:
        if analysis.intent == QueryIntent.BIOGRAPHY:
            return prompts.BIOGRAPHY_BLOCK
        if analysis.intent == QueryIntent.TECHNICAL:
            return prompts.TECHNICAL_BLOCK

        parts = [prompts.ANTI_FABRICATION_BLOCK.format(query=query)]
        if analysis.subject:
            parts.append(prompts.SUBJECT_VERIFICATION_BLOCK.format(subject=analysis.subject))
        elif analysis.speaker:
            parts.append(prompts.SPEAKER_FILTER_BLOCK.format(speaker=analysis.speaker))

        parts.append(prompts.QUOTE_RUBRIC)
        if analysis.subject:
            parts.append(prompts.SUBJECT_EXCLUSION_RULE.format(subject=analysis.subject))
        parts.append(prompts.STORY_EXCEPTIONS)
        parts.append(prompts.QUOTE_EXAMPLES)
        if analysis.subject:
            parts.append(prompts.SUBJECT_EXAMPLES.format(subject=analysis.subject))
        parts.append(prompts.SELECTION_GUIDELINES)
        return "".join(parts)

    def render_evidence(self, query: str, evidence: EvidenceSet, portion: Portion) -> str:
        if not evidence.hits:
            return prompts.NO_RESULTS_NOTICE + prompts.NO_RESULTS_INSTRUCTION.format(query=query)

        parts = [prompts.EVIDENCE_HEADER]
        if portion != Portion.ALL:
            other = "end" if portion == Portion.START else "start"
            parts.append(prompts.PORTION_NOTE.format(portion=portion.value.upper(), other=other))

        for filename, hits in group_by_file(evidence.hits).items():
            parts.append(prompts.FILE_HEADER.format(filename=filename))
            for hit in hits:
                timestamp = (hit.timestamp or extract_timestamp(hit.body)).strip()
                if timestamp:
                    parts.append(f"[{timestamp}]\n")
                content = extract_portion(hit.body, portion, self.max_hit_chars)
                lines = [line for line in content.split("\n") if line.strip()]
                if lines:
                    parts.append("\n".join(lines) + "\n\n")
            parts.append(prompts.END_OF_FILE)
        return "".join(parts)

    def overhead_tokens(self, query: str, analysis: Optional[QueryAnalysis] = None) -> int:
        """Estimated tokens of everything in the prompt except the evidence."""
        analysis = analysis or self.analyze(query)
        fixed = (
            prompts.SYSTEM_PROMPT
            + prompts.QUERY_HEADER.format(query=query)
            + self.instructions(query, analysis)
            + prompts.EVIDENCE_HEADER
            + prompts.PORTION_NOTE
        )
        return estimate_tokens(fixed)

    # ------------------------------------------------------------------
    # Combination prompt
    # ------------------------------------------------------------------

    def build_combination(
        self,
        query: str,
        chunk_results: list[str],
        analysis: Optional[QueryAnalysis] = None,
    ) -> str:
        """Render the prompt that merges per-batch answers, in batch order."""
        analysis = analysis or self.analyze(query)
        subject = analysis.subject

        parts = [prompts.COMBINATION_INTRO.format(total=len(chunk_results), query=query)]
        if subject:
            parts.append(prompts.COMBINATION_SUBJECT_BLOCK.format(subject=subject))
        parts.append(prompts.COMBINATION_TASK)
        if subject:
            parts.append(f'5. FILTER OUT any quotes that don\'t mention "{subject}" by name\n')

        for number, result in enumerate(chunk_results, start=1):
            parts.append(prompts.COMBINATION_PART.format(number=number, result=result))

        subject_rules = prompts.COMBINATION_SUBJECT_RULES.format(subject=subject) if subject else ""
        parts.append(prompts.COMBINATION_OUTPUT.format(subject_rules=subject_rules))
        return "".join(parts)
