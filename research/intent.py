"""Heuristic classification of research queries.

Decides what kind of extraction a query asks for, which part of a long
transcript it cares about, whether it names a subject being talked about or
a speaker being quoted, and whether it names one transcript file.

``RegexQueryClassifier`` is the default. Anything with an ``analyze(query)``
method returning a ``QueryAnalysis`` can stand in for it.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence


class QueryIntent(str, Enum):
    BIOGRAPHY = "biography"
    TECHNICAL = "technical"
    THEMATIC = "thematic"


class Portion(str, Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"
    ALL = "all"


@dataclass(frozen=True)
class QueryAnalysis:
    intent: QueryIntent = QueryIntent.THEMATIC
    portion: Portion = Portion.ALL
    subject: Optional[str] = None  # "people talking about X"
    speaker: Optional[str] = None  # "quotes from X"
    file_reference: Optional[str] = None


class QueryClassifier(Protocol):
    def analyze(self, query: str) -> QueryAnalysis:
        ...


# ---------------------------------------------------------------------------
# Default patterns
# ---------------------------------------------------------------------------

BIOGRAPHY_PATTERN = re.compile(r"intro|biography|bio|background|who is|tell me about|describe")
TECHNICAL_PATTERN = re.compile(r"tech|setup|audio|mic|sound check|preparation")

# Only the first capture group is used, and it captures one word.
SUBJECT_PATTERNS = (
    re.compile(r"(?:about|talking about|talk about)\s+(\w+)", re.IGNORECASE),
)
# Articles and file words after "from" are not speaker names.
SPEAKER_PATTERNS = (
    re.compile(
        r"\b(?:from|by)\s+(?!(?:the|a|an|this|that|file|transcript|document)\b)(\w+)",
        re.IGNORECASE,
    ),
)

FILE_PATTERNS = (
    re.compile(r"[\"“']([^\"”'\n]+?\.(?:txt|vtt|srt))[\"”']", re.IGNORECASE),
    re.compile(
        r"\bfrom\s+(?:the\s+)?(?:file|transcript|document)\s+[\"“']?([^\"”'\n]+?)[\"”']?\s*$",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:file|transcript|document)\s*:\s*[\"“']?([^\"”'\n]+?)[\"”']?\s*$",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:of|in)\s+[\"“]([^\"”\n]+)[\"”]", re.IGNORECASE),
)

END_PATTERNS = (
    re.compile(r"\b(end|ending|last|final|later|conclusion|wrap up|finish)\b"),
    re.compile(r"\b(last \d+ minutes?|final \d+ minutes?)\b"),
)
MIDDLE_PATTERNS = (re.compile(r"\b(middle|center|halfway)\b"),)
START_PATTERNS = (
    re.compile(r"\b(start|beginning|first|early|opening)\b"),
    re.compile(r"\b(first \d+ minutes?|opening \d+ minutes?)\b"),
)


def _first_capture(patterns: Sequence[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


class RegexQueryClassifier:
    """Keyword and pattern based query classifier.

    Subject, speaker, and file patterns are constructor arguments so that
    deployments can widen them (multi-word names, other languages) without
    touching the prompt builder.
    """

    def __init__(
        self,
        subject_patterns: Sequence[re.Pattern] = SUBJECT_PATTERNS,
        speaker_patterns: Sequence[re.Pattern] = SPEAKER_PATTERNS,
        file_patterns: Sequence[re.Pattern] = FILE_PATTERNS,
    ):
        self.subject_patterns = subject_patterns
        self.speaker_patterns = speaker_patterns
        self.file_patterns = file_patterns

    def analyze(self, query: str) -> QueryAnalysis:
        subject = self.subject(query)
        file_reference = self.file_reference(query)
        # A subject query is never also a speaker filter.
        speaker = None if subject else self.speaker(query)
        if speaker and file_reference and speaker.lower() in file_reference.lower():
            speaker = None
        return QueryAnalysis(
            intent=self.intent(query),
            portion=self.portion(query),
            subject=subject,
            speaker=speaker,
            file_reference=file_reference,
        )

    def intent(self, query: str) -> QueryIntent:
        lower = query.lower()
        if BIOGRAPHY_PATTERN.search(lower):
            return QueryIntent.BIOGRAPHY
        if TECHNICAL_PATTERN.search(lower):
            return QueryIntent.TECHNICAL
        return QueryIntent.THEMATIC

    def portion(self, query: str) -> Portion:
        lower = query.lower()
        if any(p.search(lower) for p in END_PATTERNS):
            return Portion.END
        if any(p.search(lower) for p in MIDDLE_PATTERNS):
            return Portion.MIDDLE
        if any(p.search(lower) for p in START_PATTERNS):
            return Portion.START
        return Portion.ALL

    def subject(self, query: str) -> Optional[str]:
        return _first_capture(self.subject_patterns, query)

    def speaker(self, query: str) -> Optional[str]:
        return _first_capture(self.speaker_patterns, query)

    def file_reference(self, query: str) -> Optional[str]:
        return _first_capture(self.file_patterns, query.strip())
