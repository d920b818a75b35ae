"""Expansion of one research query into a set of search terms.

Three sources, merged in order with duplicates removed:
  1. The literal query.
  2. A search plan: 6-10 emotionally salient phrasings brainstormed by the
     generation model. Any failure here yields no terms.
  3. Static expansions: the first matching entry of a curated theme table,
     else keyword-triggered expansions, else four generic terms.
"""

import json
import logging
import re
from typing import Optional

from research.llm import GenerationBackend, with_system_prompt
from research.prompts import PLAN_SEARCHES_PROMPT

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Curated theme table. First matching key wins, so specific keys come first
# ---------------------------------------------------------------------------

THEME_SEARCHES: list[tuple[str, list[str]]] = [
    ("career sacrifices", [
        "money financial debt", "family wife husband parents", "left home moved away",
        "struggle hard difficult", "training physical pain injury", "job work quit",
        "million debt", "lost everything", "risk dangerous", "prove myself parents",
    ]),
    ("why wrestling", [
        "dream", "passion", "love", "why", "reason", "wrestling means everything", "obsession",
    ]),
    ("good quotes", [
        "wrestling means everything", "dream passion love", "struggle difficult hard",
        "million debt money", "family parents sacrifice", "imagination key dream",
        "forced watch wrestling", "special unique different", "prove myself",
        "lost everything", "larger than life", "identity who I am",
    ]),
    ("first match", ["debut", "started", "beginning", "nervous"]),
    ("sacrifices", [
        "money financial debt", "family wife husband parents", "left home moved away",
        "struggle hard difficult", "training physical pain injury", "job work quit",
        "million debt", "lost everything",
    ]),
    ("money", [
        "financial debt cost", "million debt", "broke no money", "pay rent eat",
        "broke struggle", "job work",
    ]),
    ("financial", ["money pay", "debt cost million", "broke struggle", "job work income", "lost everything"]),
    ("family", ["wife husband partner", "parents mother father", "kids children", "relationship", "prove myself parents"]),
    ("wife", ["husband partner", "family", "relationship", "home"]),
    ("husband", ["wife partner", "family", "relationship", "home"]),
    ("struggle", [
        "hard difficult challenge", "problem obstacle", "money financial",
        "physical pain injury", "million debt", "lost everything",
    ]),
    ("thailand", ["bangkok", "pattaya", "moved here", "living here", "asia"]),
    ("pattaya", ["thailand", "bangkok", "living here", "moved here"]),
    ("bangkok", ["thailand", "pattaya", "living here", "moved here"]),
    ("training", ["gym workout", "practice", "physical pain", "learning"]),
    ("wrestling", ["wrestler", "match", "fight", "training", "promotion"]),
    ("character", ["personality", "who is", "background", "story"]),
    ("personality", ["character", "who is", "background", "story"]),
    ("experience", ["background", "history", "journey", "story"]),
    ("journey", ["experience", "background", "came here", "started"]),
    ("dream", ["passion", "goal", "want to", "ambition", "wrestling means everything"]),
    ("passion", ["dream", "love", "why", "obsession", "wrestling means everything"]),
    ("debut", ["first match", "started", "beginning"]),
    ("future", ["plan", "goal", "want to", "next"]),
    ("plan", ["future", "goal", "want to", "next"]),
    ("goal", ["future", "plan", "want to", "dream"]),
    ("nervous", ["scared", "afraid", "first time", "worry"]),
    ("scared", ["nervous", "afraid", "fear", "worry"]),
    ("travel", ["flew", "came here", "international", "different country"]),
    ("international", ["travel", "overseas", "different country", "came here"]),
    ("home", ["family", "wife", "husband", "left", "back home"]),
]

KEYWORD_EXPANSIONS: list[tuple[re.Pattern, list[str]]] = [
    (re.compile(r"\b(wrestle|fight|match|ring|show)\b"), ["training", "gym", "match", "promotion"]),
    (re.compile(r"\b(come|came|move|moved|travel|here)\b"), ["thailand", "pattaya", "bangkok", "moved here"]),
    (re.compile(r"\b(feel|think|believe|opinion)\b"), ["passion", "dream", "love", "why"]),
    (re.compile(r"\b(hard|difficult|tough|struggle|problem)\b"), ["struggle", "challenge", "money", "financial"]),
    (re.compile(r"\b(wife|husband|family|home|kid)\b"), ["family", "wife", "husband", "left home"]),
    (re.compile(r"\b(money|pay|cost|debt|broke)\b"), ["financial", "money", "job", "work"]),
    (re.compile(r"\b(start|begin|first|started)\b"), ["first match", "debut", "training", "began"]),
    (re.compile(r"\b(future|plan|goal|next|want)\b"), ["future", "plan", "goal", "dream"]),
]

GENERIC_SEARCHES = ["experience", "background", "story", "journey"]

_JSON_ARRAY = re.compile(r"\[[^\]]+\]")


def dedupe_terms(terms: list[str]) -> list[str]:
    """Order-preserving dedup; the first occurrence of a term wins."""
    seen: set[str] = set()
    unique = []
    for term in terms:
        term = term.strip()
        if term and term not in seen:
            seen.add(term)
            unique.append(term)
    return unique


def related_searches(query: str) -> list[str]:
    """Static expansions for a query from the theme and keyword tables."""
    lower = query.lower()

    for key, searches in THEME_SEARCHES:
        if key in lower:
            return list(searches)

    expansions: list[str] = []
    for pattern, terms in KEYWORD_EXPANSIONS:
        if pattern.search(lower):
            expansions.extend(terms)

    if not expansions:
        return list(GENERIC_SEARCHES)
    return dedupe_terms(expansions)


def parse_search_plan(text: str) -> list[str]:
    """Parse the first JSON array in a model response into search terms."""
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return []
    data = json.loads(match.group(0))
    if not isinstance(data, list):
        return []
    return [str(item).strip() for item in data if isinstance(item, (str, int, float)) and str(item).strip()]


class QueryExpander:
    """Turns one user query into the ordered search-term set."""

    def __init__(
        self,
        llm: Optional[GenerationBackend] = None,
        plan_temperature: float = 0.8,
    ):
        self.llm = llm
        self.plan_temperature = plan_temperature

    def expand(self, query: str) -> list[str]:
        """Literal query, then planned terms, then static expansions."""
        planned = self.plan_searches(query)
        related = related_searches(query)
        terms = dedupe_terms([query, *planned, *related])
        logger.info(
            "Expanded query into %d terms (%d planned, %d related)",
            len(terms), len(planned), len(related),
        )
        return terms

    def plan_searches(self, query: str) -> list[str]:
        """Ask the model for a search plan; never raises, returns [] on failure."""
        if self.llm is None:
            return []
        try:
            completion = self.llm.complete(
                with_system_prompt([
                    {"role": "user", "content": PLAN_SEARCHES_PROMPT.format(query=query)}
                ]),
                temperature=self.plan_temperature,
            )
            planned = parse_search_plan(completion.content)
        except Exception as e:
            logger.warning("Search planning failed: %s", e)
            return []
        logger.debug("Planned searches: %s", planned)
        return planned
