#!/usr/bin/env python3
"""Command-line entry point for the transcript research pipeline.

Usage:
  python pipeline.py ask "career sacrifices"                  # Full research turn
  python pipeline.py ask "quotes about Pumi" --history chat.json
  python pipeline.py ask "the end of \"Shivam Interview.txt\"" --no-verify

  python pipeline.py plan "why wrestling"                     # Show expanded search terms
  python pipeline.py search "million debt" --size 20          # Raw search hits
  python pipeline.py search "debut" --file "Shivam Interview"
  python pipeline.py document "Shivam Interview A Roll"       # Fetch a whole transcript

  python pipeline.py prompt "career sacrifices" --hits hits.json   # Render a prompt offline
"""

import argparse
import logging
import sys
from pathlib import Path

import orjson
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def load_json(path: str):
    """Load a JSON file, raising ValueError with the path on bad input."""
    try:
        return orjson.loads(Path(path).read_bytes())
    except orjson.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e


# ---------------------------------------------------------------------------
# ASK
# ---------------------------------------------------------------------------

def cmd_ask(args):
    """Run one research turn and print the answer."""
    from research.config import ResearchConfig
    from research.engine import ResearchEngine

    history = load_json(args.history) if args.history else []
    if not isinstance(history, list):
        raise ValueError("--history must hold a JSON list of {role, content} messages")

    engine = ResearchEngine(ResearchConfig.from_env())
    result = engine.run(
        args.query,
        history=history,
        verify=False if args.no_verify else None,
        parallel_search=args.parallel,
    )

    print("\n" + result.answer.strip() + "\n")
    print("-" * 50)
    print(f"Passages: {result.evidence_total} from {len(result.files)} files")
    print(f"Search terms: {len(result.search_terms)}")
    print(f"Batches: {result.batches}")
    print(f"Time: {result.metadata['timings']['total_ms']} ms")
    if result.unverified_quotes:
        print(f"\nQuotes not found in the evidence ({len(result.unverified_quotes)}):")
        for quote in result.unverified_quotes:
            print(f'  - "{quote}"')


# ---------------------------------------------------------------------------
# PLAN
# ---------------------------------------------------------------------------

def cmd_plan(args):
    """Print the search terms a query expands into."""
    from research.config import ResearchConfig
    from research.errors import ConfigurationError
    from research.llm import LLMClient
    from research.query_expander import QueryExpander

    config = ResearchConfig.from_env()
    try:
        llm = LLMClient(config)
    except ConfigurationError as e:
        logger.warning("Search planning disabled: %s", e)
        llm = None

    terms = QueryExpander(llm, plan_temperature=config.plan_temperature).expand(args.query)
    print(f"\nQuery: \"{args.query}\"")
    print(f"Terms: {len(terms)}")
    print("-" * 50)
    for i, term in enumerate(terms, start=1):
        print(f"[{i}] {term}")


# ---------------------------------------------------------------------------
# SEARCH / DOCUMENT
# ---------------------------------------------------------------------------

def cmd_search(args):
    """Run a single search against the transcript index."""
    from research.config import ResearchConfig
    from research.search_client import ElasticsearchSearchBackend

    backend = ElasticsearchSearchBackend(ResearchConfig.from_env())
    result = backend.search(args.term, args.size, args.file)

    print(f"\nTerm: \"{args.term}\"")
    if args.file:
        print(f"File filter: {args.file}")
    print(f"Results: {len(result.hits)} of {result.total}")
    print("-" * 50)

    for i, hit in enumerate(result.hits):
        score = f"{hit.score:.4f}" if hit.score is not None else "?"
        print(f"\n[{i+1}] Score: {score} | {hit.filename} | {hit.timestamp or 'no timestamp'}")
        if hit.speaker:
            print(f"    Speaker: {hit.speaker}")
        preview = hit.body[:200].replace("\n", " ")
        print(f"    Text: {preview}...")


def cmd_document(args):
    """Fetch and summarise one whole transcript."""
    from research.config import ResearchConfig
    from research.search_client import ElasticsearchSearchBackend

    backend = ElasticsearchSearchBackend(ResearchConfig.from_env())
    document = backend.fetch_document(args.name)

    print(f"\nFile: {document.filename}")
    print(f"Chunks: {document.chunk_count}")
    print(f"Characters: {len(document.content)}")
    if document.speaker:
        print(f"Speaker: {document.speaker}")
    if document.timestamp:
        print(f"Span: {document.timestamp}")
    print("-" * 50)
    print(document.content if args.full else document.content[:1000])


# ---------------------------------------------------------------------------
# PROMPT
# ---------------------------------------------------------------------------

def cmd_prompt(args):
    """Render the extraction prompt for a JSON file of hits, without any backend."""
    from processors.chunker import estimate_tokens
    from research.prompt_builder import PromptBuilder
    from schemas.hit import EvidenceSet, Hit

    data = load_json(args.hits) if args.hits else []
    if isinstance(data, dict):
        data = data.get("hits", [])

    evidence = EvidenceSet()
    for item in data:
        evidence.add(Hit(**item))

    prompt = PromptBuilder().build(args.query, evidence)
    logger.info("Rendered prompt for %d hits: ~%d tokens", len(evidence), estimate_tokens(prompt))
    print(prompt)


# ---------------------------------------------------------------------------
# MAIN
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Transcript Research Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Pipeline command")

    # Ask
    ask_parser = subparsers.add_parser("ask", help="Run a full research turn")
    ask_parser.add_argument("query", help="Research question")
    ask_parser.add_argument(
        "--history", default=None, help="JSON file of previous {role, content} messages"
    )
    ask_parser.add_argument(
        "--no-verify", action="store_true", help="Skip checking quotes against the evidence"
    )
    ask_parser.add_argument(
        "--parallel", action="store_true", help="Run expanded searches concurrently"
    )

    # Plan
    plan_parser = subparsers.add_parser("plan", help="Show expanded search terms")
    plan_parser.add_argument("query", help="Research question")

    # Search
    search_parser = subparsers.add_parser("search", help="Run one search")
    search_parser.add_argument("term", help="Search term")
    search_parser.add_argument("--size", type=int, default=10, help="Number of results")
    search_parser.add_argument("--file", default=None, help="Restrict to one transcript")

    # Document
    doc_parser = subparsers.add_parser("document", help="Fetch a whole transcript")
    doc_parser.add_argument("name", help="Transcript filename")
    doc_parser.add_argument("--full", action="store_true", help="Print the whole content")

    # Prompt
    prompt_parser = subparsers.add_parser("prompt", help="Render a prompt offline")
    prompt_parser.add_argument("query", help="Research question")
    prompt_parser.add_argument("--hits", default=None, help="JSON file of hits")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    commands = {
        "ask": cmd_ask,
        "plan": cmd_plan,
        "search": cmd_search,
        "document": cmd_document,
        "prompt": cmd_prompt,
    }

    from research.errors import ResearchError

    try:
        commands[args.command](args)
    except (ResearchError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.exception("Pipeline error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
