"""Recovery of transcript metadata that the search index did not store.

Some indexed passages arrive without a filename or timestamp. Both can
usually be recovered from the passage text itself: transcripts exported with
a ``Filename: X`` header, or whose first line is the transcript title, and
VTT/SRT cue lines carrying the timestamp range.
"""

import logging
import re
from pathlib import PurePath

from schemas.hit import Hit

logger = logging.getLogger(__name__)

_FILENAME_MARKER = re.compile(r"Filename:\s*([^\n]+)", re.IGNORECASE)
_LINE_NUMBER = re.compile(r"^\d+\s*$")
_CUE_RANGE = re.compile(
    r"(\d{2}:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2}[,.]\d{3})"
)
_BARE_TIME = re.compile(r"(\d{2}:\d{2}:\d{2})")

TRANSCRIPT_EXTENSIONS = {".txt", ".vtt", ".srt"}


def resolve_filename(hit: Hit) -> str:
    """Return the hit's filename, recovering it from content when unknown.

    Tries a ``Filename: X`` marker line, then the first non-empty content
    line unless that line is a bare number (a cue index artifact).
    """
    if hit.has_known_filename:
        return hit.filename

    content = hit.body
    match = _FILENAME_MARKER.search(content)
    if match:
        return match.group(1).strip()

    lines = [line for line in content.split("\n") if line.strip()]
    if lines and not _LINE_NUMBER.match(lines[0]):
        return lines[0].strip()

    return hit.filename or "Unknown"


def with_resolved_filename(hit: Hit) -> Hit:
    filename = resolve_filename(hit)
    if filename == hit.filename:
        return hit
    return hit.model_copy(update={"filename": filename})


def extract_timestamp(content: str) -> str:
    """Pull a timestamp range out of VTT/SRT cue text.

    ``00:00:01,000 --> 00:00:04,500`` becomes ``00:00:01.000 – 00:00:04.500``.
    Falls back to the first bare ``HH:MM:SS`` and then to an empty string.
    """
    if not content:
        return ""

    match = _CUE_RANGE.search(content)
    if match:
        start = match.group(1).replace(",", ".")
        end = match.group(2).replace(",", ".")
        return f"{start} – {end}"

    match = _BARE_TIME.search(content)
    if match:
        return match.group(1)
    return ""


def normalize_filename(name: str) -> str:
    """Lowercase a transcript name and strip a transcript file extension."""
    name = (name or "").strip().strip("\"'").lower()
    suffix = PurePath(name).suffix
    if suffix in TRANSCRIPT_EXTENSIONS:
        name = name[: -len(suffix)]
    return name.strip()


def has_transcript_extension(name: str) -> bool:
    return PurePath((name or "").strip().lower()).suffix in TRANSCRIPT_EXTENSIONS


def filenames_overlap(candidate: str, requested: str) -> bool:
    """True when either normalized name contains the other."""
    a = normalize_filename(candidate)
    b = normalize_filename(requested)
    if not a or not b:
        return False
    return a in b or b in a
