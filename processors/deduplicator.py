"""Deduplication of retrieved transcript passages.

The same passage is usually returned by several expanded search terms. A
passage is identified by its resolved filename plus a fixed-length prefix of
its content; the first occurrence wins and insertion order is preserved.

Two distinct passages sharing the whole prefix (repeated boilerplate, for
instance) collapse into one. The prefix length is a constructor argument.
"""

import logging

from schemas.hit import Hit

logger = logging.getLogger(__name__)

DEFAULT_PREFIX_CHARS = 200


class Deduplicator:
    """Tracks passage signatures seen during one collection run."""

    def __init__(self, prefix_chars: int = DEFAULT_PREFIX_CHARS):
        """Initialize the deduplicator.

        Args:
            prefix_chars: Number of leading content characters that, together
                with the filename, identify a passage.
        """
        self.prefix_chars = prefix_chars
        self._seen: set[tuple[str, str]] = set()
        self.skipped = 0

    def signature(self, hit: Hit) -> tuple[str, str]:
        return (hit.filename, hit.body[: self.prefix_chars])

    def admit(self, hit: Hit) -> bool:
        """Record the hit's signature; False if it was already seen."""
        sig = self.signature(hit)
        if sig in self._seen:
            self.skipped += 1
            logger.debug("Skipping duplicate passage from %s", hit.filename)
            return False
        self._seen.add(sig)
        return True
