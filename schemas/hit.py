"""Pydantic models for retrieved transcript passages and the sets built from them."""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

UNKNOWN_FILENAMES = {"", "unknown"}


class Hit(BaseModel):
    """One retrieved transcript passage.

    Hits are frozen once the search backend produces them. Pipeline stages
    that need a shortened or renamed hit work on a copy from ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(default="Unknown", description="Source transcript name")
    content: str = Field(default="", description="Raw passage text, may embed timestamps")
    text: Optional[str] = Field(
        None, description="Duplicate body field some indexes store alongside content"
    )
    timestamp: str = Field(default="", description="Timestamp range, empty if unknown")
    speaker: str = ""
    score: Optional[float] = None

    @property
    def body(self) -> str:
        return self.content or self.text or ""

    @property
    def has_known_filename(self) -> bool:
        return (self.filename or "").strip().lower() not in UNKNOWN_FILENAMES


class EvidenceSet(BaseModel):
    """Ordered, deduplicated hits gathered for one user turn."""

    hits: List[Hit] = Field(default_factory=list)
    total: int = 0

    def add(self, hit: Hit) -> None:
        self.hits.append(hit)
        self.total += 1

    @property
    def filenames(self) -> List[str]:
        return list(dict.fromkeys(h.filename for h in self.hits))

    def __len__(self) -> int:
        return len(self.hits)


class Batch(EvidenceSet):
    """Token-bounded slice of an EvidenceSet sized for one generation call."""

    token_count: int = 0


class Document(BaseModel):
    """A whole transcript reassembled from all of its stored chunks."""

    filename: str
    content: str
    speaker: str = ""
    timestamp: str = ""
    chunk_count: int = 0

    def as_hit(self) -> Hit:
        return Hit(
            filename=self.filename,
            content=self.content,
            speaker=self.speaker,
            timestamp=self.timestamp,
        )
