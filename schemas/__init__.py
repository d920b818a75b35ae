from schemas.hit import (
    UNKNOWN_FILENAMES,
    Batch,
    Document,
    EvidenceSet,
    Hit,
)
