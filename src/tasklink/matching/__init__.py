"""Title matching exports."""

from tasklink.matching.similarity import (
    AUTO_LINK_THRESHOLD,
    PREFIX_MISMATCH_PENALTY,
    REVIEW_THRESHOLD,
    NormalizedTitle,
    levenshtein,
    match_confidence,
    normalize_title,
    similarity,
)

__all__ = [
    "AUTO_LINK_THRESHOLD",
    "PREFIX_MISMATCH_PENALTY",
    "REVIEW_THRESHOLD",
    "NormalizedTitle",
    "levenshtein",
    "match_confidence",
    "normalize_title",
    "similarity",
]
