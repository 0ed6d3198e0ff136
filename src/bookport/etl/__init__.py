"""Duplicate detection and merge resolution."""

from .dedupe import (
    DuplicateVerdict,
    MatchKind,
    find_match,
    identity_key,
    matches_existing,
    similarity,
)
from .merge import merge

__all__ = [
    "DuplicateVerdict",
    "MatchKind",
    "find_match",
    "identity_key",
    "matches_existing",
    "merge",
    "similarity",
]
