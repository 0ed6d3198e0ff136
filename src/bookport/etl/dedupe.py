"""Duplicate detection for imported books.

Identifies duplicate books using:
1. ISBN-13 matching (exact, most reliable)
2. Identity key: normalized title + normalized author set (exact, for
   books without an ISBN-13)
3. Graded title/author similarity (fuzzy, for near-duplicates)

All functions are pure and safe to call concurrently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from rapidfuzz.distance import Levenshtein

# Weights of the similarity score components
TITLE_WEIGHT = 0.7
AUTHOR_WEIGHT = 0.3


class MatchKind(str, Enum):
    """Type of duplicate match."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass(frozen=True)
class DuplicateVerdict:
    """Outcome of checking a candidate against existing records."""

    is_duplicate: bool
    match_kind: MatchKind
    similarity: float

    def to_dict(self) -> dict:
        return {
            "isDuplicate": self.is_duplicate,
            "matchKind": self.match_kind.value,
            "similarity": self.similarity,
        }


NO_MATCH = DuplicateVerdict(is_duplicate=False, match_kind=MatchKind.NONE, similarity=0.0)


def _field(record: Any, name: str) -> Any:
    """Read a field from a record model or a plain mapping."""
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def normalize_title(title: Optional[str]) -> str:
    """Lower-case and collapse whitespace."""
    if not title:
        return ""
    return " ".join(title.lower().split())


def normalize_authors(authors: Optional[Iterable[str]]) -> frozenset[str]:
    if not authors:
        return frozenset()
    if isinstance(authors, str):
        authors = [authors]
    return frozenset(
        " ".join(name.lower().split()) for name in authors if name and name.strip()
    )


def normalize_isbn(isbn: Optional[str]) -> str:
    """Strip hyphens/spaces and fold case; empty string when absent."""
    if not isbn:
        return ""
    return "".join(isbn.split()).replace("-", "").lower()


def identity_key(record: Any) -> tuple:
    """Natural key of a book: ISBN-13 if present, else title + author set."""
    isbn = normalize_isbn(_field(record, "isbn13"))
    if isbn:
        return ("isbn13", isbn)
    return (
        "title_authors",
        normalize_title(_field(record, "title")),
        normalize_authors(_field(record, "authors")),
    )


def matches_existing(candidate: Any, existing: Sequence[Any]) -> bool:
    """True iff some existing record shares the candidate's ISBN-13.

    Never fires when the candidate, or the existing record, has no ISBN-13.
    """
    isbn = normalize_isbn(_field(candidate, "isbn13"))
    if not isbn:
        return False
    return any(normalize_isbn(_field(other, "isbn13")) == isbn for other in existing)


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """1 - edit distance / longer length, on normalized titles."""
    return Levenshtein.normalized_similarity(normalize_title(a), normalize_title(b))


def author_similarity(a: Optional[Iterable[str]], b: Optional[Iterable[str]]) -> float:
    """Jaccard overlap of normalized author sets; two empty sets are identical."""
    set_a = normalize_authors(a)
    set_b = normalize_authors(b)
    union = set_a | set_b
    if not union:
        return 1.0
    return len(set_a & set_b) / len(union)


def similarity(a: Any, b: Any) -> float:
    """Weighted title/author similarity in [0, 1]. Symmetric."""
    title_score = title_similarity(_field(a, "title"), _field(b, "title"))
    author_score = author_similarity(_field(a, "authors"), _field(b, "authors"))

    if title_score == 1.0 and author_score == 1.0:
        return 1.0

    score = TITLE_WEIGHT * title_score + AUTHOR_WEIGHT * author_score
    return min(1.0, max(0.0, score))


def find_match(
    candidate: Any,
    existing: Sequence[Any],
    fuzzy_threshold: float = 0.95,
) -> tuple[DuplicateVerdict, Optional[Any]]:
    """Classify a candidate against existing records.

    Args:
        candidate: Incoming book
        existing: Books already stored (or staged earlier in the batch)
        fuzzy_threshold: Minimum similarity for a fuzzy duplicate

    Returns:
        Tuple of (verdict, matched record or None)
    """
    isbn = normalize_isbn(_field(candidate, "isbn13"))
    if isbn:
        for other in existing:
            if normalize_isbn(_field(other, "isbn13")) == isbn:
                return DuplicateVerdict(True, MatchKind.EXACT, 1.0), other

    key = identity_key(candidate)
    best: Optional[Any] = None
    best_score = 0.0

    for other in existing:
        other_isbn = normalize_isbn(_field(other, "isbn13"))
        # Two different ISBN-13s are different editions, never duplicates
        if isbn and other_isbn:
            continue
        if not isbn and not other_isbn and identity_key(other) == key:
            return DuplicateVerdict(True, MatchKind.EXACT, 1.0), other

        score = similarity(candidate, other)
        if score > best_score:
            best, best_score = other, score

    if best is not None and best_score >= fuzzy_threshold:
        return DuplicateVerdict(True, MatchKind.FUZZY, best_score), best

    return DuplicateVerdict(False, MatchKind.NONE, best_score), None
