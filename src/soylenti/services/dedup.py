"""
Near-duplicate detection for rumour content.

The same transfer story reaches us through several feeds with different
links and slightly different headlines. Before a rumour is stored it is
compared against recent rumours: first by an exact content hash, then by
fuzzy token comparison.
"""

import hashlib
from dataclasses import dataclass
from typing import Iterable, Optional

from rapidfuzz import fuzz

from soylenti.config import settings


@dataclass
class ExistingRumor:
    """The fields of a stored rumour needed for comparison."""

    id: int
    title: str
    description: Optional[str]
    content_hash: Optional[str]


@dataclass
class DuplicateCheck:
    """Outcome of check_duplicate()."""

    is_duplicate: bool
    content_hash: str
    duplicate_of_id: Optional[int] = None
    similarity_score: float = 0.0


def generate_content_hash(title: str, description: Optional[str]) -> str:
    """SHA-256 hex digest of the lowercased, trimmed title + description."""
    content = f"{title}{description or ''}".lower().strip()
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _comparable_text(title: str, description: Optional[str]) -> str:
    return f"{title} {description or ''}".lower().strip()


def check_duplicate(
    title: str,
    description: Optional[str],
    existing: Iterable[ExistingRumor],
    threshold: Optional[float] = None,
) -> DuplicateCheck:
    """
    Decide whether a rumour repeats one we already have.

    Args:
        title: Rumour headline
        description: Rumour body, may be None
        existing: Recently stored rumours to compare against
        threshold: Minimum token_sort_ratio (0-100) to call it a duplicate.
            Defaults to settings.dedup_similarity_threshold.

    Returns:
        DuplicateCheck. content_hash is always filled in so the caller can
        store it with the new row.
    """
    if threshold is None:
        threshold = settings.dedup_similarity_threshold

    content_hash = generate_content_hash(title, description)
    candidates = list(existing)

    for rumor in candidates:
        if rumor.content_hash and rumor.content_hash == content_hash:
            return DuplicateCheck(
                is_duplicate=True,
                content_hash=content_hash,
                duplicate_of_id=rumor.id,
                similarity_score=100.0,
            )

    text = _comparable_text(title, description)
    best_score = 0.0
    best_id: Optional[int] = None
    for rumor in candidates:
        score = fuzz.token_sort_ratio(text, _comparable_text(rumor.title, rumor.description))
        if score > best_score:
            best_score = score
            best_id = rumor.id

    if best_id is not None and best_score >= threshold:
        return DuplicateCheck(
            is_duplicate=True,
            content_hash=content_hash,
            duplicate_of_id=best_id,
            similarity_score=best_score,
        )

    return DuplicateCheck(
        is_duplicate=False,
        content_hash=content_hash,
        similarity_score=best_score,
    )
