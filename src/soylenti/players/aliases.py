"""
Player name normalization and comparison utilities.

Transfer news refers to the same player in many ways:
- Full name: "Giovani Lo Celso"
- Surname only: "Lo Celso"
- Different casing or accents: "ISCO", "Isco Alarcón"
- Extra spacing copied from Telegram posts: "Vitor   Roque"

This module turns names (and whole rumour texts) into a comparable key and
scores how alike two names are. The same normalize_name() is applied to
rumour text and to player names so comparisons are symmetric.
"""

import unicodedata

import jellyfish
from rapidfuzz import fuzz


def normalize_name(name: str) -> str:
    """
    Normalize a player name (or any text) into a comparable key.

    Normalization steps:
    1. Convert to lowercase
    2. Remove accents (á → a, ñ → n)
    3. Collapse runs of whitespace into a single space and trim

    The function is total and idempotent: normalize_name(normalize_name(s))
    equals normalize_name(s) for every string, and "" maps to "".

    Examples:
        >>> normalize_name("Isco ALARCÓN")
        'isco alarcon'
        >>> normalize_name("  Vitor   Roque ")
        'vitor roque'
        >>> normalize_name("Johnny Cardoso")
        'johnny cardoso'
    """
    if not name:
        return ""

    normalized = name.lower()

    # NFD decomposes characters (é → e + combining acute), then the
    # combining marks are dropped
    normalized = unicodedata.normalize("NFD", normalized)
    normalized = "".join(
        char for char in normalized
        if unicodedata.category(char) != "Mn"  # Mn = Mark, Nonspacing
    )

    return " ".join(normalized.split())


def is_suffix_match(shorter: str, longer: str) -> bool:
    """
    Check whether one normalized name is a word-aligned suffix of another.

    "lo celso" is a suffix of "giovani lo celso"; "celso" is not a suffix
    match for "locelso".
    """
    if not shorter or len(shorter) >= len(longer):
        return False
    return longer.endswith(f" {shorter}")


def compare_names(name1: str, name2: str) -> float:
    """
    Compare two player names and return a similarity score.

    Uses multiple comparison algorithms and takes the best score:
    1. Jaro-Winkler: Good for typos and minor variations
    2. Token sort ratio: Handles word order differences
    3. Partial ratio: Handles abbreviations

    Args:
        name1: First name (normalized or not)
        name2: Second name (normalized or not)

    Returns:
        Similarity score from 0.0 (no match) to 1.0 (exact match)

    Examples:
        >>> compare_names("Lo Celso", "lo celso")
        1.0
        >>> compare_names("j carvalho", "william carvalho")  # doctest: +SKIP
        0.9
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)

    if not n1 or not n2:
        return 0.0

    if n1 == n2:
        return 1.0

    jw_score = jellyfish.jaro_winkler_similarity(n1, n2)
    token_sort = fuzz.token_sort_ratio(n1, n2) / 100.0
    partial = fuzz.partial_ratio(n1, n2) / 100.0

    # "j. carvalho" vs "william carvalho": same surname, first name abbreviated
    abbreviated_bonus = 0.0
    parts1 = n1.split()
    parts2 = n2.split()

    if len(parts1) >= 2 and len(parts2) >= 2 and parts1[-1] == parts2[-1]:
        first1 = parts1[0].rstrip(".")
        first2 = parts2[0].rstrip(".")
        if len(first1) == 1 and first2.startswith(first1):
            abbreviated_bonus = 0.15
        elif len(first2) == 1 and first1.startswith(first2):
            abbreviated_bonus = 0.15

    base_score = max(jw_score, token_sort, partial)
    return min(1.0, base_score + abbreviated_bonus)
