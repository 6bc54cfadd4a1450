"""
Player identity management module.

Rumours mention players by full name, surname, nickname or with odd
casing and accents. This module keeps one canonical record per player and
ties every rumour to the right record.

Key components:
- normalize_name: The single text normalization used everywhere
- AliasIndex: Normalized key -> player lookup, globally unique keys
- PlayerMatcher: Finds player mentions in rumours and records them
- merge_players: Consolidates two records of the same player
- find_duplicate_candidates: Suggests pairs for operators to merge
"""

from soylenti.players.aliases import compare_names, normalize_name
from soylenti.players.duplicates import DuplicateCandidate, find_duplicate_candidates, pick_primary
from soylenti.players.identity import find_or_create_player
from soylenti.players.index import AliasIndex
from soylenti.players.matcher import MatchSummary, PlayerMatcher, record_mention
from soylenti.players.merge import MergeResult, audit_rumor_counts, merge_players

__all__ = [
    "normalize_name",
    "compare_names",
    "AliasIndex",
    "PlayerMatcher",
    "MatchSummary",
    "record_mention",
    "merge_players",
    "MergeResult",
    "audit_rumor_counts",
    "find_or_create_player",
    "find_duplicate_candidates",
    "DuplicateCandidate",
    "pick_primary",
]
