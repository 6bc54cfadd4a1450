"""
Find pairs of active players that probably refer to the same person.

Players are grouped by the last token of each of their keys (normalized
name and aliases), and every pair sharing a group is scored once with
compare_names() over all their keys. Candidates are only reported; merging
stays an operator decision (see players/merge.py).
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from soylenti.config import settings
from soylenti.db.models import NewsPlayer, Player
from soylenti.players.aliases import compare_names


@dataclass
class DuplicateCandidate:
    player_a_id: int
    player_a_name: str
    player_b_id: int
    player_b_name: str
    score: float
    match_alias_a: str
    match_alias_b: str
    rumors_a: int
    rumors_b: int


def _player_keys(player: Player) -> list[str]:
    keys = {player.normalized_name}
    for alias in player.aliases:
        keys.add(alias.alias)
    keys.discard("")
    return sorted(keys)


def _last_tokens(player: Player) -> set[str]:
    """Last word of every key, so "isco" with alias "alarcon" meets "isco alarcon"."""
    return {key.split()[-1] for key in _player_keys(player)}


def _association_counts(session: Session) -> dict[int, int]:
    rows = (
        session.query(NewsPlayer.player_id, func.count(NewsPlayer.id))
        .group_by(NewsPlayer.player_id)
        .all()
    )
    return {player_id: int(count) for player_id, count in rows}


def pick_primary(candidate: DuplicateCandidate) -> tuple[int, int]:
    """
    Choose which record of a pair to keep.

    The player with more linked rumours wins; ties go to the older record.

    Returns:
        Tuple of (primary_id, duplicate_id)
    """
    a_strength = (candidate.rumors_a, -candidate.player_a_id)
    b_strength = (candidate.rumors_b, -candidate.player_b_id)
    if a_strength >= b_strength:
        return candidate.player_a_id, candidate.player_b_id
    return candidate.player_b_id, candidate.player_a_id


def find_duplicate_candidates(
    session: Session,
    threshold: Optional[float] = None,
) -> list[DuplicateCandidate]:
    """
    Score likely duplicate pairs among active players.

    Args:
        session: Database session (read only)
        threshold: Minimum compare_names() score, 0.0-1.0. Defaults to
            settings.duplicate_report_threshold.

    Returns:
        Candidates sorted by score, best first.
    """
    if threshold is None:
        threshold = settings.duplicate_report_threshold

    players = (
        session.query(Player)
        .options(selectinload(Player.aliases))
        .filter(Player.merged_into_id.is_(None))
        .order_by(Player.id)
        .all()
    )
    counts = _association_counts(session)

    # Players are appended in id order, so every group is sorted by id
    by_last_name: dict[str, list[Player]] = {}
    for player in players:
        for token in _last_tokens(player):
            by_last_name.setdefault(token, []).append(player)

    candidates: list[DuplicateCandidate] = []
    compared: set[tuple[int, int]] = set()
    for group in by_last_name.values():
        if len(group) < 2:
            continue

        for i in range(len(group)):
            p1 = group[i]
            names_1 = _player_keys(p1)
            for j in range(i + 1, len(group)):
                p2 = group[j]
                if (p1.id, p2.id) in compared:
                    continue
                compared.add((p1.id, p2.id))
                names_2 = _player_keys(p2)

                best_score = 0.0
                best_alias_a = names_1[0]
                best_alias_b = names_2[0]
                for n1 in names_1:
                    for n2 in names_2:
                        score = compare_names(n1, n2)
                        if score > best_score:
                            best_score = score
                            best_alias_a = n1
                            best_alias_b = n2

                if best_score < threshold:
                    continue

                candidates.append(
                    DuplicateCandidate(
                        player_a_id=p1.id,
                        player_a_name=p1.name,
                        player_b_id=p2.id,
                        player_b_name=p2.name,
                        score=best_score,
                        match_alias_a=best_alias_a,
                        match_alias_b=best_alias_b,
                        rumors_a=counts.get(p1.id, 0),
                        rumors_b=counts.get(p2.id, 0),
                    )
                )

    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates


def resolve_merge_map(pairs: list[tuple[int, int]]) -> dict[int, int]:
    """
    Resolve merge chains into a direct map: duplicate_id -> final primary_id.

    Example:
      (2 <- 3), (4 <- 2) given as [(2, 3), (4, 2)] becomes {3: 4, 2: 4}
    """
    redirect: dict[int, int] = {}

    def resolve(player_id: int) -> int:
        current = player_id
        while current in redirect:
            current = redirect[current]
        return current

    for primary_id, duplicate_id in pairs:
        final_primary = resolve(primary_id)
        final_duplicate = resolve(duplicate_id)
        if final_primary == final_duplicate:
            continue
        redirect[final_duplicate] = final_primary

    return {duplicate_id: resolve(duplicate_id) for duplicate_id in redirect}
