"""Unit tests for duplicate player detection."""

from soylenti.db.models import NewsPlayer
from soylenti.players.duplicates import (
    DuplicateCandidate,
    find_duplicate_candidates,
    pick_primary,
    resolve_merge_map,
)


def candidate(a_id, b_id, rumors_a, rumors_b):
    return DuplicateCandidate(
        player_a_id=a_id,
        player_a_name="a",
        player_b_id=b_id,
        player_b_name="b",
        score=0.95,
        match_alias_a="a",
        match_alias_b="b",
        rumors_a=rumors_a,
        rumors_b=rumors_b,
    )


class TestFindDuplicateCandidates:

    def test_surname_and_full_name_are_candidates(self, db_session, make_player, make_rumor):
        full = make_player("Giovani Lo Celso")
        short = make_player("Lo Celso")
        make_player("Isco")
        db_session.add(NewsPlayer(news_id=make_rumor().id, player_id=short.id))
        db_session.commit()

        candidates = find_duplicate_candidates(db_session, threshold=0.9)

        assert len(candidates) == 1
        found = candidates[0]
        assert {found.player_a_id, found.player_b_id} == {full.id, short.id}
        assert found.rumors_a == 0
        assert found.rumors_b == 1
        assert found.score >= 0.9

    def test_retired_players_are_ignored(self, db_session, make_player):
        full = make_player("Giovani Lo Celso")
        short = make_player("Lo Celso")
        short.merged_into_id = full.id
        db_session.commit()

        assert find_duplicate_candidates(db_session, threshold=0.9) == []

    def test_different_surnames_are_not_compared(self, db_session, make_player):
        make_player("Marc Bartra")
        make_player("Marc Roca")

        assert find_duplicate_candidates(db_session, threshold=0.5) == []

    def test_alias_surname_groups_players(self, db_session, make_player):
        short = make_player("Isco", aliases=("alarcon",))
        full = make_player("Isco Alarcón")

        candidates = find_duplicate_candidates(db_session, threshold=0.9)

        assert len(candidates) == 1
        assert (candidates[0].player_a_id, candidates[0].player_b_id) == (short.id, full.id)

    def test_pair_sharing_several_surnames_reported_once(self, db_session, make_player):
        make_player("Isco", aliases=("alarcon",))
        make_player("Isco Alarcón", aliases=("francisco isco",))

        assert len(find_duplicate_candidates(db_session, threshold=0.9)) == 1


class TestPickPrimary:

    def test_more_rumours_wins(self):
        assert pick_primary(candidate(1, 2, rumors_a=1, rumors_b=4)) == (2, 1)

    def test_tie_goes_to_older_record(self):
        assert pick_primary(candidate(5, 3, rumors_a=2, rumors_b=2)) == (3, 5)


class TestResolveMergeMap:

    def test_chains_collapse(self):
        assert resolve_merge_map([(2, 3), (4, 2)]) == {3: 4, 2: 4}

    def test_cycles_are_skipped(self):
        assert resolve_merge_map([(1, 2), (2, 1)]) == {2: 1}

    def test_empty(self):
        assert resolve_merge_map([]) == {}
