"""Unit tests for name resolution and alias curation."""

from datetime import datetime

import pytest

from soylenti.db.models import ALIAS_SOURCE_AUTO, NewsPlayer, Player, PlayerAlias
from soylenti.errors import AliasConflictError, NotFoundError, ValidationError
from soylenti.players.identity import (
    add_alias,
    find_or_create_player,
    get_active_player,
    link_player_to_rumor,
    list_aliases,
    remove_alias,
    set_aliases,
    set_display_name,
)
from soylenti.players.index import AliasIndex
from soylenti.players.merge import merge_players


class TestFindOrCreatePlayer:

    def test_exact_alias_match(self, db_session, make_player):
        isco = make_player("Francisco Román Alarcón", aliases=("isco",))

        player, created = find_or_create_player(db_session, "ISCO")

        assert player.id == isco.id
        assert not created

    def test_suffix_match_registers_auto_alias(self, db_session, make_player):
        full = make_player("Giovani Lo Celso", last_seen_at=datetime(2025, 1, 5))

        player, created = find_or_create_player(db_session, "Lo Celso")
        db_session.commit()

        assert player.id == full.id
        assert not created
        row = db_session.query(PlayerAlias).filter(PlayerAlias.alias == "lo celso").one()
        assert row.player_id == full.id
        assert row.source == ALIAS_SOURCE_AUTO

    def test_longer_name_matches_existing_surname(self, db_session, make_player):
        short = make_player("Lo Celso")

        player, created = find_or_create_player(db_session, "Giovani Lo Celso")

        assert player.id == short.id
        assert not created
        assert AliasIndex(db_session).resolve("giovani lo celso") == short.id

    def test_creates_new_player(self, db_session):
        seen = datetime(2025, 1, 6)

        player, created = find_or_create_player(db_session, "  Vitor   Roque ", seen_at=seen)
        db_session.commit()

        assert created
        assert player.name == "Vitor Roque"
        assert player.normalized_name == "vitor roque"
        assert player.rumor_count == 0
        assert player.first_seen_at == seen
        assert AliasIndex(db_session).resolve("vitor roque") == player.id

    def test_partial_word_is_not_a_suffix(self, db_session, make_player):
        make_player("Marc Bartra")

        _, created = find_or_create_player(db_session, "Tra")

        assert created

    def test_name_of_merged_player_resolves_to_primary(self, db_session, make_player):
        primary = make_player("Francisco Alarcón")
        duplicate = make_player("Isco")
        assert merge_players(db_session, primary.id, duplicate.id).success
        remove_alias(db_session, primary.id, "isco")

        player, created = find_or_create_player(db_session, "Isco")

        assert player.id == primary.id
        assert not created
        assert AliasIndex(db_session).resolve("isco") is None
        assert db_session.query(Player).count() == 2

    def test_empty_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            find_or_create_player(db_session, "   ")


class TestLinkPlayerToRumor:

    def test_links_and_counts(self, db_session, make_player, make_rumor):
        isco = make_player("Isco")
        rumor = make_rumor("Isco vuelve", pub_date=datetime(2025, 1, 6))

        player = link_player_to_rumor(db_session, rumor.id, "Isco", role="subject")

        assert player.id == isco.id
        db_session.refresh(isco)
        assert isco.rumor_count == 1
        assert isco.last_seen_at == datetime(2025, 1, 6)
        assert db_session.query(NewsPlayer).one().role == "subject"

    def test_unknown_name_creates_player(self, db_session, make_rumor):
        rumor = make_rumor(pub_date=datetime(2025, 1, 2))

        player = link_player_to_rumor(db_session, rumor.id, "Chimy Ávila")

        assert player.normalized_name == "chimy avila"
        assert player.rumor_count == 1
        assert player.first_seen_at == datetime(2025, 1, 2)

    def test_duplicate_link_rejected(self, db_session, make_player, make_rumor):
        isco = make_player("Isco")
        rumor = make_rumor()
        link_player_to_rumor(db_session, rumor.id, "Isco")

        with pytest.raises(ValidationError):
            link_player_to_rumor(db_session, rumor.id, "isco")

        db_session.refresh(isco)
        assert isco.rumor_count == 1

    def test_name_of_merged_player_links_primary(self, db_session, make_player, make_rumor):
        primary = make_player("Francisco Alarcón")
        duplicate = make_player("Isco")
        assert merge_players(db_session, primary.id, duplicate.id).success
        remove_alias(db_session, primary.id, "isco")
        rumor = make_rumor("Isco vuelve")

        player = link_player_to_rumor(db_session, rumor.id, "Isco")

        assert player.id == primary.id
        assert player.rumor_count == 1
        assert db_session.query(NewsPlayer).one().player_id == primary.id

    def test_unknown_rumour(self, db_session):
        with pytest.raises(NotFoundError):
            link_player_to_rumor(db_session, 999, "Isco")
        assert db_session.query(Player).count() == 0


class TestAliasCuration:

    def test_add_alias(self, db_session, make_player):
        player = make_player("Francisco Román Alarcón")

        stored = add_alias(db_session, player.id, "Isco")

        assert stored == "isco"
        assert AliasIndex(db_session).resolve("isco") == player.id

    def test_add_existing_alias_rejected(self, db_session, make_player):
        player = make_player("Francisco Román Alarcón", aliases=("isco",))
        with pytest.raises(ValidationError):
            add_alias(db_session, player.id, "ISCO")

    def test_add_alias_owned_by_other_player(self, db_session, make_player):
        make_player("Isco")
        other = make_player("Marc Bartra")
        with pytest.raises(AliasConflictError):
            add_alias(db_session, other.id, "isco")

    def test_add_too_short_alias(self, db_session, make_player):
        player = make_player("Isco")
        with pytest.raises(ValidationError):
            add_alias(db_session, player.id, "x")

    def test_add_alias_to_unknown_player(self, db_session):
        with pytest.raises(NotFoundError):
            add_alias(db_session, 999, "isco")

    def test_remove_alias(self, db_session, make_player):
        player = make_player("Vitor Roque", aliases=("tigrinho",))

        assert remove_alias(db_session, player.id, "Tigrinho") == "tigrinho"
        assert AliasIndex(db_session).resolve("tigrinho") is None

    def test_remove_missing_alias(self, db_session, make_player):
        player = make_player("Vitor Roque")
        with pytest.raises(NotFoundError):
            remove_alias(db_session, player.id, "tigrinho")

    def test_remove_canonical_name_rejected(self, db_session, make_player):
        player = make_player("Vitor Roque")
        with pytest.raises(ValidationError):
            remove_alias(db_session, player.id, "vitor roque")

    def test_set_aliases_replaces_set(self, db_session, make_player):
        player = make_player("Vitor Roque", aliases=("tigrinho", "roque"))

        result = set_aliases(db_session, player.id, ["Roque", "VR9", "vitor roque"])

        assert result == ["roque", "vr9"]
        keys = {row.alias for row in list_aliases(db_session, player.id)}
        assert keys == {"vitor roque", "roque", "vr9"}

    def test_set_aliases_conflict_changes_nothing(self, db_session, make_player):
        player = make_player("Vitor Roque", aliases=("tigrinho",))
        make_player("Isco")

        with pytest.raises(AliasConflictError):
            set_aliases(db_session, player.id, ["isco"])

        keys = {row.alias for row in list_aliases(db_session, player.id)}
        assert keys == {"vitor roque", "tigrinho"}

    def test_display_name(self, db_session, make_player):
        player = make_player("Francisco Román Alarcón")

        assert set_display_name(db_session, player.id, "  Isco ").display_name == "Isco"
        assert set_display_name(db_session, player.id, "   ").display_name is None

    def test_display_name_too_long(self, db_session, make_player):
        player = make_player("Isco")
        with pytest.raises(ValidationError):
            set_display_name(db_session, player.id, "x" * 256)

    def test_retired_player_is_not_active(self, db_session, make_player):
        primary = make_player("Giovani Lo Celso")
        retired = make_player("Celso Viejo")
        retired.merged_into_id = primary.id
        db_session.commit()

        with pytest.raises(NotFoundError):
            get_active_player(db_session, retired.id)
        with pytest.raises(NotFoundError):
            add_alias(db_session, retired.id, "viejo")
