"""
Unit tests for player name normalization and comparison.

The same normalization is applied to rumour text and player names, so
these rules decide whether a mention is ever detected.
"""

import pytest

from soylenti.players.aliases import compare_names, is_suffix_match, normalize_name


class TestNormalizeName:
    """Tests for name normalization."""

    def test_lowercase(self):
        assert normalize_name("Isco ALARCON") == "isco alarcon"

    def test_remove_accents(self):
        """Test accent removal."""
        assert normalize_name("Isco Alarcón") == "isco alarcon"
        assert normalize_name("Héctor Bellerín") == "hector bellerin"
        assert normalize_name("Chimy Ávila") == "chimy avila"
        assert normalize_name("Ñoño") == "nono"

    def test_whitespace_cleanup(self):
        """Test multiple spaces, tabs and newlines are collapsed."""
        assert normalize_name("Vitor    Roque") == "vitor roque"
        assert normalize_name("  Vitor Roque  ") == "vitor roque"
        assert normalize_name("Vitor\t\nRoque") == "vitor roque"

    def test_empty_string(self):
        assert normalize_name("") == ""
        assert normalize_name("   ") == ""

    def test_punctuation_is_kept(self):
        assert normalize_name("¡Isco, al Betis!") == "¡isco, al betis!"

    @pytest.mark.parametrize(
        "raw",
        ["Isco Alarcón", "  ÁLVARO   Fidalgo ", "", "Lo Celso\tvuelve", "Çağlar Söyüncü"],
    )
    def test_idempotent(self, raw):
        once = normalize_name(raw)
        assert normalize_name(once) == once


class TestSuffixMatch:
    """Tests for word-aligned suffix matching."""

    def test_surname_is_suffix_of_full_name(self):
        assert is_suffix_match("lo celso", "giovani lo celso")

    def test_partial_word_is_not_a_suffix(self):
        assert not is_suffix_match("celso", "locelso")

    def test_equal_names_are_not_suffix_matches(self):
        assert not is_suffix_match("isco", "isco")

    def test_empty_is_never_a_suffix(self):
        assert not is_suffix_match("", "isco")


class TestCompareNames:
    """Tests for name comparison."""

    def test_exact_match(self):
        assert compare_names("Lo Celso", "lo celso") == 1.0

    def test_accent_insensitive(self):
        assert compare_names("Isco Alarcón", "isco alarcon") == 1.0

    def test_surname_against_full_name_scores_high(self):
        assert compare_names("lo celso", "giovani lo celso") >= 0.9

    def test_abbreviated_first_name_scores_high(self):
        assert compare_names("w carvalho", "william carvalho") >= 0.9

    def test_different_players_score_low(self):
        assert compare_names("isco alarcon", "marc bartra") < 0.8

    def test_empty_names_score_zero(self):
        assert compare_names("", "isco") == 0.0
        assert compare_names("", "") == 0.0
