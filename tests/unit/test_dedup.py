"""Unit tests for rumour content de-duplication."""

from soylenti.services.dedup import ExistingRumor, check_duplicate, generate_content_hash


class TestContentHash:

    def test_case_and_outer_whitespace_do_not_matter(self):
        assert generate_content_hash("Isco renueva", None) == generate_content_hash("  ISCO RENUEVA ", "")

    def test_description_is_part_of_the_hash(self):
        assert generate_content_hash("Isco", "renueva") != generate_content_hash("Isco", "se va")

    def test_hex_digest(self):
        digest = generate_content_hash("Isco", None)
        assert len(digest) == 64
        int(digest, 16)


class TestCheckDuplicate:

    def test_exact_hash_match(self):
        existing = [ExistingRumor(7, "Isco renueva", None, generate_content_hash("Isco renueva", None))]

        check = check_duplicate("isco renueva", None, existing)

        assert check.is_duplicate
        assert check.duplicate_of_id == 7
        assert check.similarity_score == 100.0

    def test_reordered_headline_is_duplicate(self):
        existing = [ExistingRumor(3, "Vitor Roque llega al Betis cedido", None, None)]

        check = check_duplicate("Llega al Betis cedido Vitor Roque", None, existing, threshold=85)

        assert check.is_duplicate
        assert check.duplicate_of_id == 3

    def test_different_story_is_not_duplicate(self):
        existing = [ExistingRumor(3, "Vitor Roque llega al Betis cedido", None, None)]

        check = check_duplicate("El Sevilla ficha a un central noruego", None, existing, threshold=85)

        assert not check.is_duplicate
        assert check.duplicate_of_id is None
        assert check.similarity_score < 85

    def test_no_existing_rumours(self):
        check = check_duplicate("Isco renueva", "Hasta 2027", [])

        assert not check.is_duplicate
        assert check.content_hash == generate_content_hash("Isco renueva", "Hasta 2027")

    def test_best_match_is_reported(self):
        existing = [
            ExistingRumor(1, "Isco renueva con el Betis", None, None),
            ExistingRumor(2, "Isco renueva con el Betis hasta 2027", None, None),
        ]

        check = check_duplicate("Isco renueva con el Betis hasta 2027.", None, existing, threshold=90)

        assert check.duplicate_of_id == 2
