"""Unit tests for the rumour sync cycle, with a stub fetcher."""

from datetime import datetime

import pytest

from soylenti.db.models import NewsPlayer, Rumor, UpdateLog
from soylenti.services.rumor_sync import RumorSyncService, SyncResult

NOW = datetime(2025, 1, 6, 12, 0)


def stub_fetcher(items):
    async def _fetch():
        return list(items)
    return _fetch


class TestRumorSync:

    @pytest.mark.asyncio
    async def test_inserts_and_matches(self, db_session, make_player, item_factory):
        isco = make_player("Isco")
        items = [
            item_factory("El Betis pretende fichar a Isco para enero", "https://x/isco", datetime(2025, 1, 6, 9)),
            item_factory("El Sevilla busca lateral zurdo", "https://x/sevilla", datetime(2025, 1, 6, 8)),
        ]

        result = await RumorSyncService(db_session, fetcher=stub_fetcher(items)).sync(now=NOW)

        assert result.success
        assert (result.fetched, result.inserted, result.duplicates) == (2, 2, 0)
        assert result.matched == 1
        assert result.mentions == 1
        assert db_session.query(Rumor).count() == 2
        db_session.refresh(isco)
        assert isco.rumor_count == 1

    @pytest.mark.asyncio
    async def test_known_links_are_skipped(self, db_session, make_player, make_rumor, item_factory):
        isco = make_player("Isco")
        make_rumor("Isco vuelve a Sevilla", link="https://x/isco", pub_date=datetime(2025, 1, 5))
        items = [item_factory("Isco vuelve a Sevilla", "https://x/isco", datetime(2025, 1, 5))]

        result = await RumorSyncService(db_session, fetcher=stub_fetcher(items)).sync(now=NOW)

        assert result.duplicates == 1
        assert result.inserted == 0
        db_session.refresh(isco)
        assert isco.rumor_count == 0

    @pytest.mark.asyncio
    async def test_repeated_story_under_new_link_is_skipped(self, db_session, item_factory):
        items = [
            item_factory("Vitor Roque llega al Betis cedido", "https://a/roque", datetime(2025, 1, 6, 10)),
            item_factory("Vitor Roque llega al Betis cedido", "https://b/roque", datetime(2025, 1, 6, 9)),
        ]

        result = await RumorSyncService(db_session, fetcher=stub_fetcher(items)).sync(now=NOW)

        assert result.inserted == 1
        assert result.duplicates == 1
        assert db_session.query(Rumor.link).scalar() == "https://a/roque"

    @pytest.mark.asyncio
    async def test_running_twice_adds_nothing(self, db_session, make_player, item_factory):
        isco = make_player("Isco")
        items = [item_factory("Isco renueva", "https://x/renueva", datetime(2025, 1, 6, 9))]
        service = RumorSyncService(db_session, fetcher=stub_fetcher(items))

        await service.sync(now=NOW)
        second = await service.sync(now=NOW)

        assert second.inserted == 0
        assert db_session.query(NewsPlayer).count() == 1
        db_session.refresh(isco)
        assert isco.rumor_count == 1

    @pytest.mark.asyncio
    async def test_cycle_is_logged(self, db_session):
        result = await RumorSyncService(db_session, fetcher=stub_fetcher([])).sync(now=NOW)

        assert result.fetched == 0
        entry = db_session.query(UpdateLog).filter(UpdateLog.update_type == "rumor_sync").one()
        assert entry.success
        assert entry.details["inserted"] == 0


class TestSyncResult:

    def test_summary_lists_errors(self):
        result = SyncResult(fetched=3, errors=["https://x/1: OperationalError"])

        assert not result.success
        text = result.summary()
        assert "Fetched:            3" in text
        assert "OperationalError" in text
