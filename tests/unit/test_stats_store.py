"""
Stats Store Unit Tests
======================
Tests for the JSON file, SQLite and HTTP stats backends.
"""

import asyncio
import json

import httpx
import pytest

from solclaimer.modules.reclaimer.models import ReclamationEvent, ReclamationStats

OWNER = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def _event(lamports=1_000, closed=1, ts=1):
    return ReclamationEvent(ts=ts, lamports=lamports, signatures=(f"sig{ts}",), closed=closed)


@pytest.fixture(params=["json", "sqlite", "http"])
def any_store(request, tmp_path):
    from solclaimer.api.stats_server import create_app
    from solclaimer.shared.infrastructure.stats_store import (
        HttpStatsStore,
        JsonFileStatsStore,
        SqliteStatsStore,
    )
    from solclaimer.shared.system.database.core import DatabaseCore

    if request.param == "json":
        return JsonFileStatsStore(str(tmp_path / "ata_stats.json"))
    if request.param == "sqlite":
        return SqliteStatsStore(DatabaseCore(str(tmp_path / "stats.db")))
    backing = JsonFileStatsStore(str(tmp_path / "served.json"))
    transport = httpx.ASGITransport(app=create_app(backing))
    return HttpStatsStore("http://stats.test", transport=transport)


class TestStoreContract:
    """Every backend honours the same get/put/update contract."""

    @pytest.mark.asyncio
    async def test_unknown_owner_is_zero_record(self, any_store):
        stats = await any_store.get(OWNER)

        assert stats == ReclamationStats.empty()

    @pytest.mark.asyncio
    async def test_put_then_get(self, any_store):
        stats = ReclamationStats.empty().with_event(_event(3_920_000, 3))

        await any_store.put(OWNER, stats)

        assert await any_store.get(OWNER) == stats

    @pytest.mark.asyncio
    async def test_update_appends_and_accumulates(self, any_store):
        await any_store.update(OWNER, lambda s: s.with_event(_event(1_000, 2, ts=1)))
        await any_store.update(OWNER, lambda s: s.with_event(_event(500, 1, ts=2)))

        stats = await any_store.get(OWNER)
        assert stats.total_closed == 3
        assert stats.total_reclaimed_lamports == 1_500
        assert [e.ts for e in stats.events] == [1, 2]
        assert stats.is_consistent()

    @pytest.mark.asyncio
    async def test_owners_are_independent(self, any_store):
        await any_store.update(OWNER, lambda s: s.with_event(_event()))

        assert (await any_store.get("other-owner")).total_closed == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self, any_store):
        await asyncio.gather(*(
            any_store.update(OWNER, lambda s, i=i: s.with_event(_event(100, 1, ts=i)))
            for i in range(5)
        ))

        stats = await any_store.get(OWNER)
        assert stats.total_closed == 5
        assert len(stats.events) == 5


class TestJsonFileStore:

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path):
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore

        path = tmp_path / "ata_stats.json"
        await JsonFileStatsStore(str(path)).update(OWNER, lambda s: s.with_event(_event(42, 1, ts=7)))

        data = json.loads(path.read_text())
        assert data[OWNER]["totalClosed"] == 1
        assert data[OWNER]["totalReclaimedLamports"] == 42
        assert data[OWNER]["events"][0]["ts"] == 7

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore

        path = tmp_path / "ata_stats.json"
        path.write_text("{not json")

        assert await JsonFileStatsStore(str(path)).get(OWNER) == ReclamationStats.empty()

    @pytest.mark.asyncio
    async def test_corrupt_file_is_not_overwritten(self, tmp_path):
        """A damaged file keeps every owner's history; the update is refused."""
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore, UnreadableStatsFile

        path = tmp_path / "ata_stats.json"
        store = JsonFileStatsStore(str(path))
        await store.update(OWNER, lambda s: s.with_event(_event(100, 2, ts=1)))
        await store.update("other-owner", lambda s: s.with_event(_event(50, 1, ts=2)))
        damaged = path.read_text()[:-10]
        path.write_text(damaged)

        with pytest.raises(UnreadableStatsFile):
            await store.update(OWNER, lambda s: s.with_event(_event(7, 1, ts=3)))
        with pytest.raises(UnreadableStatsFile):
            await store.put(OWNER, ReclamationStats.empty())

        assert path.read_text() == damaged

    @pytest.mark.asyncio
    async def test_non_mapping_file_is_not_overwritten(self, tmp_path):
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore, UnreadableStatsFile

        path = tmp_path / "ata_stats.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(UnreadableStatsFile):
            await JsonFileStatsStore(str(path)).update(OWNER, lambda s: s.with_event(_event()))
        assert json.loads(path.read_text()) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_accountant_reports_unpersisted_on_corrupt_file(self, tmp_path, ledger):
        from solclaimer.modules.reclaimer.accountant import ReclamationAccountant
        from solclaimer.modules.reclaimer.errors import AccountingPersistFailure
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore

        path = tmp_path / "ata_stats.json"
        path.write_text("{not json")
        accountant = ReclamationAccountant(ledger, JsonFileStatsStore(str(path)))

        with pytest.raises(AccountingPersistFailure):
            await accountant.record(OWNER, _event())
        assert path.read_text() == "{not json"


class TestSqliteStore:

    def test_repository_statistics(self, tmp_path):
        from solclaimer.shared.system.database.core import DatabaseCore
        from solclaimer.shared.system.database.repositories.reclamation_repo import ReclamationStatsRepository

        db = DatabaseCore(str(tmp_path / "stats.db"))
        repo = ReclamationStatsRepository(db)
        repo.init_table()
        with db.transaction() as c:
            repo.replace(OWNER, ReclamationStats.empty().with_event(_event(10, 2)), c)
            repo.replace("other", ReclamationStats.empty().with_event(_event(5, 1)), c)

        stats = repo.get_statistics()
        assert stats["owners"] == 2
        assert stats["total_closed"] == 3
        assert stats["total_reclaimed_lamports"] == 15


class TestFactory:

    def test_unknown_backend(self):
        from solclaimer.shared.infrastructure.stats_store import create_stats_store

        with pytest.raises(ValueError):
            create_stats_store("redis")

    def test_json_backend(self, monkeypatch, tmp_path):
        from solclaimer.shared.infrastructure.stats_store import JsonFileStatsStore, create_stats_store

        monkeypatch.setattr("config.settings.Settings.STATS_FILE", str(tmp_path / "s.json"))

        store = create_stats_store("json")
        assert isinstance(store, JsonFileStatsStore)
        assert store.path == str(tmp_path / "s.json")
