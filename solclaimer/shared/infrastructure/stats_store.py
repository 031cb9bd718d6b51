"""
Reclamation Stats Stores
========================
Passive per-owner ledger of reclamation history. Backends:

- JsonFileStatsStore: single JSON document {owner: record} on disk
- SqliteStatsStore:   DatabaseCore + ReclamationStatsRepository
- HttpStatsStore:     remote stats service (solclaimer.api.stats_server)

`get` on an unknown owner returns the all-zero record. `put` replaces the
whole record. `update` is the read-modify-write used by the accountant;
it is serialized per owner within the process, and the SQLite backend
also holds the database write lock for the duration.
"""

import asyncio
import json
import os
import tempfile
import threading
from collections import defaultdict
from typing import Callable, Dict, Optional, Protocol

import httpx

from config.settings import Settings
from solclaimer.modules.reclaimer.models import ReclamationStats
from solclaimer.shared.system.database.core import DatabaseCore
from solclaimer.shared.system.database.repositories.reclamation_repo import ReclamationStatsRepository
from solclaimer.shared.system.logging import Logger

Mutator = Callable[[ReclamationStats], ReclamationStats]


class UnreadableStatsFile(Exception):
    """The stats file exists but cannot be parsed; it is never overwritten."""


class StatsStore(Protocol):
    async def get(self, owner: str) -> ReclamationStats: ...
    async def put(self, owner: str, stats: ReclamationStats) -> None: ...
    async def update(self, owner: str, mutate: Mutator) -> ReclamationStats: ...


class _OwnerLocks:
    """Per-owner asyncio locks for read-modify-write."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_owner(self, owner: str) -> asyncio.Lock:
        return self._locks[owner]


class JsonFileStatsStore:
    """
    File-backed store. Layout matches the web app's ata_stats.json:
        {"<owner>": {"totalClosed": 0, "totalReclaimedLamports": 0, "events": []}}
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or Settings.STATS_FILE
        self._file_lock = threading.Lock()
        self._owners = _OwnerLocks()

    def _read_all(self, strict: bool = False) -> Dict[str, dict]:
        """
        Whole document. Lenient reads treat a damaged file as empty; strict
        reads (before a write) raise so existing history is not replaced.
        """
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            if strict:
                raise UnreadableStatsFile(f"stats file {self.path} is unreadable: {e}") from e
            Logger.warning(f"⚠️ [STATS] Unreadable stats file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            if strict:
                raise UnreadableStatsFile(f"stats file {self.path} is not an owner mapping")
            return {}
        return data

    def _write_all(self, data: Dict[str, dict]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".ata_stats.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _get_sync(self, owner: str) -> ReclamationStats:
        with self._file_lock:
            return ReclamationStats.from_dict(self._read_all().get(owner))

    def _get_strict(self, owner: str) -> ReclamationStats:
        with self._file_lock:
            return ReclamationStats.from_dict(self._read_all(strict=True).get(owner))

    def _put_sync(self, owner: str, stats: ReclamationStats) -> None:
        with self._file_lock:
            data = self._read_all(strict=True)
            data[owner] = stats.to_dict()
            self._write_all(data)

    async def get(self, owner: str) -> ReclamationStats:
        return await asyncio.to_thread(self._get_sync, owner)

    async def put(self, owner: str, stats: ReclamationStats) -> None:
        await asyncio.to_thread(self._put_sync, owner, stats)

    async def update(self, owner: str, mutate: Mutator) -> ReclamationStats:
        async with self._owners.for_owner(owner):
            updated = mutate(await asyncio.to_thread(self._get_strict, owner))
            await self.put(owner, updated)
            return updated


class SqliteStatsStore:

    def __init__(self, db: Optional[DatabaseCore] = None):
        self.db = db or DatabaseCore()
        self.repo = ReclamationStatsRepository(self.db)
        self.repo.init_table()
        self._owners = _OwnerLocks()

    def _put_sync(self, owner: str, stats: ReclamationStats) -> None:
        with self.db.transaction() as c:
            self.repo.replace(owner, stats, c)

    def _update_sync(self, owner: str, mutate: Mutator) -> ReclamationStats:
        with self.db.transaction() as c:
            updated = mutate(self.repo.load(owner, cursor=c))
            self.repo.replace(owner, updated, c)
            return updated

    async def get(self, owner: str) -> ReclamationStats:
        return await asyncio.to_thread(self.repo.load, owner)

    async def put(self, owner: str, stats: ReclamationStats) -> None:
        await asyncio.to_thread(self._put_sync, owner, stats)

    async def update(self, owner: str, mutate: Mutator) -> ReclamationStats:
        async with self._owners.for_owner(owner):
            return await asyncio.to_thread(self._update_sync, owner, mutate)


class HttpStatsStore:
    """
    Client for the stats service.

    GET  {base}/api/stats/{owner}
    PUT  {base}/api/stats/{owner}   body: full record
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or Settings.STATS_API_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._owners = _OwnerLocks()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def get(self, owner: str) -> ReclamationStats:
        async with self._client() as client:
            response = await client.get(f"/api/stats/{owner}")
            response.raise_for_status()
            return ReclamationStats.from_dict(response.json())

    async def put(self, owner: str, stats: ReclamationStats) -> None:
        async with self._client() as client:
            response = await client.put(f"/api/stats/{owner}", json=stats.to_dict())
            response.raise_for_status()

    async def update(self, owner: str, mutate: Mutator) -> ReclamationStats:
        async with self._owners.for_owner(owner):
            updated = mutate(await self.get(owner))
            await self.put(owner, updated)
            return updated


def create_stats_store(backend: Optional[str] = None) -> StatsStore:
    """Store selected by Settings.STATS_BACKEND (json | sqlite | http)."""
    backend = (backend or Settings.STATS_BACKEND).lower()
    if backend == "json":
        return JsonFileStatsStore()
    if backend == "sqlite":
        return SqliteStatsStore()
    if backend == "http":
        return HttpStatsStore()
    raise ValueError(f"Unknown stats backend: {backend}")
