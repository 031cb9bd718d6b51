"""
Mock Stats Store
================
Dict-backed StatsStore with a switch to make writes fail.
"""

from typing import Dict

from solclaimer.modules.reclaimer.models import ReclamationStats


class MemoryStatsStore:

    def __init__(self):
        self.records: Dict[str, ReclamationStats] = {}
        self.fail_writes = False
        self.writes = 0

    async def get(self, owner: str) -> ReclamationStats:
        return self.records.get(owner, ReclamationStats.empty())

    async def put(self, owner: str, stats: ReclamationStats) -> None:
        if self.fail_writes:
            raise OSError("stats backend unavailable")
        self.writes += 1
        self.records[owner] = stats

    async def update(self, owner, mutate):
        updated = mutate(await self.get(owner))
        await self.put(owner, updated)
        return updated
