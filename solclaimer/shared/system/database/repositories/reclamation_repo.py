"""
Reclamation Stats Repository
============================
Per-owner cumulative totals plus the append-only event history.

Tables:
- reclamation_totals: one row per owner (total_closed, total_reclaimed_lamports)
- reclamation_events: one row per completed operation, ordered by seq
"""

import json
import sqlite3
from typing import Optional

from solclaimer.modules.reclaimer.models import ReclamationEvent, ReclamationStats
from solclaimer.shared.system.database.repositories.base import BaseRepository
from solclaimer.shared.system.logging import Logger


class ReclamationStatsRepository(BaseRepository):

    def init_table(self):
        """Initialize stats tables."""
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS reclamation_totals (
                owner TEXT PRIMARY KEY,
                total_closed INTEGER NOT NULL DEFAULT 0,
                total_reclaimed_lamports INTEGER NOT NULL DEFAULT 0,
                updated_at REAL DEFAULT (strftime('%s', 'now'))
            )
            """)

            c.execute("""
            CREATE TABLE IF NOT EXISTS reclamation_events (
                owner TEXT NOT NULL,
                seq INTEGER NOT NULL,
                ts INTEGER NOT NULL,
                lamports INTEGER NOT NULL CHECK(lamports >= 0),
                closed INTEGER NOT NULL CHECK(closed >= 0),
                signatures TEXT NOT NULL,
                PRIMARY KEY (owner, seq)
            )
            """)

            Logger.debug("[STATS] Reclamation tables initialized")

    def load(self, owner: str, cursor: Optional[sqlite3.Cursor] = None) -> ReclamationStats:
        """Full record for an owner; absent owner yields the empty record."""
        totals = self._fetchone(
            "SELECT total_closed, total_reclaimed_lamports FROM reclamation_totals WHERE owner = ?",
            (owner,),
            cursor=cursor,
        )
        if totals is None:
            return ReclamationStats.empty()

        rows = self._fetchall(
            "SELECT ts, lamports, closed, signatures FROM reclamation_events WHERE owner = ? ORDER BY seq",
            (owner,),
            cursor=cursor,
        )
        events = tuple(
            ReclamationEvent(
                ts=row["ts"],
                lamports=row["lamports"],
                closed=row["closed"],
                signatures=tuple(json.loads(row["signatures"])),
            )
            for row in rows
        )
        return ReclamationStats(
            total_closed=totals["total_closed"],
            total_reclaimed_lamports=totals["total_reclaimed_lamports"],
            events=events,
        )

    def replace(self, owner: str, stats: ReclamationStats, cursor: sqlite3.Cursor) -> None:
        """Replace the whole record (must run inside a transaction)."""
        cursor.execute("DELETE FROM reclamation_events WHERE owner = ?", (owner,))
        cursor.executemany(
            "INSERT INTO reclamation_events (owner, seq, ts, lamports, closed, signatures) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (owner, seq, e.ts, e.lamports, e.closed, json.dumps(list(e.signatures)))
                for seq, e in enumerate(stats.events)
            ],
        )
        cursor.execute("""
        INSERT INTO reclamation_totals (owner, total_closed, total_reclaimed_lamports, updated_at)
        VALUES (?, ?, ?, strftime('%s', 'now'))
        ON CONFLICT(owner) DO UPDATE SET
            total_closed = excluded.total_closed,
            total_reclaimed_lamports = excluded.total_reclaimed_lamports,
            updated_at = excluded.updated_at
        """, (owner, stats.total_closed, stats.total_reclaimed_lamports))

    def get_statistics(self) -> dict:
        """Aggregate across all owners."""
        row = self._fetchone("""
        SELECT COUNT(*) AS owners,
               COALESCE(SUM(total_closed), 0) AS total_closed,
               COALESCE(SUM(total_reclaimed_lamports), 0) AS total_reclaimed_lamports
        FROM reclamation_totals
        """)
        return row or {"owners": 0, "total_closed": 0, "total_reclaimed_lamports": 0}
