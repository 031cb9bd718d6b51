import sqlite3
import os
import time
from contextlib import contextmanager
from typing import Optional

from config.settings import Settings
from solclaimer.shared.system.logging import Logger


class DatabaseCore:
    """
    Core Database Connection Manager.
    Handles WAL mode and hands out short-lived connections.
    One instance per database file; pass `db_path` to isolate tests.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or Settings.STATS_DB_PATH
        self._ensure_data_dir()
        self._init_wal_mode()

    def _ensure_data_dir(self):
        directory = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(directory, exist_ok=True)

    def _init_wal_mode(self):
        """Enable Write-Ahead Logging for concurrency."""
        try:
            with self.cursor(commit=True) as c:
                c.execute("PRAGMA journal_mode=WAL;")
                c.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as e:
            Logger.warning(f"⚠️ [STATS] Failed to enable WAL mode: {e}")

    def get_connection(self) -> sqlite3.Connection:
        """Get a configured SQLite connection."""
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def cursor(self, commit=False):
        """Context manager for database interaction."""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            if commit and conn.in_transaction:
                conn.commit()
        except Exception as e:
            if conn.in_transaction:
                conn.rollback()
            Logger.error(f"❌ [STATS] DB Error: {e}")
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """
        Exclusive write transaction (BEGIN IMMEDIATE).

        Takes the database write lock up front so a read-modify-write
        cannot interleave with another writer, even across processes.
        """
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            yield cursor
            conn.commit()
        except Exception as e:
            if conn.in_transaction:
                conn.rollback()
            Logger.error(f"❌ [STATS] DB Transaction Error: {e}")
            raise
        finally:
            conn.close()

    def wait_for_connection(self, timeout=2.0) -> bool:
        """Ensure database is ready."""
        start = time.time()
        while time.time() - start < timeout:
            try:
                with self.cursor() as c:
                    c.execute("SELECT 1")
                    if c.fetchone():
                        return True
            except sqlite3.Error:
                time.sleep(0.1)
        return False
