"""
Reclamation Accountant
======================
Authoritative net-yield computation and stats persistence.

Net reclaimed = max(0, after - before), from two owner balance snapshots
taken around the whole operation, so network fees are already deducted.
It is capped at the selection's recorded rent so unrelated incoming
transfers landing mid-operation cannot inflate the figure.

Gross reclaimed (display only) = recorded rent of selected sub-accounts
that no longer exist afterwards. Never persisted.
"""

from typing import Sequence

from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import AccountingPersistFailure, SnapshotFailure
from solclaimer.modules.reclaimer.models import (
    ExecutionResult,
    ReclamationEvent,
    ReclamationReport,
    ReclamationStats,
    SubAccount,
)
from solclaimer.modules.reclaimer.oplog import OperationLog
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc
from solclaimer.shared.infrastructure.stats_store import StatsStore
from solclaimer.shared.system.logging import Logger


def compute_net(before: int, after: int, ceiling: int) -> int:
    return max(0, min(after - before, ceiling))


class ReclamationAccountant:

    def __init__(self, ledger: LedgerRpc, store: StatsStore, config: ReclaimerConfig = None):
        self.ledger = ledger
        self.store = store
        self.config = config or ReclaimerConfig()

    async def _read_balance(self, owner: Pubkey) -> int:
        try:
            return await self.ledger.get_balance(owner)
        except Exception as e:
            raise SnapshotFailure(f"balance read for {owner} failed: {e}") from e

    async def snapshot_before(self, owner: Pubkey) -> int:
        balance = await self._read_balance(owner)
        Logger.debug(f"[ACCOUNTANT] before = {balance} lamports")
        return balance

    async def snapshot_after(self, owner: Pubkey, before: int) -> int:
        """
        Re-read while the balance still equals `before` (settle lag).
        An unchanged final value is accepted as-is.
        """
        after = await self.config.balance_retry.poll(
            lambda: self._read_balance(owner),
            lambda value: value != before,
        )
        Logger.debug(f"[ACCOUNTANT] after = {after} lamports")
        return after

    async def gross_reclaimed(self, selection: Sequence[SubAccount]) -> int:
        """Rent of selected sub-accounts that are gone now; 0 if unknown."""
        if not selection:
            return 0
        try:
            remaining = await self.ledger.get_account_lamports([a.address for a in selection])
        except Exception as e:
            Logger.warning(f"⚠️ [ACCOUNTANT] Gross check skipped: {e}")
            return 0
        return sum(a.lamports for a in selection if remaining.get(a.address, 0) <= 0)

    async def record(self, owner: str, event: ReclamationEvent) -> ReclamationStats:
        try:
            return await self.store.update(owner, lambda stats: stats.with_event(event))
        except Exception as e:
            raise AccountingPersistFailure(f"stats write for {owner} failed: {e}") from e

    async def close_books(
        self,
        owner: Pubkey,
        selection: Sequence[SubAccount],
        execution: ExecutionResult,
        before: int,
        log: OperationLog,
    ) -> ReclamationReport:
        report = ReclamationReport(
            owner=str(owner),
            selected=len(selection),
            execution=execution,
            before_lamports=before,
            explorer_links=[self.config.explorer_link(s) for s in execution.signatures],
        )

        try:
            report.after_lamports = await self.snapshot_after(owner, before)
        except SnapshotFailure as e:
            log.failure(f"Closures are final, but the after balance could not be read: {e}")
            report.closed_count = len(execution.closed_addresses)
            report.log = log.lines
            e.report = report
            raise
        ceiling = sum(a.lamports for a in selection)
        report.net_lamports = compute_net(before, report.after_lamports, ceiling)
        report.gross_lamports = await self.gross_reclaimed(selection)
        report.closed_count = len(execution.closed_addresses)

        log.info(
            f"Net reclaimed: {report.net_lamports} lamports "
            f"(gross {report.gross_lamports}, {report.closed_count} sub-accounts closed)"
        )

        if execution.confirmed == 0:
            log.warning("No batch confirmed; nothing recorded")
            return report

        report.event = ReclamationEvent.now(
            lamports=report.net_lamports,
            signatures=execution.signatures,
            closed=report.closed_count,
        )
        try:
            await self.record(str(owner), report.event)
        except AccountingPersistFailure as e:
            report.persist_error = str(e)
            log.failure(f"Closures are final, but recording stats failed: {e}")
            return report

        report.persisted = True
        log.success("Stats recorded")
        return report
