"""
Reclamation Engine
==================
Facade over the reclamation pipeline:

    scan → (caller selects) → estimate → plan → submit → close books

One operation per owner at a time; a second `execute` for the same owner
while one is running raises OperationInProgress. Operations cannot be
cancelled once submission has started.
"""

import asyncio
from typing import Optional, Sequence, Set

from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.accountant import ReclamationAccountant
from solclaimer.modules.reclaimer.batch_builder import BatchBuilder
from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import OperationInProgress, SigningUnavailable
from solclaimer.modules.reclaimer.fee_estimator import FeeEstimator
from solclaimer.modules.reclaimer.metadata import MetadataCache, MetadataEnricher, TokenMetadataFetcher
from solclaimer.modules.reclaimer.models import (
    ExecutionResult,
    FeeEstimate,
    ReclamationReport,
    ReclamationStats,
    ScanResultSet,
    SubAccount,
)
from solclaimer.modules.reclaimer.oplog import OperationLog
from solclaimer.modules.reclaimer.scanner import AccountScanner
from solclaimer.modules.reclaimer.submitter import SubmissionDriver
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc
from solclaimer.shared.infrastructure.signer import TransactionSigner
from solclaimer.shared.infrastructure.stats_store import StatsStore
from solclaimer.shared.system.logging import Logger


def _unique(selection: Sequence[SubAccount]) -> list:
    """Drop repeated addresses, keeping the first occurrence."""
    seen = {}
    for account in selection:
        seen.setdefault(account.address, account)
    return list(seen.values())


class ReclamationEngine:
    """
    Usage:
        engine = ReclamationEngine(ledger, signer, store)
        found = await engine.scan(owner)
        estimate = await engine.estimate(owner, found.accounts)
        report = await engine.execute(owner, found.accounts)
    """

    def __init__(
        self,
        ledger: LedgerRpc,
        signer: Optional[TransactionSigner],
        store: StatsStore,
        config: Optional[ReclaimerConfig] = None,
        metadata_cache: Optional[MetadataCache] = None,
    ):
        self.config = config or ReclaimerConfig()
        self.ledger = ledger
        self.signer = signer
        self.store = store

        self.scanner = AccountScanner(ledger, self.config)
        self.builder = BatchBuilder(ledger, self.config)
        self.fees = FeeEstimator(self.builder, self.config)
        self.accountant = ReclamationAccountant(ledger, store, self.config)
        self.enricher = MetadataEnricher(
            TokenMetadataFetcher(ledger, metadata_cache or MetadataCache(), self.config)
        )
        self._in_flight: Set[str] = set()

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    async def scan(self, owner: Pubkey) -> ScanResultSet:
        self.fees.invalidate()
        return await self.scanner.scan(owner)

    def enrich_in_background(self, results: ScanResultSet) -> "asyncio.Task[int]":
        """Start metadata enrichment without waiting for it."""
        return asyncio.create_task(self.enricher.enrich(results))

    # =========================================================================
    # FEES
    # =========================================================================

    async def estimate(self, owner: Pubkey, selection: Sequence[SubAccount]) -> FeeEstimate:
        return await self.fees.estimate(owner, selection)

    def current_estimate(self, selection: Sequence[SubAccount]) -> int:
        """Fee for this selection if it was the one last estimated, else 0."""
        return self.fees.current(selection)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def is_busy(self, owner: Pubkey) -> bool:
        return str(owner) in self._in_flight

    async def execute(self, owner: Pubkey, selection: Sequence[SubAccount]) -> ReclamationReport:
        key = str(owner)
        if key in self._in_flight:
            raise OperationInProgress(f"A reclamation for {key} is already running")
        self._in_flight.add(key)
        try:
            return await self._execute(owner, _unique(selection))
        finally:
            self._in_flight.discard(key)

    async def _execute(self, owner: Pubkey, selection: list) -> ReclamationReport:
        log = OperationLog("ENGINE")

        if not selection:
            log.info("No selected sub-accounts.")
            report = ReclamationReport(owner=str(owner), selected=0, execution=ExecutionResult())
            report.log = log.lines
            return report

        if self.signer is None:
            raise SigningUnavailable("No signer configured; cannot submit close batches")

        Logger.section(f"Reclaiming {len(selection)} sub-accounts for {str(owner)[:8]}…")
        before = await self.accountant.snapshot_before(owner)

        log.info("Building close batches…")
        batches = self.builder.plan(owner, selection)
        log.info(f"{len(selection)} sub-accounts in {len(batches)} batches")

        execution = await SubmissionDriver(self.ledger, self.signer, self.builder, self.config).run(
            owner, batches, log
        )
        for link in (self.config.explorer_link(s) for s in execution.signatures):
            log.info(link)

        try:
            report = await self.accountant.close_books(owner, selection, execution, before, log)
        finally:
            self.fees.invalidate()
        report.log = log.lines
        return report

    # =========================================================================
    # STATS
    # =========================================================================

    async def stats(self, owner: Pubkey) -> ReclamationStats:
        return await self.store.get(str(owner))
