"""
Submission & Confirmation Driver
================================
Sends planned batches one at a time and waits for each to settle.

Per batch:  PLANNED → BUILT → SUBMITTED → CONFIRMED
                                       ↘ FAILED
A failed batch is recorded and the driver moves on; the operation is
best-effort across all batches and reports confirmed/total.
"""

from typing import List

from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.batch_builder import BatchBuilder
from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import BatchSubmissionFailure
from solclaimer.modules.reclaimer.models import Batch, BatchOutcome, ExecutionResult
from solclaimer.modules.reclaimer.oplog import OperationLog
from solclaimer.shared.infrastructure.ledger_client import ConfirmationStatus, LedgerRpc
from solclaimer.shared.infrastructure.signer import TransactionSigner
from solclaimer.shared.system.logging import Logger


class SubmissionDriver:

    def __init__(
        self,
        ledger: LedgerRpc,
        signer: TransactionSigner,
        builder: BatchBuilder,
        config: ReclaimerConfig = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.builder = builder
        self.config = config or builder.config

    async def run(self, owner: Pubkey, batches: List[Batch], log: OperationLog) -> ExecutionResult:
        """Submit every batch sequentially; never raises for a single batch."""
        result = ExecutionResult()
        total = len(batches)

        for batch in batches:
            try:
                await self._process(owner, batch, total, log)
            except BatchSubmissionFailure as e:
                batch.mark_failed(e.reason)
                log.failure(f"Send error on batch {batch.number}/{total}: {e.reason}")
            result.outcomes.append(BatchOutcome.from_batch(batch))

        log.info(f"Done. Closed {result.confirmed}/{result.total} batches.")
        return result

    async def _process(self, owner: Pubkey, batch: Batch, total: int, log: OperationLog) -> None:
        # Blockhash is fetched here, immediately before signing.
        try:
            await self.builder.finalize(owner, batch)
        except Exception as e:
            raise BatchSubmissionFailure(batch.number, f"could not build message: {e}") from e

        try:
            signature = await self.signer.sign_and_send(batch.message)
        except Exception as e:
            raise BatchSubmissionFailure(batch.number, f"submission rejected: {e}") from e
        batch.mark_submitted(signature)
        log.info(f"Batch {batch.number}/{total} submitted ({len(batch.accounts)} closes): {signature}")

        status = await self._await_settlement(signature)
        if status is ConfirmationStatus.CONFIRMED:
            batch.mark_confirmed()
            log.success(f"Batch {batch.number}/{total} confirmed")
        elif status is ConfirmationStatus.FAILED:
            raise BatchSubmissionFailure(batch.number, f"transaction {signature} failed on-chain")
        else:
            raise BatchSubmissionFailure(
                batch.number,
                f"transaction {signature} not confirmed after "
                f"{self.config.confirm_retry.max_attempts} re-reads",
            )

    async def _await_settlement(self, signature: str) -> ConfirmationStatus:
        try:
            status = await self.ledger.confirm(signature)
        except Exception as e:
            Logger.debug(f"[SUBMIT] confirm({signature[:12]}…) errored, re-reading: {e}")
            status = ConfirmationStatus.UNKNOWN
        return await self.config.confirm_retry.poll(
            lambda: self._read_status(signature),
            lambda s: s is not ConfirmationStatus.UNKNOWN,
            first=status,
        )

    async def _read_status(self, signature: str) -> ConfirmationStatus:
        try:
            return await self.ledger.get_signature_status(signature)
        except Exception as e:
            Logger.debug(f"[SUBMIT] status read for {signature[:12]}… failed: {e}")
            return ConfirmationStatus.UNKNOWN
