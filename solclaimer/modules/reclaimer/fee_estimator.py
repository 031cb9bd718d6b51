"""
Fee Estimator
=============
Prices a selection by building the same batches the executor would and
asking the node to quote each message, without submitting anything.

The result is advisory: a failed quote is replaced by the per-batch
fallback fee, and an estimate is only valid for the exact selection it
priced (`current` returns 0 for any other selection).
"""

from typing import Optional, Sequence

from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.batch_builder import BatchBuilder
from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import EstimationFailure
from solclaimer.modules.reclaimer.models import Batch, FeeEstimate, SubAccount
from solclaimer.shared.system.logging import Logger


class FeeEstimator:

    def __init__(self, builder: BatchBuilder, config: ReclaimerConfig = None):
        self.builder = builder
        self.config = config or builder.config
        self._last: Optional[FeeEstimate] = None

    async def estimate(self, owner: Pubkey, selection: Sequence[SubAccount]) -> FeeEstimate:
        batches = self.builder.plan(owner, selection)
        total = 0
        fallbacks = 0

        for batch in batches:
            try:
                total += await self._quote(owner, batch)
            except EstimationFailure as e:
                fallbacks += 1
                total += self.config.FALLBACK_FEE_LAMPORTS
                Logger.warning(f"⚠️ [FEES] {e}; using fallback {self.config.FALLBACK_FEE_LAMPORTS} lamports")

        estimate = FeeEstimate(
            selection=frozenset(a.address for a in selection),
            lamports=total,
            batches=len(batches),
            fallback_batches=fallbacks,
        )
        self._last = estimate
        Logger.info(f"⛽ [FEES] Estimated {total} lamports across {len(batches)} batches")
        return estimate

    async def _quote(self, owner: Pubkey, batch: Batch) -> int:
        try:
            await self.builder.finalize(owner, batch)
            fee = await self.builder.ledger.get_fee_for_message(batch.message)
        except Exception as e:
            raise EstimationFailure(f"quote for batch {batch.number} failed: {e}") from e
        if fee is None:
            raise EstimationFailure(f"no quote for batch {batch.number}")
        return int(fee)

    def current(self, selection: Sequence[SubAccount]) -> int:
        """Last estimate if it priced exactly this selection, else 0."""
        if self._last is None:
            return 0
        if not self._last.is_fresh_for(a.address for a in selection):
            return 0
        return self._last.lamports

    def invalidate(self) -> None:
        self._last = None
