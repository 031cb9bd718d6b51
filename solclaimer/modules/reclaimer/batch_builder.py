"""
Batch Builder
=============
Turns an ordered selection of sub-accounts into close batches of at most
MAX_IX_PER_TX instructions.

Each close instruction is encoded for the token program that owns its
sub-account, so a batch may safely mix both program variants. Batches are
planned without a blockhash; `finalize` binds a fresh one right before
the batch is signed, since blockhashes expire.
"""

from typing import List, Sequence

from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from spl.token.instructions import CloseAccountParams, close_account

from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.models import Batch, SubAccount
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc
from solclaimer.shared.system.logging import Logger


def build_close_instruction(owner: Pubkey, account: SubAccount) -> Instruction:
    """Close `account`, sending its rent to `owner` (also the authority)."""
    return close_account(
        CloseAccountParams(
            program_id=account.variant.program_id,
            account=account.pubkey,
            dest=owner,
            owner=owner,
        )
    )


class BatchBuilder:

    def __init__(self, ledger: LedgerRpc, config: ReclaimerConfig = None):
        self.ledger = ledger
        self.config = config or ReclaimerConfig()

    def plan(self, owner: Pubkey, selection: Sequence[SubAccount]) -> List[Batch]:
        """Chunk the selection, in order, into unanchored batches."""
        seen = set()
        accounts = []
        for account in selection:
            if account.address in seen:
                continue
            seen.add(account.address)
            accounts.append(account)

        limit = self.config.MAX_IX_PER_TX
        batches = []
        for i in range(0, len(accounts), limit):
            chunk = accounts[i:i + limit]
            batches.append(Batch(
                index=len(batches),
                accounts=chunk,
                instructions=[build_close_instruction(owner, a) for a in chunk],
            ))

        Logger.debug(f"[BATCH] Planned {len(batches)} batches for {len(accounts)} sub-accounts")
        return batches

    async def finalize(self, owner: Pubkey, batch: Batch) -> Batch:
        """Fetch a fresh blockhash and compile the batch into a v0 message."""
        blockhash = await self.ledger.get_latest_blockhash()
        message = MessageV0.try_compile(
            payer=owner,
            instructions=batch.instructions,
            address_lookup_table_accounts=[],
            recent_blockhash=blockhash,
        )
        batch.mark_built(blockhash, message)
        return batch

    async def build(self, owner: Pubkey, selection: Sequence[SubAccount]) -> List[Batch]:
        """Plan and finalize every batch (each with its own blockhash fetch)."""
        batches = self.plan(owner, selection)
        for batch in batches:
            await self.finalize(owner, batch)
        return batches
