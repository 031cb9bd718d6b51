"""
Account Scanner - Discovery Engine
==================================
Finds an owner's empty token sub-accounts that still hold rent.

Workflow:
1. Query token accounts for both token programs in parallel
2. Keep accounts whose raw token amount is exactly zero
3. Re-read their lamports (already-closed accounts drop out here)
4. Keep accounts with strictly positive rent, largest first
"""

import asyncio
from typing import Dict, List

from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import ScanFailure
from solclaimer.modules.reclaimer.models import ProgramVariant, ScanResultSet, SubAccount
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc, TokenAccountRecord
from solclaimer.shared.system.logging import Logger


class AccountScanner:
    """
    Read-only scanner for closeable sub-accounts.

    Usage:
        scanner = AccountScanner(ledger)
        result = await scanner.scan(owner)
        print(result.total_lamports)
    """

    VARIANTS = (ProgramVariant.TOKEN, ProgramVariant.TOKEN_2022)

    def __init__(self, ledger: LedgerRpc, config: ReclaimerConfig = None):
        self.ledger = ledger
        self.config = config or ReclaimerConfig()

    async def scan(self, owner: Pubkey) -> ScanResultSet:
        Logger.info(f"🔍 [SCANNER] Scanning token accounts of {str(owner)[:8]}…")

        responses = await asyncio.gather(
            *(self.ledger.get_token_accounts(owner, v.program_id) for v in self.VARIANTS),
            return_exceptions=True,
        )

        candidates: Dict[str, tuple] = {}
        for variant, response in zip(self.VARIANTS, responses):
            if isinstance(response, BaseException):
                if variant.is_primary:
                    raise ScanFailure(f"{variant.value} query failed: {response}") from response
                Logger.warning(f"⚠️ [SCANNER] {variant.value} query failed, treating as empty: {response}")
                continue
            empties = self._empty_records(response)
            Logger.debug(f"[SCANNER] {variant.value}: {len(response)} accounts, {len(empties)} empty")
            for record in empties:
                candidates.setdefault(record.address, (variant, record))

        if not candidates:
            Logger.info("[SCANNER] No empty token accounts found")
            return ScanResultSet(str(owner))

        try:
            lamports = await self.ledger.get_account_lamports(list(candidates))
        except Exception as e:
            raise ScanFailure(f"rent lookup failed: {e}") from e

        accounts: List[SubAccount] = []
        for address, (variant, record) in candidates.items():
            rent = lamports.get(address, 0)
            if rent <= 0:
                continue
            accounts.append(SubAccount(address=address, variant=variant, mint=record.mint, lamports=rent))

        accounts.sort(key=lambda a: (-a.lamports, a.address))
        result = ScanResultSet(str(owner), accounts)

        Logger.success(
            f"[SCANNER] Found {len(result)} empty sub-accounts "
            f"({result.total_lamports} lamports reclaimable)"
        )
        return result

    @staticmethod
    def _empty_records(records: List[TokenAccountRecord]) -> List[TokenAccountRecord]:
        return [r for r in records if r.is_empty]
