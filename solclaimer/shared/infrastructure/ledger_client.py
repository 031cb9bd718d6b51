"""
Ledger RPC Client
=================
The read/submit contract the reclaimer needs from a Solana RPC node,
implemented on solana-py's AsyncClient with endpoint failover.

Contract (see LedgerRpc):
    get_token_accounts    token accounts by owner + program (jsonParsed)
    get_account_lamports  lamports per address (absent accounts omitted)
    get_account_data      raw account bytes
    get_latest_blockhash  fresh validity anchor
    get_fee_for_message   fee quote for an unsubmitted message
    send_transaction      submit a signed transaction
    confirm               wait for settlement (node-side timeout)
    get_signature_status  one direct settlement read
    get_balance          owner balance in lamports
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from solclaimer.shared.infrastructure.rpc_manager import RpcEndpointPool
from solclaimer.shared.system.logging import Logger


class ConfirmationStatus(Enum):
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"  # not yet visible / ambiguous


@dataclass(frozen=True)
class TokenAccountRecord:
    """One token account as reported by getTokenAccountsByOwner."""
    address: str
    mint: str
    amount: str  # raw integer amount, as a decimal string
    ui_amount: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.amount == "0" and not self.ui_amount


class LedgerRpc(Protocol):
    async def get_token_accounts(self, owner: Pubkey, program_id: Pubkey) -> List[TokenAccountRecord]: ...
    async def get_account_lamports(self, addresses: Sequence[str]) -> Dict[str, int]: ...
    async def get_account_data(self, address: Pubkey) -> Optional[bytes]: ...
    async def get_latest_blockhash(self) -> Hash: ...
    async def get_fee_for_message(self, message: MessageV0) -> Optional[int]: ...
    async def send_transaction(self, tx: VersionedTransaction) -> str: ...
    async def confirm(self, signature: str) -> ConfirmationStatus: ...
    async def get_signature_status(self, signature: str) -> ConfirmationStatus: ...
    async def get_balance(self, owner: Pubkey) -> int: ...


def parse_token_account(address: str, parsed: Any) -> Optional[TokenAccountRecord]:
    """Extract mint/amount from a jsonParsed token account payload."""
    if not isinstance(parsed, dict):
        return None
    info = (parsed.get("parsed") or {}).get("info") if "parsed" in parsed else parsed.get("info")
    if not info:
        return None
    token_amount = info.get("tokenAmount") or {}
    try:
        ui_amount = float(token_amount.get("uiAmount") or 0)
    except (TypeError, ValueError):
        ui_amount = 0.0
    return TokenAccountRecord(
        address=address,
        mint=info.get("mint") or "unknown",
        amount=str(token_amount.get("amount", "0")),
        ui_amount=ui_amount,
    )


class SolanaLedgerClient:
    """
    AsyncClient-backed ledger access.

    Usage:
        ledger = SolanaLedgerClient()
        accounts = await ledger.get_token_accounts(owner, TOKEN_PROGRAM_ID)
        await ledger.close()
    """

    def __init__(
        self,
        pool: Optional[RpcEndpointPool] = None,
        commitment: str = "confirmed",
        balance_batch_size: int = 100,
        timeout: float = 30.0,
    ):
        self.pool = pool or RpcEndpointPool()
        self.commitment = Commitment(commitment)
        self.balance_batch_size = balance_batch_size
        self.timeout = timeout
        self._clients: Dict[str, AsyncClient] = {}

    def _client(self) -> AsyncClient:
        url = self.pool.get_active_url()
        if url not in self._clients:
            self._clients[url] = AsyncClient(url, commitment=self.commitment, timeout=self.timeout)
        return self._clients[url]

    async def _call(self, method: str, fn: Callable[[AsyncClient], Awaitable[Any]]) -> Any:
        """Run one RPC call, recording health and rotating on transport failure."""
        url = self.pool.get_active_url()
        start = time.time()
        try:
            result = await fn(self._client())
        except (SolanaRpcException, httpx.HTTPError) as e:
            self.pool.record_error(url, f"{method}: {e}")
            self.pool.switch_provider(reason=f"{method} failed: {e}")
            raise
        self.pool.record_success(url, (time.time() - start) * 1000)
        return result

    async def get_token_accounts(self, owner: Pubkey, program_id: Pubkey) -> List[TokenAccountRecord]:
        resp = await self._call(
            "getTokenAccountsByOwner",
            lambda c: c.get_token_accounts_by_owner_json_parsed(
                owner, TokenAccountOpts(program_id=program_id), commitment=self.commitment
            ),
        )
        records = []
        for keyed in resp.value:
            record = parse_token_account(str(keyed.pubkey), keyed.account.data.parsed)
            if record is not None:
                records.append(record)
        return records

    async def get_account_lamports(self, addresses: Sequence[str]) -> Dict[str, int]:
        lamports: Dict[str, int] = {}
        for i in range(0, len(addresses), self.balance_batch_size):
            chunk = list(addresses[i:i + self.balance_batch_size])
            pubkeys = [Pubkey.from_string(a) for a in chunk]
            resp = await self._call(
                "getMultipleAccounts",
                lambda c, keys=pubkeys: c.get_multiple_accounts(keys, commitment=self.commitment),
            )
            for address, account in zip(chunk, resp.value):
                if account is not None:
                    lamports[address] = account.lamports
        return lamports

    async def get_account_data(self, address: Pubkey) -> Optional[bytes]:
        resp = await self._call(
            "getAccountInfo",
            lambda c: c.get_account_info(address, commitment=self.commitment),
        )
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def get_latest_blockhash(self) -> Hash:
        resp = await self._call(
            "getLatestBlockhash",
            lambda c: c.get_latest_blockhash(commitment=self.commitment),
        )
        return resp.value.blockhash

    async def get_fee_for_message(self, message: MessageV0) -> Optional[int]:
        resp = await self._call(
            "getFeeForMessage",
            lambda c: c.get_fee_for_message(message, commitment=self.commitment),
        )
        return resp.value

    async def send_transaction(self, tx: VersionedTransaction) -> str:
        opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
        resp = await self._call("sendTransaction", lambda c: c.send_transaction(tx, opts=opts))
        return str(resp.value)

    async def confirm(self, signature: str) -> ConfirmationStatus:
        """Wait for settlement, bounded by solana-py's own confirmation timeout."""
        sig = Signature.from_string(signature)
        try:
            resp = await self._call(
                "confirmTransaction",
                lambda c: c.confirm_transaction(sig, commitment=self.commitment),
            )
        except (UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            Logger.debug(f"[RPC] {signature[:12]}… not confirmed in time: {e}")
            return ConfirmationStatus.UNKNOWN
        return self._interpret(signature, resp.value[0] if resp.value else None)

    async def get_signature_status(self, signature: str) -> ConfirmationStatus:
        """Single direct status read (no waiting)."""
        sig = Signature.from_string(signature)
        resp = await self._call(
            "getSignatureStatuses",
            lambda c: c.get_signature_statuses([sig], search_transaction_history=True),
        )
        return self._interpret(signature, resp.value[0] if resp.value else None)

    @staticmethod
    def _interpret(signature: str, status) -> ConfirmationStatus:
        if status is None:
            return ConfirmationStatus.UNKNOWN
        if status.err is not None:
            Logger.debug(f"[RPC] {signature[:12]}… settled with error: {status.err}")
            return ConfirmationStatus.FAILED
        if status.confirmation_status in (
            TransactionConfirmationStatus.Confirmed,
            TransactionConfirmationStatus.Finalized,
        ):
            return ConfirmationStatus.CONFIRMED
        return ConfirmationStatus.UNKNOWN

    async def get_balance(self, owner: Pubkey) -> int:
        resp = await self._call(
            "getBalance",
            lambda c: c.get_balance(owner, commitment=self.commitment),
        )
        return int(resp.value)

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
