"""
Transaction Signer & Submitter
==============================
Signing capability for prepared close batches.

Architecture:
    BatchBuilder.finalize() → unsigned MessageV0
                               ↓
    TransactionSigner.sign_and_send()
                               ↓
    Signed VersionedTransaction → RPC → signature string
"""

from typing import Optional, Protocol

from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from config.settings import Settings
from solclaimer.modules.reclaimer.errors import SigningUnavailable
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc
from solclaimer.shared.system.logging import Logger


class TransactionSigner(Protocol):
    """Signs a prepared message and submits it, returning the signature."""

    @property
    def pubkey(self) -> Pubkey: ...

    async def sign_and_send(self, message: MessageV0) -> str: ...


class KeypairSigner:
    """
    Local-keypair signer.

    Usage:
        signer = KeypairSigner.from_env(ledger)
        sig = await signer.sign_and_send(batch.message)
    """

    def __init__(self, keypair: Keypair, ledger: LedgerRpc):
        self._keypair = keypair
        self.ledger = ledger
        self._tx_count = 0
        Logger.debug(f"[SUBMIT] Signer ready for {str(keypair.pubkey())[:8]}…")

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    @classmethod
    def from_env(cls, ledger: LedgerRpc, private_key: Optional[str] = None) -> "KeypairSigner":
        key = private_key or Settings.SOLANA_PRIVATE_KEY
        if not key:
            raise SigningUnavailable("SOLANA_PRIVATE_KEY is not set")
        try:
            keypair = Keypair.from_base58_string(key)
        except ValueError as e:
            raise SigningUnavailable(f"Invalid SOLANA_PRIVATE_KEY: {e}") from e
        return cls(keypair, ledger)

    async def sign_and_send(self, message: MessageV0) -> str:
        if message.account_keys[0] != self.pubkey:
            raise SigningUnavailable(
                f"Message fee payer {message.account_keys[0]} is not the signer {self.pubkey}"
            )
        tx = VersionedTransaction(message, [self._keypair])
        signature = await self.ledger.send_transaction(tx)
        self._tx_count += 1
        return signature
