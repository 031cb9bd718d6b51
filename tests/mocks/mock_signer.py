"""
Mock Signer
===========
Wallet stand-in that signs with a throwaway keypair and can be told to
decline specific batches (1-based call numbers), like a user rejecting
the wallet prompt.
"""

from typing import Set

from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction


class MockSigner:

    def __init__(self, ledger, keypair: Keypair = None):
        self.ledger = ledger
        self.keypair = keypair or Keypair()
        self.declined: Set[int] = set()
        self.call_count = 0
        self.messages = []

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    async def sign_and_send(self, message: MessageV0) -> str:
        self.call_count += 1
        self.messages.append(message)
        if self.call_count in self.declined:
            raise RuntimeError("User rejected the request")
        tx = VersionedTransaction(message, [self.keypair])
        return await self.ledger.send_transaction(tx)
