"""
Solclaimer Test Mocks
=====================
Reusable mock classes for isolated testing.
"""

from tests.mocks.mock_ledger import MockLedger, RENT_EXEMPT_TOKEN_ACCOUNT
from tests.mocks.mock_signer import MockSigner
from tests.mocks.mock_stats_store import MemoryStatsStore

__all__ = [
    "MockLedger",
    "MockSigner",
    "MemoryStatsStore",
    "RENT_EXEMPT_TOKEN_ACCOUNT",
]
