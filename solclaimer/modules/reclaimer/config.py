"""
Reclaimer Configuration
=======================
Configuration dataclass with batching limits, fee fallbacks and the
settle/confirm retry policies.
"""

from dataclasses import dataclass, field

from config.settings import Settings
from solclaimer.shared.system.retry import RetryPolicy


@dataclass
class ReclaimerConfig:
    """Configuration for rent reclamation operations."""

    # Batching
    MAX_IX_PER_TX: int = 20  # Close instructions per transaction (hard ceiling)
    BALANCE_BATCH_SIZE: int = 100  # Addresses per getMultipleAccounts call

    # Fees
    FALLBACK_FEE_LAMPORTS: int = 5_000  # Per batch, when a quote fails

    # RPC
    COMMITMENT: str = "confirmed"

    # Metadata enrichment
    METADATA_CONCURRENCY: int = 6
    METADATA_TIMEOUT_S: float = 7.0
    IPFS_GATEWAY: str = Settings.IPFS_GATEWAY

    # Audit links
    EXPLORER_TX_URL: str = Settings.EXPLORER_TX_URL

    # Eventual-consistency absorption (3 re-reads × 400ms)
    confirm_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, delay_s=0.4))
    balance_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, delay_s=0.4))

    def explorer_link(self, signature: str) -> str:
        return f"{self.EXPLORER_TX_URL}{signature}"

    @classmethod
    def for_tests(cls) -> "ReclaimerConfig":
        """Zero-delay retry policies."""
        return cls(
            confirm_retry=RetryPolicy.immediate(),
            balance_retry=RetryPolicy.immediate(),
        )
