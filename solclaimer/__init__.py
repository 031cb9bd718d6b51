"""
Solclaimer
==========
Reclaims rent from empty Solana token accounts: scan, estimate, close in
batches, and record net reclaimed SOL per wallet.
"""

__version__ = "1.0.0"
