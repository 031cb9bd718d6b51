"""
Reclaimer Module
================
Empty token-account rent reclamation for Solana.

Components:
- scanner.py: empty sub-account discovery across both token programs
- fee_estimator.py: dry-run fee quotes per batch
- batch_builder.py: close instructions grouped into ≤20-instruction batches
- submitter.py: sequential submission and confirmation
- accountant.py: before/after balance accounting and stats persistence
- metadata.py: best-effort token name/symbol/image enrichment
- engine.py: pipeline facade
- cli.py: command-line interface
"""

from solclaimer.modules.reclaimer.config import ReclaimerConfig

__all__ = [
    'ReclaimerConfig',
]
