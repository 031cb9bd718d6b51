"""
Reclaimer Error Taxonomy
========================
Only ScanFailure, SnapshotFailure, SigningUnavailable and OperationInProgress
escape the engine. The others are contained to one unit of work (one variant query,
one batch, one metadata lookup, one stats write) and end up in the
operation log and report.
"""


class ReclaimerError(Exception):
    """Base class for reclamation errors."""


class ScanFailure(ReclaimerError):
    """Primary token-program query failed; the scan is aborted."""


class EstimationFailure(ReclaimerError):
    """Fee quotation failed for one batch; replaced by the fallback fee."""


class BatchSubmissionFailure(ReclaimerError):
    """One batch was rejected or never confirmed."""

    def __init__(self, batch_number: int, reason: str):
        super().__init__(f"batch {batch_number}: {reason}")
        self.batch_number = batch_number
        self.reason = reason


class AccountingPersistFailure(ReclaimerError):
    """Stats write failed after the on-ledger closures already happened."""


class MetadataFailure(ReclaimerError):
    """Display metadata lookup failed for one mint."""


class SnapshotFailure(ReclaimerError):
    """
    Owner balance could not be read for the before/after snapshot.
    When the after snapshot fails the closures are already final, so
    `report` carries the execution outcome, signatures and log.
    """

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class SigningUnavailable(ReclaimerError):
    """No usable signer is configured for the owner."""


class OperationInProgress(ReclaimerError):
    """A reclamation for this owner is already running."""
