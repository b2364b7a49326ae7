"""Reclaim rent from empty SPL token accounts across a fleet of wallets."""

from rent_reclaim.batching import partition
from rent_reclaim.config import ReclaimConfig
from rent_reclaim.fleet import FleetResult, FleetRunner
from rent_reclaim.rpc import Checkpoint, LedgerClient
from rent_reclaim.scanner import Resource, ResourceScanner
from rent_reclaim.submitter import BatchSubmitter, SubmissionResult
from rent_reclaim.wallet import WalletProcessor, WalletResult

__version__ = "0.1.0"

__all__ = [
    "BatchSubmitter",
    "Checkpoint",
    "FleetResult",
    "FleetRunner",
    "LedgerClient",
    "ReclaimConfig",
    "Resource",
    "ResourceScanner",
    "SubmissionResult",
    "WalletProcessor",
    "WalletResult",
    "partition",
]
