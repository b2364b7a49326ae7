from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from solders.keypair import Keypair

from rent_reclaim.batching import partition
from rent_reclaim.config import ReclaimConfig
from rent_reclaim.constants import TOKEN_ACCOUNT_SIZE, fmt_sol
from rent_reclaim.rpc import LedgerClient
from rent_reclaim.scanner import ResourceScanner
from rent_reclaim.submitter import BatchSubmitter, SubmissionResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WalletResult:
    pubkey: str
    eligible: int = 0
    exemption_lamports: int = 0
    batches: List[SubmissionResult] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def recovered(self) -> int:
        return sum(b.recovered for b in self.batches)

    @property
    def reclaimable(self) -> int:
        return self.exemption_lamports * self.eligible

    @property
    def failed_batches(self) -> int:
        return sum(1 for b in self.batches if not b.confirmed)


class WalletProcessor:
    """Scan one wallet, batch its empty token accounts and close them in order."""

    def __init__(
        self,
        ledger: LedgerClient,
        config: ReclaimConfig,
        *,
        scanner: Optional[ResourceScanner] = None,
        submitter: Optional[BatchSubmitter] = None,
    ) -> None:
        self.ledger = ledger
        self.config = config
        self.scanner = scanner or ResourceScanner(ledger)
        self.submitter = submitter or BatchSubmitter(
            ledger,
            max_attempts=config.max_attempts,
            retry_delay=config.retry_delay,
        )

    def process(self, identity: Keypair) -> WalletResult:
        pubkey = str(identity.pubkey())
        logger.info(f"Processing wallet {pubkey}")
        result = WalletResult(pubkey=pubkey)

        resources = self.scanner.scan(identity)
        result.eligible = len(resources)
        if not resources:
            logger.info(f"{pubkey}: no empty token accounts to close")
            return result

        result.exemption_lamports = self.ledger.get_minimum_balance_for_rent_exemption(TOKEN_ACCOUNT_SIZE)

        batches = partition(resources, self.config.batch_size)
        logger.info(
            f"{pubkey}: {len(resources)} accounts split into {len(batches)} batch(es) "
            f"of at most {self.config.batch_size}"
        )

        if self.config.dry_run:
            for idx, batch in enumerate(batches, start=1):
                logger.info(f"{pubkey}: DRY RUN batch {idx}/{len(batches)} would close {len(batch)} accounts")
            logger.info(
                f"{pubkey}: DRY RUN reclaimable {result.reclaimable} lamports (~{fmt_sol(result.reclaimable)} SOL)"
            )
            return result

        for idx, batch in enumerate(batches, start=1):
            label = f"{pubkey} batch {idx}/{len(batches)}"
            logger.info(f"{label}: closing {len(batch)} accounts")
            result.batches.append(
                self.submitter.submit(batch, identity, result.exemption_lamports, label=label)
            )

        logger.info(
            f"Wallet {pubkey} recovered {result.recovered} lamports (~{fmt_sol(result.recovered)} SOL)"
            + (f", {result.failed_batches} batch(es) failed" if result.failed_batches else "")
        )
        return result
