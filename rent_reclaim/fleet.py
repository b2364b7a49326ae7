from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from solders.keypair import Keypair

from rent_reclaim.config import ReclaimConfig
from rent_reclaim.constants import fmt_sol
from rent_reclaim.wallet import WalletProcessor, WalletResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FleetResult:
    wallets: List[WalletResult] = field(default_factory=list)

    @property
    def recovered(self) -> int:
        return sum(w.recovered for w in self.wallets)

    @property
    def reclaimable(self) -> int:
        return sum(w.reclaimable for w in self.wallets)

    @property
    def failed_wallets(self) -> List[WalletResult]:
        return [w for w in self.wallets if w.error is not None]

    @property
    def failed_batches(self) -> int:
        return sum(w.failed_batches for w in self.wallets)


class FleetRunner:
    """Process wallets one after another, pausing a random while after each productive one."""

    def __init__(
        self,
        processor: WalletProcessor,
        config: ReclaimConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.processor = processor
        self.config = config
        self._sleep = sleep
        self._rng = rng or random.Random()

    def run(self, identities: Sequence[Keypair]) -> FleetResult:
        fleet = FleetResult()
        total = len(identities)
        logger.info(f"Found {total} wallet(s)")

        for idx, identity in enumerate(identities, start=1):
            logger.info(f"[{idx}/{total}] wallet {identity.pubkey()}")
            try:
                wallet = self.processor.process(identity)
            except Exception as exc:
                if self.config.fail_fast:
                    raise
                logger.error(f"Wallet {identity.pubkey()} failed, continuing with the next one: {exc}")
                wallet = WalletResult(pubkey=str(identity.pubkey()), error=exc)
            fleet.wallets.append(wallet)

            if wallet.recovered > 0 and idx < total:
                delay = self._rng.randint(self.config.delay_from, self.config.delay_to)
                logger.info(f"Waiting {delay} seconds before the next wallet...")
                self._sleep(delay)

        self._report(fleet)
        return fleet

    def _report(self, fleet: FleetResult) -> None:
        logger.info("=" * 40)
        if self.config.dry_run:
            logger.info(
                f"DRY RUN: {fleet.reclaimable} lamports (~{fmt_sol(fleet.reclaimable)} SOL) "
                f"reclaimable across {len(fleet.wallets)} wallet(s)"
            )
        logger.info(
            f"Total recovered {fleet.recovered} lamports (~{fmt_sol(fleet.recovered)} SOL) "
            f"across {len(fleet.wallets)} wallet(s)"
        )
        if fleet.failed_batches:
            logger.warning(f"{fleet.failed_batches} batch(es) failed after retries")
        for wallet in fleet.failed_wallets:
            logger.warning(f"Wallet {wallet.pubkey} failed: {wallet.error}")
        logger.info("=" * 40)
