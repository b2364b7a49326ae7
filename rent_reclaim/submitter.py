"""Close one batch of token accounts in a single transaction, with bounded retries.

Every attempt fetches a fresh blockhash, builds and signs a v0 transaction
against it and waits for confirmation against that same blockhash. If the
wait itself failed, the next attempt first asks whether that earlier signature
landed before sending a new transaction. When all attempts fail the batch is
abandoned and counts as zero recovered.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from rent_reclaim.constants import CLOSE_ACCOUNT_IX, PACKET_DATA_SIZE, SOLSCAN_TX_URL, fmt_sol
from rent_reclaim.errors import CheckpointExpiredError, TransactionFailedError, TransactionTooLargeError
from rent_reclaim.rpc import Checkpoint, LedgerClient
from rent_reclaim.scanner import Resource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubmissionResult:
    recovered: int
    attempts: int
    signature: Optional[str] = None
    checkpoints: List[Checkpoint] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def confirmed(self) -> bool:
        return self.signature is not None and self.error is None


def build_close_token_account_ix(
    token_program_id: Pubkey,
    token_account: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
) -> Instruction:
    return Instruction(
        program_id=token_program_id,
        accounts=[
            AccountMeta(pubkey=token_account, is_signer=False, is_writable=True),
            AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
            AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
        ],
        data=CLOSE_ACCOUNT_IX,
    )


def build_close_transaction(
    batch: Sequence[Resource],
    identity: Keypair,
    checkpoint: Checkpoint,
) -> VersionedTransaction:
    owner = identity.pubkey()
    ixs = [
        build_close_token_account_ix(r.program_id, r.address, destination=owner, authority=owner)
        for r in batch
    ]
    msg = MessageV0.try_compile(owner, ixs, [], checkpoint.blockhash)
    tx = VersionedTransaction(msg, [identity])
    size = len(bytes(tx))
    if size > PACKET_DATA_SIZE:
        raise TransactionTooLargeError(size, PACKET_DATA_SIZE)
    return tx


class BatchSubmitter:
    def __init__(
        self,
        ledger: LedgerClient,
        *,
        max_attempts: int = 3,
        retry_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be > 0 (got {max_attempts})")
        self.ledger = ledger
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def submit(
        self,
        batch: Sequence[Resource],
        identity: Keypair,
        exemption_lamports: int,
        *,
        label: str = "batch",
    ) -> SubmissionResult:
        """Close every account in `batch` in one transaction.

        Never raises for build, send or confirm failures; those resolve to a
        result with `recovered == 0` once `max_attempts` is exhausted.
        """
        if not batch:
            raise ValueError("Cannot submit an empty batch")

        result = SubmissionResult(recovered=0, attempts=0)
        # Signature whose confirmation outcome is unknown (the wait itself failed).
        in_flight: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            result.attempts = attempt
            sig = None
            try:
                if in_flight is not None and self._landed(in_flight, label):
                    sig = in_flight
                else:
                    in_flight = None
                    checkpoint = self.ledger.get_latest_checkpoint()
                    result.checkpoints.append(checkpoint)
                    tx = build_close_transaction(batch, identity, checkpoint)
                    sig = self.ledger.send_transaction(tx)
                    logger.info(f"{label}: transaction sent: {SOLSCAN_TX_URL.format(sig)}")
                    self.ledger.confirm_transaction(sig, checkpoint)
            except TransactionTooLargeError as exc:
                result.error = exc
                logger.error(f"{label}: {exc}; batch skipped")
                return result
            except Exception as exc:
                result.error = exc
                if sig is not None and not isinstance(exc, (TransactionFailedError, CheckpointExpiredError)):
                    in_flight = sig
                logger.error(f"{label}: attempt {attempt}/{self.max_attempts} failed: {exc}")
                if attempt < self.max_attempts:
                    logger.info(f"{label}: retrying in {self.retry_delay:g} seconds...")
                    self._sleep(self.retry_delay)
                continue

            result.signature = sig
            result.error = None
            result.recovered = exemption_lamports * len(batch)
            logger.info(
                f"{label}: confirmed, recovered {result.recovered} lamports (~{fmt_sol(result.recovered)} SOL)"
            )
            return result

        logger.error(f"{label}: giving up after {self.max_attempts} attempts; batch skipped")
        return result

    def _landed(self, signature: str, label: str) -> bool:
        status = self.ledger.get_signature_status(signature)
        if status is None or status.get("err"):
            return False
        if (status.get("confirmationStatus") or "").lower() in ("confirmed", "finalized"):
            logger.info(f"{label}: earlier transaction {signature} landed; not re-sending")
            return True
        return False
