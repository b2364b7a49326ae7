"""Ledger RPC collaborator: a thin JSON-RPC client over urllib."""

from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Callable, List, Optional

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from rent_reclaim.constants import DEFAULT_COMMITMENT, TOKEN_PROGRAM_ID
from rent_reclaim.errors import CheckpointExpiredError, RpcError, TransactionFailedError

logger = logging.getLogger(__name__)

_COMMITMENT_LEVELS = ["processed", "confirmed", "finalized"]


def rpc_call(rpc_url: str, method: str, params: list, *, max_retries: int = 5, timeout: float = 30) -> dict:
    """Raw JSON-RPC helper. Backs off on HTTP 429 only; every other failure raises."""
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(rpc_url, data=data, headers={"Content-Type": "application/json"})

    for attempt in range(1, max_retries + 1):
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                out = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code == 429 and attempt < max_retries:
                wait = min(2 * attempt, 10)
                logger.warning(f"RPC rate limited on {method}; backing off {wait}s ({attempt}/{max_retries})")
                time.sleep(wait)
                continue
            try:
                body = e.read().decode("utf-8", errors="replace")
            except OSError:
                body = ""
            raise RpcError(f"RPC HTTPError {e.code} {e.reason} on {method}: {body}") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise RpcError(f"RPC call {method} failed: {e}") from e

        if "error" in out:
            raise RpcError(f"RPC error on {method}: {out['error']}")
        return out

    raise RpcError(f"RPC call {method} still rate limited after {max_retries} attempts")


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """A recent blockhash and the last block height at which it is still valid."""

    blockhash: Hash
    last_valid_block_height: int


class LedgerClient:
    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = DEFAULT_COMMITMENT,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.poll_interval = poll_interval
        self._sleep = sleep

    def _call(self, method: str, params: list) -> dict:
        return rpc_call(self.rpc_url, method, params)

    def get_token_accounts_by_owner(self, owner: Pubkey, program_id: Pubkey = TOKEN_PROGRAM_ID) -> List[dict]:
        resp = self._call(
            "getTokenAccountsByOwner",
            [
                str(owner),
                {"programId": str(program_id)},
                {"encoding": "jsonParsed", "commitment": self.commitment},
            ],
        )
        value = (resp.get("result") or {}).get("value")
        if not isinstance(value, list):
            raise RpcError(f"getTokenAccountsByOwner returned no account list: {resp}")
        return value

    def get_minimum_balance_for_rent_exemption(self, data_len: int) -> int:
        resp = self._call("getMinimumBalanceForRentExemption", [int(data_len)])
        result = resp.get("result")
        if not isinstance(result, int):
            raise RpcError(f"getMinimumBalanceForRentExemption failed: {resp}")
        return result

    def get_latest_checkpoint(self) -> Checkpoint:
        resp = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = (resp.get("result") or {}).get("value") or {}
        bh = value.get("blockhash")
        height = value.get("lastValidBlockHeight")
        if not bh or height is None:
            raise RpcError(f"getLatestBlockhash failed: {resp}")
        return Checkpoint(blockhash=Hash.from_string(str(bh)), last_valid_block_height=int(height))

    def get_block_height(self) -> int:
        resp = self._call("getBlockHeight", [{"commitment": self.commitment}])
        result = resp.get("result")
        if not isinstance(result, int):
            raise RpcError(f"getBlockHeight failed: {resp}")
        return result

    def send_transaction(self, tx: VersionedTransaction) -> str:
        tx_b64 = base64.b64encode(bytes(tx)).decode("utf-8")
        resp = self._call(
            "sendTransaction",
            [tx_b64, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        sig = resp.get("result")
        if not sig:
            raise RpcError(f"sendTransaction returned no signature: {resp}")
        return str(sig)

    def get_signature_status(self, signature: str) -> Optional[dict]:
        resp = self._call("getSignatureStatuses", [[signature], {"searchTransactionHistory": False}])
        return ((resp.get("result") or {}).get("value") or [None])[0]

    def confirm_transaction(self, signature: str, checkpoint: Checkpoint) -> None:
        """Block until `signature` reaches the configured commitment.

        The wait is bounded by `checkpoint`: once the cluster's block height
        passes its last valid height the transaction can no longer land, and
        CheckpointExpiredError is raised. A transaction error raises
        TransactionFailedError.
        """
        wanted = _COMMITMENT_LEVELS[_COMMITMENT_LEVELS.index(self.commitment):]

        while True:
            if self._reached(signature, wanted):
                return
            height = self.get_block_height()
            if height > checkpoint.last_valid_block_height:
                # It may have landed between the status check and the height check.
                if self._reached(signature, wanted):
                    return
                raise CheckpointExpiredError(signature, checkpoint.last_valid_block_height, height)
            self._sleep(self.poll_interval)

    def _reached(self, signature: str, wanted: List[str]) -> bool:
        status = self.get_signature_status(signature)
        if status is None:
            return False
        if status.get("err"):
            raise TransactionFailedError(signature, status["err"])
        return (status.get("confirmationStatus") or "").lower() in wanted
