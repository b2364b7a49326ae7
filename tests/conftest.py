from collections import deque
from typing import Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from rent_reclaim.config import ReclaimConfig
from rent_reclaim.errors import RpcError
from rent_reclaim.rpc import Checkpoint

RENT_EXEMPTION = 2_039_280

ENV_VARS = (
    "RPC_URL",
    "SOLANA_URL",
    "BATCH_SIZE",
    "DELAY_FROM",
    "DELAY_TO",
    "MAX_ATTEMPTS",
    "RETRY_DELAY",
    "KEYS_FILE",
    "CONFIRM_POLL_INTERVAL",
    "LOG_FILE",
)


def token_account_entry(
    address: Pubkey,
    owner: Pubkey,
    amount: str = "0",
    *,
    state: str = "initialized",
    close_authority: Optional[Pubkey] = None,
    lamports: int = RENT_EXEMPTION,
) -> dict:
    info = {
        "isNative": False,
        "mint": str(Keypair().pubkey()),
        "owner": str(owner),
        "state": state,
        "tokenAmount": {"amount": amount, "decimals": 6, "uiAmount": 0.0 if amount == "0" else 1.0, "uiAmountString": amount},
    }
    if close_authority is not None:
        info["closeAuthority"] = str(close_authority)
    return {
        "pubkey": str(address),
        "account": {
            "data": {"parsed": {"info": info, "type": "account"}, "program": "spl-token", "space": 165},
            "executable": False,
            "lamports": lamports,
            "owner": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
            "rentEpoch": 18446744073709551615,
        },
    }


class FakeLedger:
    """In-memory ledger with scriptable send/confirm failures.

    `send_outcomes` and `confirm_outcomes` are consumed one entry per call;
    an Exception entry is raised, None means success. When a queue is empty
    the call succeeds. `statuses` maps signatures to getSignatureStatuses
    values; unknown signatures report None.
    """

    def __init__(self, exemption: int = RENT_EXEMPTION) -> None:
        self.exemption = exemption
        self.accounts: Dict[str, List[dict]] = {}
        self.scan_errors: Dict[str, Exception] = {}
        self.send_outcomes = deque()
        self.confirm_outcomes = deque()
        self.checkpoint_outcomes = deque()
        self.scans: List[str] = []
        self.exemption_queries: List[int] = []
        self.checkpoints: List[Checkpoint] = []
        self.sent = []
        self.confirmations = []
        self.statuses: Dict[str, dict] = {}
        self.status_checks: List[str] = []
        self.block_height = 1_000

    def add_empty_accounts(self, owner: Keypair, count: int) -> List[Pubkey]:
        addresses = [Keypair().pubkey() for _ in range(count)]
        entries = self.accounts.setdefault(str(owner.pubkey()), [])
        entries.extend(token_account_entry(a, owner.pubkey()) for a in addresses)
        return addresses

    def get_token_accounts_by_owner(self, owner, program_id=None):
        self.scans.append(str(owner))
        if str(owner) in self.scan_errors:
            raise self.scan_errors[str(owner)]
        return list(self.accounts.get(str(owner), []))

    def get_minimum_balance_for_rent_exemption(self, data_len):
        self.exemption_queries.append(data_len)
        return self.exemption

    def get_latest_checkpoint(self):
        outcome = self.checkpoint_outcomes.popleft() if self.checkpoint_outcomes else None
        if outcome is not None:
            raise outcome
        n = len(self.checkpoints) + 1
        checkpoint = Checkpoint(blockhash=Hash(bytes([n % 256]) * 32), last_valid_block_height=self.block_height + 150)
        self.checkpoints.append(checkpoint)
        return checkpoint

    def send_transaction(self, tx):
        self.sent.append(tx)
        outcome = self.send_outcomes.popleft() if self.send_outcomes else None
        if outcome is not None:
            raise outcome
        return str(tx.signatures[0])

    def get_signature_status(self, signature):
        self.status_checks.append(signature)
        return self.statuses.get(signature)

    def confirm_transaction(self, signature, checkpoint):
        self.confirmations.append((signature, checkpoint))
        outcome = self.confirm_outcomes.popleft() if self.confirm_outcomes else None
        if outcome is not None:
            raise outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def config():
    return ReclaimConfig(rpc_url="http://localhost:8899", batch_size=20, delay_from=20, delay_to=180)


@pytest.fixture
def rpc_failure():
    return RpcError("RPC error on sendTransaction: {'code': -32002, 'message': 'Blockhash not found'}")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
