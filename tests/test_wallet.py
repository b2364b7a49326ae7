import pytest

from conftest import RENT_EXEMPTION
from rent_reclaim.config import ReclaimConfig
from rent_reclaim.constants import TOKEN_ACCOUNT_SIZE
from rent_reclaim.errors import RpcError
from rent_reclaim.submitter import BatchSubmitter
from rent_reclaim.wallet import WalletProcessor


class SpySubmitter(BatchSubmitter):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.batches = []

    def submit(self, batch, identity, exemption_lamports, *, label="batch"):
        self.batches.append(batch)
        return super().submit(batch, identity, exemption_lamports, label=label)


@pytest.fixture
def spy(ledger, sleeper):
    return SpySubmitter(ledger, max_attempts=3, retry_delay=5.0, sleep=sleeper)


def test_wallet_without_empty_accounts_returns_zero(ledger, config, spy, wallet):
    result = WalletProcessor(ledger, config, submitter=spy).process(wallet)

    assert result.recovered == 0
    assert result.eligible == 0
    assert ledger.scans == [str(wallet.pubkey())]
    assert spy.batches == []
    assert ledger.exemption_queries == []


def test_45_accounts_are_closed_in_three_batches(ledger, config, spy, wallet):
    addresses = ledger.add_empty_accounts(wallet, 45)

    result = WalletProcessor(ledger, config, submitter=spy).process(wallet)

    assert [len(b) for b in spy.batches] == [20, 20, 5]
    assert [r.address for b in spy.batches for r in b] == addresses
    assert result.recovered == RENT_EXEMPTION * 45
    assert result.failed_batches == 0
    assert ledger.exemption_queries == [TOKEN_ACCOUNT_SIZE]
    assert len(ledger.sent) == 3


def test_failed_batch_contributes_nothing_and_others_still_run(ledger, config, spy, sleeper, wallet, rpc_failure):
    ledger.add_empty_accounts(wallet, 45)
    # batch 1 confirms, batch 2 fails all three attempts, batch 3 confirms
    ledger.send_outcomes.extend([None, rpc_failure, rpc_failure, rpc_failure, None])

    result = WalletProcessor(ledger, config, submitter=spy).process(wallet)

    assert [b.recovered for b in result.batches] == [RENT_EXEMPTION * 20, 0, RENT_EXEMPTION * 5]
    assert [b.attempts for b in result.batches] == [1, 3, 1]
    assert result.recovered == RENT_EXEMPTION * 25
    assert result.failed_batches == 1
    assert sleeper.calls == [5.0, 5.0]


def test_recovered_is_threshold_times_confirmed_accounts(ledger, spy, wallet, rpc_failure):
    config = ReclaimConfig(rpc_url="http://localhost:8899", batch_size=3)
    ledger.add_empty_accounts(wallet, 10)
    ledger.send_outcomes.extend([rpc_failure] * 3)

    result = WalletProcessor(ledger, config, submitter=spy).process(wallet)

    confirmed = sum(len(batch) for batch, res in zip(spy.batches, result.batches) if res.confirmed)
    assert confirmed == 7
    assert result.recovered == RENT_EXEMPTION * confirmed


def test_scan_errors_propagate(ledger, config, spy, wallet):
    ledger.scan_errors[str(wallet.pubkey())] = RpcError("boom")
    with pytest.raises(RpcError):
        WalletProcessor(ledger, config, submitter=spy).process(wallet)
    assert spy.batches == []


def test_dry_run_reports_without_sending(ledger, spy, wallet):
    config = ReclaimConfig(rpc_url="http://localhost:8899", dry_run=True)
    ledger.add_empty_accounts(wallet, 21)

    result = WalletProcessor(ledger, config, submitter=spy).process(wallet)

    assert result.recovered == 0
    assert result.reclaimable == RENT_EXEMPTION * 21
    assert spy.batches == []
    assert ledger.sent == []


def test_default_submitter_follows_config(ledger):
    config = ReclaimConfig(rpc_url="http://localhost:8899", max_attempts=4, retry_delay=1.5)
    processor = WalletProcessor(ledger, config)
    assert processor.submitter.max_attempts == 4
    assert processor.submitter.retry_delay == 1.5
