"""
Tests for InMemoryHostLedger.

Tests cover:
- Only the custodian's balance is enforced
- Batched transfers land all-or-nothing
- The clock never moves backwards
"""

import pytest

from alphafund.host import InMemoryHostLedger, ManualClock, TransferError

from .conftest import FUND


class TestTransfer:
    def test_outside_wallet_is_never_debited(self, host):
        host.transfer("alice", FUND, 1000)
        assert host.balance_of("alice") == 0
        assert host.balance_of(FUND) == 1000

    def test_custodian_cannot_overdraw(self, host):
        host.credit(FUND, 50)
        with pytest.raises(TransferError):
            host.transfer(FUND, "alice", 51)
        assert host.balance_of(FUND) == 50

    def test_without_custodian_every_debit_is_checked(self):
        host = InMemoryHostLedger()
        with pytest.raises(TransferError):
            host.transfer("alice", "bob", 1)

    def test_rejects_non_positive_amount(self, host):
        with pytest.raises(TransferError):
            host.transfer("alice", FUND, 0)


class TestTransferMany:
    def test_pays_every_destination(self, host):
        host.credit(FUND, 100)
        host.transfer_many(FUND, [("alice", 60), ("bob", 40)])
        assert host.balance_of("alice") == 60
        assert host.balance_of("bob") == 40
        assert host.balance_of(FUND) == 0

    def test_short_batch_pays_no_one(self, host):
        host.credit(FUND, 100)
        with pytest.raises(TransferError):
            host.transfer_many(FUND, [("alice", 60), ("bob", 41)])
        assert host.balance_of("alice") == 0
        assert host.balance_of(FUND) == 100

    def test_one_bad_amount_pays_no_one(self, host):
        host.credit(FUND, 100)
        with pytest.raises(TransferError):
            host.transfer_many(FUND, [("alice", 60), ("bob", 0)])
        assert host.balance_of("alice") == 0

    def test_refused_batch(self, host):
        host.credit(FUND, 100)
        host.fail_transfers = True
        with pytest.raises(TransferError):
            host.transfer_many(FUND, [("alice", 10)])
        assert host.balance_of(FUND) == 100


def test_clock_is_monotonic():
    clock = ManualClock(100)
    host = InMemoryHostLedger(clock=clock)
    assert host.now() == 100
    clock.value = 50
    assert host.now() == 100
    clock.advance(80)
    assert host.now() == 130
