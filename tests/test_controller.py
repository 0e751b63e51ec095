"""
Tests for FundController composition and queries.

Tests cover:
- Fund creation and its validation
- Value conservation between the engine and the host ledger
- Event stamping and draining
- Read-only queries (positions, summary, roster)
"""

import pytest

from alphafund.core.exceptions import InvalidAmount, NotMember
from alphafund.engine.state import PRICE_SCALE, EventKind, FundStatus

from .conftest import FUND, START, gain, loss, make_controller, make_governance


class TestCreate:
    def test_founders_are_active_members(self, controller):
        members = controller.members()
        assert [m.account for m in members] == ["m1", "m2", "m3", "m4", "m5"]
        assert all(m.active and m.joined_at == START for m in members)

    def test_fresh_fund_is_empty(self, controller):
        summary = controller.summary()
        assert summary.status == FundStatus.OPEN
        assert summary.total_shares == 0
        assert summary.share_price == PRICE_SCALE
        assert summary.high_water_mark == PRICE_SCALE
        assert summary.commission_rate_bps == 1000

    def test_duplicate_founders_collapse(self, host):
        controller = make_controller(host, managers=("m1", "m1", "m2"))
        assert len(controller.members()) == 2

    def test_needs_a_founder(self, host):
        with pytest.raises(NotMember):
            make_controller(host, managers=())

    @pytest.mark.parametrize("rate", [-1, 10_001])
    def test_rate_out_of_range(self, host, rate):
        with pytest.raises(InvalidAmount):
            make_controller(host, commission_rate_bps=rate)


class TestConservation:
    """The treasury's host balance always equals asset value plus accrued commission."""

    def _assert_conserved(self, host, controller):
        assert host.balance_of(FUND) == controller.state.custodied_balance

    def test_through_a_busy_history(self, host, controller):
        controller.join("alice", 1000)
        self._assert_conserved(host, controller)
        controller.deposit("bob", 333)
        self._assert_conserved(host, controller)

        gain(host, controller, 417)
        controller.withdraw("bob", 100)
        self._assert_conserved(host, controller)

        loss(host, controller, 250)
        controller.deposit("carol", 999)
        self._assert_conserved(host, controller)

        gain(host, controller, 1234)
        controller.settle()
        controller.payout_commission("m3")
        self._assert_conserved(host, controller)

        for account in ("alice", "bob", "carol"):
            controller.withdraw(account, controller.share_balance(account))
            self._assert_conserved(host, controller)

        assert controller.total_shares == 0
        assert controller.state.total_asset_value == 0
        assert controller.state.investors == {}

    def test_price_never_falls_without_commission(self, host):
        controller = make_controller(host, commission_rate_bps=0)
        controller.deposit("alice", 1000)
        host.credit(FUND, 7)
        controller.revalue("m1")

        price = controller.share_price
        steps = [("deposit", "bob", 333), ("withdraw", "alice", 17), ("deposit", "carol", 51)]
        steps += [("withdraw", "bob", 100), ("deposit", "alice", 999), ("withdraw", "carol", 3)]
        for op, account, amount in steps:
            getattr(controller, op)(account, amount)
            assert controller.share_price >= price
            price = controller.share_price

    def test_shares_sum_to_total(self, host, controller):
        controller.deposit("alice", 700)
        controller.deposit("bob", 300)
        gain(host, controller, 50)
        controller.deposit("carol", 201)
        controller.withdraw("alice", 123)

        held = sum(i.share_balance for i in controller.state.investors.values())
        assert held == controller.total_shares


class TestEvents:
    def test_events_stamped_with_ledger_time(self, clock, controller):
        clock.advance(42)
        controller.deposit("alice", 100)

        (event,) = controller.drain_events()
        assert event.kind == EventKind.DEPOSIT
        assert event.at == START + 42

    def test_drain_empties_outbox(self, controller):
        controller.deposit("alice", 100)
        assert len(controller.drain_events()) == 1
        assert controller.drain_events() == []

    def test_failed_operation_emits_nothing(self, controller):
        with pytest.raises(InvalidAmount):
            controller.deposit("alice", 0)
        assert controller.drain_events() == []

    def test_withdraw_reports_settlement_then_burn(self, host, controller):
        controller.deposit("alice", 1000)
        gain(host, controller, 100)
        controller.drain_events()

        controller.withdraw("alice", 10)

        kinds = [e.kind for e in controller.drain_events()]
        assert kinds == [EventKind.COMMISSION_ACCRUED, EventKind.WITHDRAW]


class TestQueries:
    def test_redeemable_value_is_post_commission(self, host, controller):
        controller.deposit("alice", 1000)
        gain(host, controller, 200)

        assert controller.redeemable_value("alice") == 1180
        # The preview never touches committed state.
        assert controller.state.accrued_commission == 0
        assert controller.summary().pending_commission == 20

    def test_position_of_unknown_account(self, controller):
        assert controller.share_balance("nobody") == 0
        assert controller.redeemable_value("nobody") == 0

    def test_summary_counts(self, controller):
        controller.deposit("alice", 10)
        controller.deposit("bob", 10)
        summary = controller.summary()
        assert summary.investor_count == 2
        assert summary.active_members == 5

    def test_snapshot_is_detached(self, controller):
        copy = controller.snapshot()
        copy.total_shares = 99
        assert controller.total_shares == 0

    def test_restored_state_keeps_working(self, host, controller):
        controller.deposit("alice", 500)
        restored = type(controller)(host, controller.snapshot(), make_governance())
        assert restored.withdraw("alice", 500) == 500
