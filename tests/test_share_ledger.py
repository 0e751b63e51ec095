"""
Unit tests for ShareLedger.

Tests cover:
- Price and conversion queries on empty and funded states
- Minting at 1:1 bootstrap and at the current price, rounding down
- Burning, record removal and the last-share payout
"""

import pytest

from alphafund.core.exceptions import InsufficientShares, InvalidAmount
from alphafund.engine.share_ledger import ShareLedger
from alphafund.engine.state import PRICE_SCALE, EventKind, Investor

from .conftest import make_state


class TestQueries:
    def test_empty_fund_prices_at_one(self):
        state = make_state()
        assert ShareLedger.share_price(state) == PRICE_SCALE
        assert ShareLedger.value_of(state, 10) == 0

    def test_price_is_value_per_share(self):
        state = make_state(total_shares=1000, total_asset_value=1500)
        assert ShareLedger.share_price(state) == 1_500_000_000

    def test_shares_for_rounds_down(self):
        state = make_state(total_shares=1000, total_asset_value=1500)
        # 100 * 1000 / 1500 = 66.67
        assert ShareLedger.shares_for(state, 100) == 66

    def test_unknown_account_holds_nothing(self):
        assert ShareLedger.balance_of(make_state(), "nobody") == 0


class TestMint:
    def test_bootstrap_mints_one_to_one(self):
        state = make_state()
        shares = ShareLedger().mint(state, "alice", 1000)

        assert shares == 1000
        assert state.total_shares == 1000
        assert state.total_asset_value == 1000
        assert state.investors["alice"].share_balance == 1000

    def test_mint_at_current_price(self):
        state = make_state(total_shares=1000, total_asset_value=2000)
        shares = ShareLedger().mint(state, "bob", 500)

        assert shares == 250
        assert state.total_shares == 1250
        assert state.total_asset_value == 2500

    def test_mint_adds_to_existing_position(self):
        state = make_state()
        ledger = ShareLedger()
        ledger.mint(state, "alice", 100)
        ledger.mint(state, "alice", 50)
        assert state.investors["alice"].share_balance == 150

    def test_mint_emits_deposit_event(self):
        state = make_state()
        ShareLedger().mint(state, "alice", 100)
        event = state.events[-1]
        assert event.kind == EventKind.DEPOSIT
        assert (event.account, event.amount, event.shares) == ("alice", 100, 100)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidAmount):
            ShareLedger().mint(make_state(), "alice", amount)

    def test_amount_worth_less_than_one_share_rejected(self):
        state = make_state(total_shares=10, total_asset_value=1000)
        with pytest.raises(InvalidAmount, match="less than one share"):
            ShareLedger().mint(state, "alice", 99)
        assert state.total_shares == 10
        assert "alice" not in state.investors


class TestBurn:
    def _funded(self):
        state = make_state()
        ledger = ShareLedger()
        ledger.mint(state, "alice", 1000)
        ledger.mint(state, "bob", 500)
        return ledger, state

    def test_partial_burn(self):
        ledger, state = self._funded()
        payout = ledger.burn(state, "alice", 400)

        assert payout == 400
        assert state.investors["alice"].share_balance == 600
        assert state.total_shares == 1100
        assert state.total_asset_value == 1100

    def test_full_burn_removes_record(self):
        ledger, state = self._funded()
        ledger.burn(state, "bob", 500)
        assert "bob" not in state.investors

    def test_last_shares_take_all_value(self):
        state = make_state(total_shares=3, total_asset_value=10)
        state.investors["alice"] = Investor(account="alice", share_balance=3)
        payout = ShareLedger().burn(state, "alice", 3)

        assert payout == 10
        assert state.total_shares == 0
        assert state.total_asset_value == 0

    def test_payout_rounds_down(self):
        state = make_state(total_shares=3, total_asset_value=10)
        state.investors["alice"] = Investor(account="alice", share_balance=3)
        assert ShareLedger().burn(state, "alice", 1) == 3

    def test_insufficient_shares(self):
        ledger, state = self._funded()
        with pytest.raises(InsufficientShares):
            ledger.burn(state, "bob", 501)
        assert state.investors["bob"].share_balance == 500

    def test_unknown_account_has_no_shares(self):
        ledger, state = self._funded()
        with pytest.raises(InsufficientShares):
            ledger.burn(state, "carol", 1)

    @pytest.mark.parametrize("shares", [0, -1])
    def test_non_positive_shares_rejected(self, shares):
        ledger, state = self._funded()
        with pytest.raises(InvalidAmount):
            ledger.burn(state, "alice", shares)

    def test_burn_emits_withdraw_event(self):
        ledger, state = self._funded()
        ledger.burn(state, "alice", 10)
        event = state.events[-1]
        assert event.kind == EventKind.WITHDRAW
        assert (event.account, event.amount, event.shares) == ("alice", 10, 10)
