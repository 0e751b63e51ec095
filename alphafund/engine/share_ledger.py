"""
Share ledger — investor positions and value/share conversion.

Conversions always round toward zero, in favour of the fund, so repeated
deposits and withdrawals can never leak value out of the treasury.
"""

import logging

from alphafund.core.exceptions import InsufficientShares, InvalidAmount
from alphafund.engine.state import PRICE_SCALE, EventKind, FundState, Investor

logger = logging.getLogger(__name__)


class ShareLedger:
    """Mints and burns shares against a :class:`FundState`."""

    # ── Queries ──

    @staticmethod
    def balance_of(state: FundState, account: str) -> int:
        investor = state.investors.get(account)
        return investor.share_balance if investor else 0

    @staticmethod
    def share_price(state: FundState) -> int:
        """Asset value per share, scaled by ``PRICE_SCALE``; 1.0 for an empty fund."""
        if state.total_shares == 0:
            return PRICE_SCALE
        return state.total_asset_value * PRICE_SCALE // state.total_shares

    @staticmethod
    def shares_for(state: FundState, amount: int) -> int:
        """Shares a deposit of ``amount`` would mint right now."""
        if state.total_shares == 0:
            return amount
        return amount * state.total_shares // state.total_asset_value

    @staticmethod
    def value_of(state: FundState, shares: int) -> int:
        """Value redeemable for ``shares`` right now."""
        if state.total_shares == 0:
            return 0
        return shares * state.total_asset_value // state.total_shares

    # ── Commands ──

    def mint(self, state: FundState, account: str, amount: int) -> int:
        """
        Credit ``account`` with shares for a deposit of ``amount``.

        An empty fund bootstraps at one share per unit.  A deposit too small
        to buy a single share is rejected rather than silently donated.
        """
        if amount <= 0:
            raise InvalidAmount(f"Deposit amount must be positive (got {amount})")

        shares = self.shares_for(state, amount)
        if shares == 0:
            raise InvalidAmount(
                f"Deposit of {amount} is worth less than one share at the current price"
            )

        investor = state.investors.get(account)
        if investor is None:
            investor = Investor(account=account)
            state.investors[account] = investor
        investor.share_balance += shares
        state.total_shares += shares
        state.total_asset_value += amount

        state.emit(EventKind.DEPOSIT, account=account, amount=amount, shares=shares)
        logger.debug("Minted %d shares to %s for %d", shares, account, amount)
        return shares

    def burn(self, state: FundState, account: str, shares: int) -> int:
        """
        Redeem ``shares`` held by ``account`` and return the payout owed.

        The investor record is removed once its balance reaches zero.  Burning
        the last outstanding share pays out the whole asset value, so the fund
        never keeps value without shares.
        """
        if shares <= 0:
            raise InvalidAmount(f"Share amount must be positive (got {shares})")

        held = self.balance_of(state, account)
        if shares > held:
            raise InsufficientShares(
                f"Account '{account}' holds {held} shares, cannot redeem {shares}"
            )

        payout = self.value_of(state, shares)
        investor = state.investors[account]
        investor.share_balance -= shares
        if investor.share_balance == 0:
            del state.investors[account]
        state.total_shares -= shares
        state.total_asset_value -= payout

        state.emit(EventKind.WITHDRAW, account=account, amount=payout, shares=shares)
        logger.debug("Burned %d shares from %s for %d", shares, account, payout)
        return payout
