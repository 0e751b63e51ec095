"""
Treasury — pairs ledger and commission changes with host transfers.

Every method here mutates a *staged draft* of the fund state and performs the
host transfer as its very last step.  If the transfer fails, the method raises
:class:`TransferFailed` and the caller discards the draft, so the committed
state is exactly what it was before the call.  Read-only helpers never touch
state.
"""

import logging
from typing import List, Tuple

from alphafund.core.exceptions import FundClosed, InvalidValuation, TransferFailed
from alphafund.engine.commission import CommissionAccountant
from alphafund.engine.share_ledger import ShareLedger
from alphafund.engine.state import PRICE_SCALE, EventKind, FundState, FundStatus
from alphafund.host import HostLedger, TransferError

logger = logging.getLogger(__name__)


class Treasury:
    """Custody operations for one fund account on the host ledger."""

    def __init__(
        self,
        host: HostLedger,
        ledger: ShareLedger,
        accountant: CommissionAccountant,
    ):
        self._host = host
        self._ledger = ledger
        self._accountant = accountant

    def _transfer(self, source: str, destination: str, amount: int) -> None:
        try:
            self._host.transfer(source, destination, amount)
        except TransferError as exc:
            logger.warning("Transfer %s → %s of %d failed: %s", source, destination, amount, exc)
            raise TransferFailed(f"Host transfer failed: {exc}") from exc

    # ── Commands (draft state only) ──

    def deposit(self, draft: FundState, investor: str, amount: int) -> int:
        """Pull ``amount`` from ``investor`` into the treasury; return shares minted."""
        if draft.status == FundStatus.CLOSED:
            raise FundClosed("Fund is closed and no longer accepts deposits")

        # Settle first so the newcomer never buys into gain that would later
        # be charged commission on their shares.
        self._accountant.settle(draft)
        if draft.total_shares == 0:
            draft.high_water_mark = PRICE_SCALE

        shares = self._ledger.mint(draft, investor, amount)
        self._transfer(investor, draft.fund_account, amount)
        return shares

    def withdraw(self, draft: FundState, investor: str, shares: int) -> int:
        """Redeem ``shares`` at the post-commission price; return the payout sent."""
        self._accountant.settle(draft)
        payout = self._ledger.burn(draft, investor, shares)
        if payout > 0:
            self._transfer(draft.fund_account, investor, payout)
        return payout

    def redeem_all(self, draft: FundState) -> List[Tuple[str, int]]:
        """
        Redeem every investor's whole position in one batch; return the payments.

        Positions are burned in account order at the current price, and the
        last one takes whatever value remains.  The host pays the batch
        all-or-nothing, so a refused payment leaves every position intact.
        """
        self._accountant.settle(draft)
        payments = []
        for account in sorted(draft.investors):
            payout = self._ledger.burn(draft, account, draft.investors[account].share_balance)
            if payout > 0:
                payments.append((account, payout))
        if payments:
            try:
                self._host.transfer_many(draft.fund_account, payments)
            except TransferError as exc:
                logger.warning("Batch of %d redemptions failed: %s", len(payments), exc)
                raise TransferFailed(f"Host batch transfer failed: {exc}") from exc
        return payments

    def pay_commission(self, draft: FundState, manager: str) -> int:
        """Send ``manager`` the commission accrued to them."""
        amount = self._accountant.take_payout(draft, manager)
        self._transfer(draft.fund_account, manager, amount)
        return amount

    def revalue(self, draft: FundState, reporter: str) -> int:
        """
        Mark the fund to the treasury's balance on the host after trading.

        The balance is read from the host, never taken from the caller.

        Accrued commission is carved out first; it is a claim on the treasury
        that trading losses cannot eat into.  Returns the new asset value.
        """
        custodied_balance = self._host.balance_of(draft.fund_account)
        if custodied_balance < draft.accrued_commission:
            raise InvalidValuation(
                f"Balance {custodied_balance} is below accrued commission "
                f"{draft.accrued_commission}"
            )
        value = custodied_balance - draft.accrued_commission
        if draft.total_shares == 0 and value != 0:
            raise InvalidValuation("Cannot assign value to a fund with no shares outstanding")
        if draft.total_shares > 0 and value == 0:
            raise InvalidValuation("Cannot value outstanding shares at zero")

        previous = draft.total_asset_value
        draft.total_asset_value = value
        draft.emit(
            EventKind.REVALUED,
            account=reporter,
            amount=value,
            data={"previous_value": previous, "custodied_balance": custodied_balance},
        )
        return value
