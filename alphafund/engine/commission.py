"""
Commission accountant — high-water-mark performance fees.

Managers earn ``commission_rate_bps`` of the *new* gain above the high-water
mark and nothing on a recovery of earlier losses.  Settlement moves the fee
out of ``total_asset_value`` into ``accrued_commission`` and splits it
equally between the managers active at that moment; nothing leaves the
treasury until :meth:`CommissionAccountant.take_payout` is paired with a host
transfer by the treasury.
"""

import logging
from typing import Dict, NamedTuple

from alphafund.core.exceptions import NothingToPay, NotMember
from alphafund.engine.state import BPS_DENOMINATOR, PRICE_SCALE, EventKind, FundState

logger = logging.getLogger(__name__)


class Settlement(NamedTuple):
    accrued: int
    high_water_mark: int


class CommissionAccountant:
    """Computes and realizes commission on a :class:`FundState`."""

    @staticmethod
    def pending(state: FundState) -> Settlement:
        """What :meth:`settle` would accrue right now, without changing anything."""
        if state.total_shares == 0:
            return Settlement(0, state.high_water_mark)

        baseline = state.high_water_mark * state.total_shares // PRICE_SCALE
        gain = state.total_asset_value - baseline
        if gain <= 0:
            return Settlement(0, state.high_water_mark)

        commission = gain * state.commission_rate_bps // BPS_DENOMINATOR
        price_after = (state.total_asset_value - commission) * PRICE_SCALE // state.total_shares
        return Settlement(commission, max(state.high_water_mark, price_after))

    @staticmethod
    def allocate(state: FundState, amount: int) -> Dict[str, int]:
        """
        Split ``amount`` equally between active managers.

        The indivisible remainder goes one unit each to the first managers in
        account order, so the split is deterministic and sums to ``amount``.
        """
        active = sorted(m.account for m in state.members.values() if m.active)
        if not active:
            return {}
        share, remainder = divmod(amount, len(active))
        allocation = {}
        for index, account in enumerate(active):
            portion = share + (1 if index < remainder else 0)
            if portion:
                allocation[account] = portion
        return allocation

    def settle(self, state: FundState) -> Settlement:
        """
        Realize commission on gains above the high-water mark.

        Safe to call at any time: with no new gain it changes nothing.
        The mark only moves up, so the same price increase is never counted
        twice.
        """
        result = self.pending(state)
        if result.high_water_mark == state.high_water_mark and result.accrued == 0:
            return result

        allocation = self.allocate(state, result.accrued)
        for account, portion in allocation.items():
            state.members[account].accrued_commission += portion

        state.total_asset_value -= result.accrued
        state.accrued_commission += result.accrued
        previous = state.high_water_mark
        state.high_water_mark = result.high_water_mark

        state.emit(
            EventKind.COMMISSION_ACCRUED,
            amount=result.accrued,
            data={
                "previous_hwm": previous,
                "high_water_mark": result.high_water_mark,
                "allocation": allocation,
            },
        )
        logger.info(
            "Settled commission: accrued=%d total_accrued=%d hwm=%d→%d split=%s",
            result.accrued,
            state.accrued_commission,
            previous,
            result.high_water_mark,
            allocation,
        )
        return result

    @staticmethod
    def take_payout(state: FundState, manager: str) -> int:
        """Zero ``manager``'s accrual and return the amount the treasury must transfer."""
        member = state.members.get(manager)
        if member is None:
            raise NotMember(f"Account '{manager}' has never been a manager")
        amount = member.accrued_commission
        if amount <= 0:
            raise NothingToPay(f"No accrued commission owed to '{manager}'")
        member.accrued_commission = 0
        state.accrued_commission -= amount
        state.emit(EventKind.COMMISSION_PAID, account=manager, amount=amount)
        return amount
