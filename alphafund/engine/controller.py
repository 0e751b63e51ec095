"""
Fund controller — the composition root of the engine.

Wires :class:`ShareLedger`, :class:`CommissionAccountant`, :class:`Treasury`
and :class:`GovernanceGate` around a single owned :class:`FundState` and
exposes the public operation set.

Every mutating operation runs inside :meth:`FundController._transaction`:
the body works on a deep copy of the state, and the copy replaces the
committed state only if the body returns normally.  Any error, whether a
business rule rejection or a failed host transfer, leaves the committed state
untouched.  Calls are expected to be serialised by the caller (the host
ledger, or :class:`~alphafund.services.fund_service.FundService`).
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Mapping, Optional

from pydantic import BaseModel

from alphafund.core.exceptions import InvalidAmount, NotMember
from alphafund.engine.commission import CommissionAccountant
from alphafund.engine.governance import GovernanceConfig, GovernanceGate
from alphafund.engine.share_ledger import ShareLedger
from alphafund.engine.state import (
    BPS_DENOMINATOR,
    FundEvent,
    FundState,
    FundStatus,
    Manager,
    Proposal,
    ProposalKind,
    ProposalStatus,
)
from alphafund.engine.treasury import Treasury
from alphafund.host import HostLedger

logger = logging.getLogger(__name__)


class ExecutionResult(BaseModel):
    proposal_id: int
    kind: ProposalKind
    effect: str


class FundSummary(BaseModel):
    fund_account: str
    status: FundStatus
    total_shares: int
    total_asset_value: int
    share_price: int
    high_water_mark: int
    commission_rate_bps: int
    accrued_commission: int
    pending_commission: int
    investor_count: int
    active_members: int


class FundController:
    """Public operation surface of one fund."""

    def __init__(self, host: HostLedger, state: FundState, governance: GovernanceConfig):
        self._host = host
        self._state = state
        self.ledger = ShareLedger()
        self.accountant = CommissionAccountant()
        self.treasury = Treasury(host, self.ledger, self.accountant)
        self.gate = GovernanceGate(governance)

    @classmethod
    def create(
        cls,
        host: HostLedger,
        *,
        fund_account: str,
        founding_managers: Iterable[str],
        commission_rate_bps: int,
        governance: GovernanceConfig,
    ) -> "FundController":
        """Start a fresh, empty fund governed by ``founding_managers``."""
        if not 0 <= commission_rate_bps <= BPS_DENOMINATOR:
            raise InvalidAmount(
                f"commission_rate_bps must be between 0 and 10000 (got {commission_rate_bps})"
            )
        state = FundState(fund_account=fund_account, commission_rate_bps=commission_rate_bps)
        now = host.now()
        for account in founding_managers:
            GovernanceGate.admit(state, account, now)
        if not state.members:
            raise NotMember("A fund needs at least one founding manager")
        logger.info(
            "Created fund %s with %d founding managers at %d bps",
            fund_account,
            len(state.members),
            commission_rate_bps,
        )
        return cls(host, state, governance)

    @property
    def state(self) -> FundState:
        """The committed state.  Treat as read-only; use :meth:`snapshot` to keep it."""
        return self._state

    def snapshot(self) -> FundState:
        return self._state.model_copy(deep=True)

    @contextmanager
    def _transaction(self) -> Iterator[FundState]:
        draft = self._state.model_copy(deep=True)
        pending = len(draft.events)
        yield draft
        now = self._host.now()
        for event in draft.events[pending:]:
            event.at = now
        self._state = draft

    def drain_events(self) -> List[FundEvent]:
        """Hand over committed events not yet taken, oldest first."""
        events, self._state.events = self._state.events, []
        return events

    # ── Treasury operations ──

    def deposit(self, investor: str, amount: int) -> int:
        with self._transaction() as draft:
            shares = self.treasury.deposit(draft, investor, amount)
        logger.info("Deposit: %s paid %d for %d shares", investor, amount, shares)
        return shares

    join = deposit

    def withdraw(self, investor: str, shares: int) -> int:
        with self._transaction() as draft:
            payout = self.treasury.withdraw(draft, investor, shares)
        logger.info("Withdraw: %s redeemed %d shares for %d", investor, shares, payout)
        return payout

    def settle(self) -> int:
        """Permissionless settlement; returns the resulting high-water mark."""
        with self._transaction() as draft:
            result = self.accountant.settle(draft)
        return result.high_water_mark

    def payout_commission(self, manager: str) -> int:
        """Pay ``manager`` their own accrual; removed managers can still claim theirs."""
        with self._transaction() as draft:
            amount = self.treasury.pay_commission(draft, manager)
        logger.info("Commission payout: %d to %s", amount, manager)
        return amount

    def revalue(self, reporter: str) -> int:
        """Mark the fund to the treasury's host balance, on an active manager's request."""
        with self._transaction() as draft:
            self.gate.require_member(draft, reporter)
            value = self.treasury.revalue(draft, reporter)
        logger.info("Revalued by %s: asset value now %d", reporter, value)
        return value

    # ── Governance operations ──

    def propose(
        self, proposer: str, kind: ProposalKind, payload: Optional[Mapping[str, Any]] = None
    ) -> int:
        with self._transaction() as draft:
            proposal = self.gate.propose(draft, proposer, kind, payload, self._host.now())
        logger.info("Proposal %d (%s) opened by %s", proposal.id, kind.value, proposer)
        return proposal.id

    def vote(self, voter: str, proposal_id: int, support: bool) -> ProposalStatus:
        with self._transaction() as draft:
            status = self.gate.vote(draft, voter, proposal_id, support, self._host.now())
        return status

    def execute(self, proposal_id: int) -> ExecutionResult:
        """Apply a passed proposal exactly once."""
        with self._transaction() as draft:
            now = self._host.now()
            proposal = self.gate.claim_for_execution(draft, proposal_id, now)
            effect = self._apply(draft, proposal, now)
            self.gate.mark_executed(draft, proposal, now, effect)
        logger.info("Proposal %d executed: %s", proposal_id, effect)
        return ExecutionResult(proposal_id=proposal_id, kind=proposal.kind, effect=effect)

    def _apply(self, draft: FundState, proposal: Proposal, now: int) -> str:
        payload = proposal.payload
        if proposal.kind == ProposalKind.ADD_MANAGER:
            if self.gate.admit(draft, payload["account"], now):
                return f"manager {payload['account']} activated"
            return f"manager {payload['account']} was already active"

        if proposal.kind == ProposalKind.REMOVE_MANAGER:
            if self.gate.deactivate(draft, payload["account"]):
                return f"manager {payload['account']} deactivated"
            return f"manager {payload['account']} was already inactive"

        if proposal.kind == ProposalKind.CHANGE_COMMISSION_RATE:
            # Settle at the old rate so the change never reaches back into
            # performance that has already happened.
            self.accountant.settle(draft)
            previous = draft.commission_rate_bps
            draft.commission_rate_bps = payload["rate_bps"]
            return f"commission rate {previous} → {payload['rate_bps']} bps"

        payments = self.treasury.redeem_all(draft)
        draft.status = FundStatus.CLOSED
        returned = sum(amount for _, amount in payments)
        return f"fund closed; {returned} returned to {len(payments)} investors"

    # ── Queries (never mutate) ──

    def share_balance(self, account: str) -> int:
        return self.ledger.balance_of(self._state, account)

    def redeemable_value(self, account: str) -> int:
        """Value ``account`` would receive if it withdrew everything after settling."""
        preview = self._state.model_copy(deep=True)
        self.accountant.settle(preview)
        return self.ledger.value_of(preview, self.ledger.balance_of(preview, account))

    @property
    def total_shares(self) -> int:
        return self._state.total_shares

    @property
    def share_price(self) -> int:
        return self.ledger.share_price(self._state)

    def proposal(self, proposal_id: int) -> Proposal:
        return self.gate.get(self._state, proposal_id)

    def proposal_status(self, proposal_id: int) -> ProposalStatus:
        return self.gate.status_of(self._state, self.proposal(proposal_id), self._host.now())

    def proposals(self) -> List[Proposal]:
        return [self._state.proposals[pid] for pid in sorted(self._state.proposals)]

    def members(self) -> List[Manager]:
        return sorted(self._state.members.values(), key=lambda m: (m.joined_at, m.account))

    def summary(self) -> FundSummary:
        state = self._state
        return FundSummary(
            fund_account=state.fund_account,
            status=state.status,
            total_shares=state.total_shares,
            total_asset_value=state.total_asset_value,
            share_price=self.share_price,
            high_water_mark=state.high_water_mark,
            commission_rate_bps=state.commission_rate_bps,
            accrued_commission=state.accrued_commission,
            pending_commission=self.accountant.pending(state).accrued,
            investor_count=len(state.investors),
            active_members=len(self.gate.active_members(state)),
        )
