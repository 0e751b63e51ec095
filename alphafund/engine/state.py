"""
In-memory fund state.

One :class:`FundState` object holds everything the engine mutates: the fund
totals, investor positions, the member roster, proposals and the outbox of
emitted events.  Engine components never keep state of their own; they are
handed a ``FundState`` (usually a staged draft) for every call.

All amounts are integers in base token units.  Share price and high-water
mark are fixed-point integers scaled by :data:`PRICE_SCALE`.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

PRICE_SCALE = 10**9
BPS_DENOMINATOR = 10_000


class FundStatus(str, Enum):
    """Lifecycle of the fund."""

    OPEN = "Open"
    CLOSED = "Closed"


class ProposalKind(str, Enum):
    """Governance actions that can be put to a vote."""

    ADD_MANAGER = "AddManager"
    REMOVE_MANAGER = "RemoveManager"
    CHANGE_COMMISSION_RATE = "ChangeCommissionRate"
    CLOSE_FUND = "CloseFund"


class ProposalStatus(str, Enum):
    """
    Proposal lifecycle.

    ``Open -> {Passed, Rejected, Expired}``, ``Passed -> Executed``.
    ``Expired`` is never stored: it is derived from the voting window.
    """

    OPEN = "Open"
    PASSED = "Passed"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    EXECUTED = "Executed"


class EventKind(str, Enum):
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    COMMISSION_ACCRUED = "CommissionAccrued"
    COMMISSION_PAID = "CommissionPaid"
    REVALUED = "Revalued"
    PROPOSAL_CREATED = "ProposalCreated"
    VOTE_CAST = "VoteCast"
    PROPOSAL_DECIDED = "ProposalDecided"
    PROPOSAL_EXECUTED = "ProposalExecuted"


class Investor(BaseModel):
    account: str
    share_balance: int = 0


class Manager(BaseModel):
    """
    A voting member of the fund.  Removal deactivates, never deletes.

    ``accrued_commission`` is this manager's unpaid share of settled
    commission; it survives deactivation and stays claimable.
    """

    account: str
    active: bool = True
    joined_at: int
    accrued_commission: int = 0


class Proposal(BaseModel):
    id: int
    kind: ProposalKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    proposer: str
    created_at: int
    closes_at: int
    votes_for: Set[str] = Field(default_factory=set)
    votes_against: Set[str] = Field(default_factory=set)
    status: ProposalStatus = ProposalStatus.OPEN
    decided_at: Optional[int] = None
    executed_at: Optional[int] = None

    def has_voted(self, account: str) -> bool:
        return account in self.votes_for or account in self.votes_against

    @property
    def votes_cast(self) -> int:
        return len(self.votes_for) + len(self.votes_against)


class FundEvent(BaseModel):
    """An entry in the fund's audit trail; ``at`` is stamped on commit."""

    kind: EventKind
    account: Optional[str] = None
    amount: int = 0
    shares: int = 0
    proposal_id: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    at: Optional[int] = None


class FundState(BaseModel):
    """The single owned state object of one fund deployment."""

    fund_account: str
    status: FundStatus = FundStatus.OPEN
    total_shares: int = 0
    total_asset_value: int = 0
    high_water_mark: int = PRICE_SCALE
    commission_rate_bps: int = 0
    # Sum of every member's accrued_commission.
    accrued_commission: int = 0
    next_proposal_id: int = 1
    investors: Dict[str, Investor] = Field(default_factory=dict)
    members: Dict[str, Manager] = Field(default_factory=dict)
    proposals: Dict[int, Proposal] = Field(default_factory=dict)
    events: List[FundEvent] = Field(default_factory=list)

    @property
    def custodied_balance(self) -> int:
        """What the treasury should hold on the host ledger."""
        return self.total_asset_value + self.accrued_commission

    def emit(self, kind: EventKind, **fields: Any) -> FundEvent:
        event = FundEvent(kind=kind, **fields)
        self.events.append(event)
        return event
