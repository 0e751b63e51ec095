"""
Pydantic schemas for members, proposals and votes.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from alphafund.engine.state import Proposal, ProposalKind, ProposalStatus


class MemberResponse(BaseModel):
    account: str
    active: bool
    joined_at: int = Field(..., description="Ledger time the member joined")
    accrued_commission: int = Field(0, description="Unpaid commission owed to this member")

    model_config = ConfigDict(from_attributes=True)


class ProposalCreate(BaseModel):
    """
    Schema for ``POST /proposals``.

    ``payload`` depends on ``kind``:

    - ``AddManager`` / ``RemoveManager``: ``{"account": "<account>"}``
    - ``ChangeCommissionRate``: ``{"rate_bps": 0..10000}``
    - ``CloseFund``: ``{}``
    """

    kind: ProposalKind
    payload: Dict[str, Any] = Field(default_factory=dict, examples=[{"account": "bob"}])


class ProposalCreated(BaseModel):
    proposal_id: int


class VoteRequest(BaseModel):
    support: bool = Field(..., description="True to vote for, False to vote against")


class VoteResponse(BaseModel):
    proposal_id: int
    status: ProposalStatus


class ExecutionResponse(BaseModel):
    proposal_id: int
    kind: ProposalKind
    effect: str

    model_config = ConfigDict(from_attributes=True)


class ProposalResponse(BaseModel):
    """A proposal with its *effective* status (expiry resolved at read time)."""

    id: int
    kind: ProposalKind
    payload: Dict[str, Any]
    proposer: str
    created_at: int
    closes_at: int
    votes_for: List[str]
    votes_against: List[str]
    status: ProposalStatus
    decided_at: Optional[int] = None
    executed_at: Optional[int] = None

    @classmethod
    def build(cls, proposal: Proposal, status: ProposalStatus) -> "ProposalResponse":
        return cls(
            id=proposal.id,
            kind=proposal.kind,
            payload=proposal.payload,
            proposer=proposal.proposer,
            created_at=proposal.created_at,
            closes_at=proposal.closes_at,
            votes_for=sorted(proposal.votes_for),
            votes_against=sorted(proposal.votes_against),
            status=status,
            decided_at=proposal.decided_at,
            executed_at=proposal.executed_at,
        )
