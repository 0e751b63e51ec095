"""
Proposal model.

Votes are stored as JSON arrays of distinct voter accounts rather than
counts, so a reloaded proposal still rejects a second vote from the same
member.  ``status`` is the stored status; ``Expired`` is never written.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, BigInteger, Column
from sqlmodel import Field, SQLModel

from alphafund.engine.state import ProposalKind, ProposalStatus


class ProposalRecord(SQLModel, table=True):
    __tablename__ = "proposals"  # type: ignore[assignment]

    id: int = Field(primary_key=True)
    kind: ProposalKind
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    proposer: str = Field(max_length=255, index=True)
    created_at: int = Field(sa_type=BigInteger)  # type: ignore[call-overload]
    closes_at: int = Field(sa_type=BigInteger)  # type: ignore[call-overload]
    votes_for: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    votes_against: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    status: ProposalStatus = Field(default=ProposalStatus.OPEN, index=True)
    decided_at: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[call-overload]
    executed_at: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[call-overload]

    def __repr__(self) -> str:
        return f"<ProposalRecord id={self.id} kind={self.kind.value} status={self.status.value}>"
