"""
Fund event model — append-only audit trail of everything the engine did.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, Column, DateTime, Index
from sqlmodel import Field, SQLModel

from alphafund.engine.state import EventKind


class FundEventRecord(SQLModel, table=True):
    """
    One emitted :class:`~alphafund.engine.state.FundEvent`.

    ``ledger_time`` is the host ledger timestamp stamped by the engine;
    ``recorded_at`` is when the row was written.  The composite index covers
    the per-account history query.
    """

    __tablename__ = "fund_events"  # type: ignore[assignment]

    __table_args__ = (Index("ix_fund_events_account_id", "account", "id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: EventKind = Field(index=True)
    account: Optional[str] = Field(default=None, max_length=255)
    amount: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]
    shares: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]
    proposal_id: Optional[int] = Field(default=None, index=True)
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    ledger_time: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[call-overload]
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<FundEventRecord id={self.id} kind={self.kind.value} account={self.account}>"
