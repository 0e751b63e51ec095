"""
Fund record — the singleton row holding fund-level totals.

Mirrors :class:`alphafund.engine.state.FundState` minus its keyed maps, which
live in their own tables.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, DateTime
from sqlmodel import Field, SQLModel

from alphafund.engine.state import FundStatus

FUND_ROW_ID = 1


class FundRecord(SQLModel, table=True):
    """
    One row per deployment (``id`` is always :data:`FUND_ROW_ID`).

    Amounts are BIGINT base units; the share price and high-water mark are
    fixed-point integers scaled by ``PRICE_SCALE``.
    """

    __tablename__ = "fund"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("total_shares >= 0", name="ck_fund_total_shares_non_negative"),
        CheckConstraint("total_asset_value >= 0", name="ck_fund_tav_non_negative"),
        CheckConstraint("accrued_commission >= 0", name="ck_fund_accrued_non_negative"),
        CheckConstraint(
            "commission_rate_bps BETWEEN 0 AND 10000", name="ck_fund_commission_rate_range"
        ),
    )

    id: int = Field(default=FUND_ROW_ID, primary_key=True)
    fund_account: str = Field(max_length=255)
    status: FundStatus = Field(default=FundStatus.OPEN)
    total_shares: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]
    total_asset_value: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]
    high_water_mark: int = Field(sa_type=BigInteger)  # type: ignore[call-overload]
    commission_rate_bps: int = Field(default=0)
    accrued_commission: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]
    next_proposal_id: int = Field(default=1)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return (
            f"<FundRecord account='{self.fund_account}' status={self.status.value} "
            f"shares={self.total_shares} value={self.total_asset_value}>"
        )
