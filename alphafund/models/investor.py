"""
Investor position model — one row per account holding shares.

Rows are removed when the balance reaches zero, matching the engine.
"""

from sqlalchemy import BigInteger, CheckConstraint
from sqlmodel import Field, SQLModel


class InvestorPosition(SQLModel, table=True):
    __tablename__ = "investor_positions"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("share_balance > 0", name="ck_investor_positions_balance_positive"),
    )

    account: str = Field(primary_key=True, max_length=255)
    share_balance: int = Field(sa_type=BigInteger)  # type: ignore[call-overload]

    def __repr__(self) -> str:
        return f"<InvestorPosition account='{self.account}' shares={self.share_balance}>"
