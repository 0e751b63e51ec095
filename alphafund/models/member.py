"""Member (manager) roster model."""

from sqlalchemy import BigInteger, CheckConstraint
from sqlmodel import Field, SQLModel


class MemberRecord(SQLModel, table=True):
    """
    A voting manager.

    Removed managers keep their row with ``active = False`` and any unpaid
    ``accrued_commission``; ``joined_at`` is ledger time in seconds, not
    wall-clock time.
    """

    __tablename__ = "members"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint("accrued_commission >= 0", name="ck_members_accrued_non_negative"),
    )

    account: str = Field(primary_key=True, max_length=255)
    active: bool = Field(default=True, index=True)
    joined_at: int = Field(sa_type=BigInteger)  # type: ignore[call-overload]
    accrued_commission: int = Field(default=0, sa_type=BigInteger)  # type: ignore[call-overload]

    def __repr__(self) -> str:
        return f"<MemberRecord account='{self.account}' active={self.active}>"
