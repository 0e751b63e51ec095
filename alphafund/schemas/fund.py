"""
Pydantic schemas for treasury, commission and position endpoints.

Amounts are integers in base token units.  Request schemas only check types;
amount rules (positive, enough shares, ...) belong to the engine so that the
caller always receives the engine's typed error kind.
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field

from alphafund.engine.state import FundStatus
from alphafund.schemas.common import price_to_decimal


class DepositRequest(BaseModel):
    amount: int = Field(..., description="Base units to deposit", examples=[1000])


class DepositResponse(BaseModel):
    shares_minted: int
    share_balance: int


class WithdrawRequest(BaseModel):
    shares: int = Field(..., description="Shares to redeem", examples=[250])


class WithdrawResponse(BaseModel):
    payout: int = Field(..., description="Base units sent to the investor")
    share_balance: int


class RevalueResponse(BaseModel):
    total_asset_value: int
    custodied_balance: int = Field(
        ..., description="Treasury balance read from the host, accrued commission included"
    )
    share_price: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def share_price_decimal(self) -> str:
        return price_to_decimal(self.share_price)


class SettleResponse(BaseModel):
    high_water_mark: int = Field(..., description="Fixed-point, scaled by 10**9")
    accrued_commission: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def high_water_mark_decimal(self) -> str:
        return price_to_decimal(self.high_water_mark)


class PayoutResponse(BaseModel):
    manager: str
    amount: int


class FundSummaryResponse(BaseModel):
    """Schema returned by ``GET /fund``."""

    fund_account: str
    status: FundStatus
    total_shares: int
    total_asset_value: int
    share_price: int = Field(..., description="Fixed-point, scaled by 10**9")
    high_water_mark: int = Field(..., description="Fixed-point, scaled by 10**9")
    commission_rate_bps: int
    accrued_commission: int
    pending_commission: int = Field(
        ..., description="Commission a settlement would accrue right now"
    )
    investor_count: int
    active_members: int

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def share_price_decimal(self) -> str:
        return price_to_decimal(self.share_price)


class PositionResponse(BaseModel):
    account: str
    share_balance: int
    redeemable_value: int = Field(
        ..., description="Payout for all shares after settling pending commission"
    )
