"""
Investor API endpoints.

- GET    /investors/{account}   — Share balance and redeemable value
"""

from fastapi import APIRouter, Depends, Path

from alphafund.api.deps import get_fund_service
from alphafund.schemas.fund import PositionResponse
from alphafund.services.fund_service import FundService

router = APIRouter()


@router.get(
    "/{account}",
    response_model=PositionResponse,
    summary="Get an investor position",
    description=(
        "Shares held by ``account`` and what they would redeem for after "
        "settling pending commission.  Unknown accounts hold zero shares."
    ),
)
async def get_position(
    account: str = Path(..., min_length=1, max_length=255),
    service: FundService = Depends(get_fund_service),
) -> PositionResponse:
    shares, value = service.position(account)
    return PositionResponse(account=account, share_balance=shares, redeemable_value=value)
