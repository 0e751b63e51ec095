"""
Commission API endpoints.

- POST   /commission/payout   — Pay the calling manager their accrued commission
"""

from fastapi import APIRouter, Depends

from alphafund.api.deps import get_caller, get_fund_service
from alphafund.schemas.common import ErrorResponse
from alphafund.schemas.fund import PayoutResponse
from alphafund.services.fund_service import FundService

router = APIRouter()


@router.post(
    "/payout",
    response_model=PayoutResponse,
    summary="Pay out accrued commission",
    description=(
        "Transfers the commission accrued to the caller.  Managers removed by vote "
        "can still claim what they earned.  Nothing changes if the transfer fails."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "NotMember"},
        422: {"model": ErrorResponse, "description": "NothingToPay"},
        502: {"model": ErrorResponse, "description": "TransferFailed"},
    },
)
async def payout_commission(
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> PayoutResponse:
    amount = await service.payout_commission(caller)
    return PayoutResponse(manager=caller, amount=amount)
