"""
Fund (treasury) API endpoints.

- GET    /fund           — Fund totals, price and commission state
- POST   /fund/deposit   — Deposit (join) and receive shares
- POST   /fund/withdraw  — Redeem shares for their post-commission value
- POST   /fund/settle    — Realize commission above the high-water mark (anyone)
- POST   /fund/revalue   — Mark the fund to the host treasury balance (active manager)
"""

from fastapi import APIRouter, Depends

from alphafund.api.deps import get_caller, get_fund_service
from alphafund.schemas.common import ErrorResponse
from alphafund.schemas.fund import (
    DepositRequest,
    DepositResponse,
    FundSummaryResponse,
    RevalueResponse,
    SettleResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from alphafund.services.fund_service import FundService

router = APIRouter()


@router.get(
    "",
    response_model=FundSummaryResponse,
    summary="Fund summary",
    description="Totals, share price, high-water mark and commission state.  Read-only.",
)
async def get_fund(service: FundService = Depends(get_fund_service)) -> FundSummaryResponse:
    return FundSummaryResponse(**service.summary().model_dump())


@router.post(
    "/deposit",
    response_model=DepositResponse,
    status_code=201,
    summary="Deposit into the fund",
    description=(
        "Transfers ``amount`` from the caller to the treasury and mints shares at "
        "the current price (1:1 for an empty fund), rounded down."
    ),
    responses={
        409: {"model": ErrorResponse, "description": "Fund closed"},
        422: {"model": ErrorResponse, "description": "InvalidAmount"},
        502: {"model": ErrorResponse, "description": "TransferFailed"},
    },
)
async def deposit(
    body: DepositRequest,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> DepositResponse:
    shares = await service.deposit(caller, body.amount)
    balance, _ = service.position(caller)
    return DepositResponse(shares_minted=shares, share_balance=balance)


@router.post(
    "/withdraw",
    response_model=WithdrawResponse,
    summary="Withdraw from the fund",
    description=(
        "Settles commission, then burns ``shares`` and transfers their value to "
        "the caller.  Nothing changes if the transfer fails."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "InsufficientShares / InvalidAmount"},
        502: {"model": ErrorResponse, "description": "TransferFailed"},
    },
)
async def withdraw(
    body: WithdrawRequest,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> WithdrawResponse:
    payout = await service.withdraw(caller, body.shares)
    balance, _ = service.position(caller)
    return WithdrawResponse(payout=payout, share_balance=balance)


@router.post(
    "/settle",
    response_model=SettleResponse,
    summary="Settle commission",
    description="Permissionless.  Accrues commission on gains above the high-water mark.",
)
async def settle(service: FundService = Depends(get_fund_service)) -> SettleResponse:
    hwm = await service.settle()
    return SettleResponse(
        high_water_mark=hwm, accrued_commission=service.summary().accrued_commission
    )


@router.post(
    "/revalue",
    response_model=RevalueResponse,
    summary="Mark the fund to market",
    description=(
        "An active manager asks for the fund to be marked to the treasury's balance "
        "on the host; the asset value becomes that balance less accrued commission."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "NotMember"},
        422: {"model": ErrorResponse, "description": "InvalidValuation"},
    },
)
async def revalue(
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> RevalueResponse:
    value = await service.revalue(caller)
    summary = service.summary()
    return RevalueResponse(
        total_asset_value=value,
        custodied_balance=value + summary.accrued_commission,
        share_price=summary.share_price,
    )
