"""
Governance API endpoints.

- GET    /members                    — Manager roster
- GET    /proposals                  — All proposals, oldest first
- POST   /proposals                  — Open a proposal (active member)
- GET    /proposals/{id}             — Proposal detail with effective status
- POST   /proposals/{id}/votes       — Vote for / against (active member, once)
- POST   /proposals/{id}/execute     — Apply a passed proposal (anyone, once)
"""

from typing import List

from fastapi import APIRouter, Depends

from alphafund.api.deps import get_caller, get_fund_service
from alphafund.schemas.common import ErrorResponse
from alphafund.schemas.governance import (
    ExecutionResponse,
    MemberResponse,
    ProposalCreate,
    ProposalCreated,
    ProposalResponse,
    VoteRequest,
    VoteResponse,
)
from alphafund.services.fund_service import FundService

router = APIRouter()


@router.get(
    "/members",
    response_model=List[MemberResponse],
    summary="List members",
    description="Every manager ever admitted, including inactive ones.",
)
async def list_members(service: FundService = Depends(get_fund_service)) -> List[MemberResponse]:
    return [MemberResponse.model_validate(m, from_attributes=True) for m in service.members()]


@router.get(
    "/proposals",
    response_model=List[ProposalResponse],
    summary="List proposals",
)
async def list_proposals(
    service: FundService = Depends(get_fund_service),
) -> List[ProposalResponse]:
    return [ProposalResponse.build(p, status) for p, status in service.proposals()]


@router.post(
    "/proposals",
    response_model=ProposalCreated,
    status_code=201,
    summary="Open a proposal",
    responses={
        403: {"model": ErrorResponse, "description": "NotMember"},
        409: {"model": ErrorResponse, "description": "AlreadyMember / FundClosed"},
        422: {"model": ErrorResponse, "description": "InvalidProposal / QuorumImpossible"},
    },
)
async def create_proposal(
    body: ProposalCreate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> ProposalCreated:
    proposal_id = await service.propose(caller, body.kind, body.payload)
    return ProposalCreated(proposal_id=proposal_id)


@router.get(
    "/proposals/{proposal_id}",
    response_model=ProposalResponse,
    summary="Get a proposal",
    responses={404: {"model": ErrorResponse, "description": "ProposalNotFound"}},
)
async def get_proposal(
    proposal_id: int,
    service: FundService = Depends(get_fund_service),
) -> ProposalResponse:
    proposal, status = service.proposal(proposal_id)
    return ProposalResponse.build(proposal, status)


@router.post(
    "/proposals/{proposal_id}/votes",
    response_model=VoteResponse,
    summary="Vote on a proposal",
    responses={
        403: {"model": ErrorResponse, "description": "NotMember"},
        404: {"model": ErrorResponse, "description": "ProposalNotFound"},
        409: {"model": ErrorResponse, "description": "AlreadyVoted / ProposalClosed"},
    },
)
async def vote(
    proposal_id: int,
    body: VoteRequest,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> VoteResponse:
    status = await service.vote(caller, proposal_id, body.support)
    return VoteResponse(proposal_id=proposal_id, status=status)


@router.post(
    "/proposals/{proposal_id}/execute",
    response_model=ExecutionResponse,
    summary="Execute a passed proposal",
    responses={
        404: {"model": ErrorResponse, "description": "ProposalNotFound"},
        409: {"model": ErrorResponse, "description": "NotPassed / AlreadyExecuted"},
        422: {"model": ErrorResponse, "description": "QuorumImpossible"},
    },
)
async def execute(
    proposal_id: int,
    service: FundService = Depends(get_fund_service),
) -> ExecutionResponse:
    result = await service.execute(proposal_id)
    return ExecutionResponse(proposal_id=result.proposal_id, kind=result.kind, effect=result.effect)
