"""
Audit trail API endpoints.

- GET    /events   — Persisted fund events, newest first
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from alphafund.db.session import get_db
from alphafund.models.event import FundEventRecord
from alphafund.repositories.event_repo import EventRepository
from alphafund.schemas.event import EventResponse

router = APIRouter()


def _get_event_repo(db: AsyncSession = Depends(get_db)) -> EventRepository:
    """Build an EventRepository wired to the current request's DB session."""
    return EventRepository(FundEventRecord, db)


@router.get(
    "",
    response_model=List[EventResponse],
    summary="List fund events",
    description=(
        "Deposits, withdrawals, commission accruals and payouts, revaluations and "
        "governance actions as persisted.  Filter by ``account`` and page with "
        "``skip`` / ``limit``."
    ),
)
async def list_events(
    account: Optional[str] = Query(None, max_length=255),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    repo: EventRepository = Depends(_get_event_repo),
) -> List[EventResponse]:
    events = await repo.list_events(account=account, skip=skip, limit=limit)
    return [EventResponse.model_validate(e) for e in events]
