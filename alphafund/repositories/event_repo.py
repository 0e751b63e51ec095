"""
Fund event repository — read access to the ``fund_events`` audit trail.
"""

from typing import List, Optional

from sqlalchemy import select

from alphafund.models.event import FundEventRecord
from alphafund.repositories.base import BaseRepository


class EventRepository(BaseRepository[FundEventRecord]):
    """Concrete repository for :class:`FundEventRecord` entities."""

    async def list_events(
        self, account: Optional[str] = None, skip: int = 0, limit: int = 100
    ) -> List[FundEventRecord]:
        """
        Return events newest first, optionally for one account only.

        The ``(account, id)`` index serves the per-account filter and its
        ordering.
        """

        async def _list() -> List[FundEventRecord]:
            stmt = select(FundEventRecord)
            if account is not None:
                stmt = stmt.where(FundEventRecord.account == account)
            stmt = stmt.order_by(FundEventRecord.id.desc()).offset(skip).limit(limit)  # type: ignore[union-attr]
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_list)
