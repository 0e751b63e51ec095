"""
Fund snapshot repository — mirrors the engine's state into the database.

``save()`` writes the *whole* state (fund row, positions, roster, proposals)
plus any new events in a single transaction.  Because every save is a full
snapshot, a save that failed is repaired by the next one that succeeds; only
the event outbox has to be carried over by the caller.

``load()`` rebuilds a :class:`FundState` on startup, or returns ``None`` for
an empty database.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from alphafund.core.resilience import db_circuit_breaker, retry_with_backoff
from alphafund.engine.state import (
    FundEvent,
    FundState,
    Investor,
    Manager,
    Proposal,
)
from alphafund.models.event import FundEventRecord
from alphafund.models.fund import FUND_ROW_ID, FundRecord
from alphafund.models.investor import InvestorPosition
from alphafund.models.member import MemberRecord
from alphafund.models.proposal import ProposalRecord

logger = logging.getLogger(__name__)


class FundSnapshotRepository:
    """Loads and saves one fund's :class:`FundState`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Load ──

    async def load(self) -> Optional[FundState]:
        return await db_circuit_breaker.call(self._load)

    async def _load(self) -> Optional[FundState]:
        fund = await self.db.get(FundRecord, FUND_ROW_ID)
        if fund is None:
            return None

        positions = (await self.db.execute(select(InvestorPosition))).scalars().all()
        members = (await self.db.execute(select(MemberRecord))).scalars().all()
        proposals = (await self.db.execute(select(ProposalRecord))).scalars().all()

        state = FundState(
            fund_account=fund.fund_account,
            status=fund.status,
            total_shares=fund.total_shares,
            total_asset_value=fund.total_asset_value,
            high_water_mark=fund.high_water_mark,
            commission_rate_bps=fund.commission_rate_bps,
            accrued_commission=fund.accrued_commission,
            next_proposal_id=fund.next_proposal_id,
            investors={
                p.account: Investor(account=p.account, share_balance=p.share_balance)
                for p in positions
            },
            members={
                m.account: Manager(
                    account=m.account,
                    active=m.active,
                    joined_at=m.joined_at,
                    accrued_commission=m.accrued_commission,
                )
                for m in members
            },
            proposals={
                p.id: Proposal(
                    id=p.id,
                    kind=p.kind,
                    payload=dict(p.payload),
                    proposer=p.proposer,
                    created_at=p.created_at,
                    closes_at=p.closes_at,
                    votes_for=set(p.votes_for),
                    votes_against=set(p.votes_against),
                    status=p.status,
                    decided_at=p.decided_at,
                    executed_at=p.executed_at,
                )
                for p in proposals
            },
        )
        logger.info(
            "Loaded fund snapshot: %d investors, %d members, %d proposals",
            len(state.investors),
            len(state.members),
            len(state.proposals),
        )
        return state

    # ── Save ──

    @retry_with_backoff()
    async def save(self, state: FundState, events: Sequence[FundEvent] = ()) -> None:
        await db_circuit_breaker.call(self._save, state, events)

    async def _save(self, state: FundState, events: Sequence[FundEvent]) -> None:
        try:
            await self.db.merge(
                FundRecord(
                    id=FUND_ROW_ID,
                    fund_account=state.fund_account,
                    status=state.status,
                    total_shares=state.total_shares,
                    total_asset_value=state.total_asset_value,
                    high_water_mark=state.high_water_mark,
                    commission_rate_bps=state.commission_rate_bps,
                    accrued_commission=state.accrued_commission,
                    next_proposal_id=state.next_proposal_id,
                    updated_at=datetime.now(timezone.utc),
                )
            )

            accounts = list(state.investors)
            await self.db.execute(
                delete(InvestorPosition).where(InvestorPosition.account.not_in(accounts))  # type: ignore[attr-defined]
            )
            for investor in state.investors.values():
                await self.db.merge(
                    InvestorPosition(account=investor.account, share_balance=investor.share_balance)
                )

            for member in state.members.values():
                await self.db.merge(
                    MemberRecord(
                        account=member.account,
                        active=member.active,
                        joined_at=member.joined_at,
                        accrued_commission=member.accrued_commission,
                    )
                )

            for proposal in state.proposals.values():
                await self.db.merge(
                    ProposalRecord(
                        id=proposal.id,
                        kind=proposal.kind,
                        payload=proposal.payload,
                        proposer=proposal.proposer,
                        created_at=proposal.created_at,
                        closes_at=proposal.closes_at,
                        votes_for=sorted(proposal.votes_for),
                        votes_against=sorted(proposal.votes_against),
                        status=proposal.status,
                        decided_at=proposal.decided_at,
                        executed_at=proposal.executed_at,
                    )
                )

            for event in events:
                self.db.add(
                    FundEventRecord(
                        kind=event.kind,
                        account=event.account,
                        amount=event.amount,
                        shares=event.shares,
                        proposal_id=event.proposal_id,
                        data=event.data,
                        ledger_time=event.at,
                    )
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.debug(
            "Saved fund snapshot (%d investors, %d proposals, %d new events)",
            len(state.investors),
            len(state.proposals),
            len(events),
        )
