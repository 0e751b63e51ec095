"""
Fund service — async façade over the synchronous engine.

The engine assumes a single writer.  The service provides one: every call
that can change state takes ``self._lock``, runs the engine operation to
completion, and writes the resulting snapshot before releasing the lock, so
operations observe a total order equal to their arrival order.

Persistence policy:
    The engine's committed state (and the host ledger behind it) is the
    source of truth.  If the snapshot write fails, the operation still
    stands: the failure is logged, the service is marked *stale*, and the
    undelivered events stay in the outbox until the next successful save,
    which rewrites the full snapshot.
"""

import asyncio
import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alphafund.core.config import Settings
from alphafund.core.exceptions import CircuitBreakerError
from alphafund.engine.controller import ExecutionResult, FundController, FundSummary
from alphafund.engine.governance import GovernanceConfig, VotingRules
from alphafund.engine.state import (
    FundEvent,
    Manager,
    Proposal,
    ProposalKind,
    ProposalStatus,
)
from alphafund.host import HostLedger
from alphafund.repositories.snapshot_repo import FundSnapshotRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PERSISTENCE_ERRORS = (SQLAlchemyError, CircuitBreakerError, ConnectionError, OSError, TimeoutError)


def governance_config_from(config: Settings) -> GovernanceConfig:
    """Translate flat settings into the per-kind :class:`GovernanceConfig`."""
    default = VotingRules(quorum_bps=config.QUORUM_BPS, threshold_bps=config.THRESHOLD_BPS)
    overrides = {}
    if config.RATE_CHANGE_QUORUM_BPS or config.RATE_CHANGE_THRESHOLD_BPS:
        overrides[ProposalKind.CHANGE_COMMISSION_RATE] = VotingRules(
            quorum_bps=config.RATE_CHANGE_QUORUM_BPS or config.QUORUM_BPS,
            threshold_bps=config.RATE_CHANGE_THRESHOLD_BPS or config.THRESHOLD_BPS,
        )
    return GovernanceConfig(
        voting_window=config.VOTING_WINDOW_SECONDS,
        default_rules=default,
        overrides=overrides,
    )


class FundService:
    """Serialises engine calls and mirrors committed state to the database."""

    def __init__(
        self,
        controller: FundController,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self._controller = controller
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
        self._outbox: List[FundEvent] = []
        self.persistence_stale = False

    @classmethod
    async def bootstrap(
        cls,
        host: HostLedger,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings,
    ) -> "FundService":
        """Resume the fund stored in the database, or found a new one."""
        governance = governance_config_from(config)
        async with session_factory() as session:
            state = await FundSnapshotRepository(session).load()

        if state is not None:
            if state.fund_account != config.FUND_ACCOUNT:
                logger.warning(
                    "Stored fund account '%s' differs from FUND_ACCOUNT '%s'; using stored",
                    state.fund_account,
                    config.FUND_ACCOUNT,
                )
            controller = FundController(host, state, governance)
            service = cls(controller, session_factory)
        else:
            controller = FundController.create(
                host,
                fund_account=config.FUND_ACCOUNT,
                founding_managers=config.founding_managers,
                commission_rate_bps=config.DEFAULT_COMMISSION_RATE_BPS,
                governance=governance,
            )
            service = cls(controller, session_factory)
            await service._persist()
        return service

    @property
    def controller(self) -> FundController:
        return self._controller

    @property
    def pending_events(self) -> int:
        return len(self._outbox)

    # ── Internal helpers ──

    async def _run(self, operation: Callable[[], T]) -> T:
        async with self._lock:
            result = operation()
            await self._persist()
            return result

    async def _persist(self) -> None:
        self._outbox.extend(self._controller.drain_events())
        if self._session_factory is None:
            self._outbox.clear()
            return
        try:
            async with self._session_factory() as session:
                await FundSnapshotRepository(session).save(
                    self._controller.snapshot(), list(self._outbox)
                )
        except _PERSISTENCE_ERRORS as exc:
            self.persistence_stale = True
            logger.error(
                "Snapshot save failed; %d events held for the next save — %s: %s",
                len(self._outbox),
                type(exc).__name__,
                exc,
            )
            return
        if self.persistence_stale:
            logger.info("Snapshot persistence recovered")
        self._outbox.clear()
        self.persistence_stale = False

    # ── Commands ──

    async def deposit(self, investor: str, amount: int) -> int:
        return await self._run(lambda: self._controller.deposit(investor, amount))

    async def withdraw(self, investor: str, shares: int) -> int:
        return await self._run(lambda: self._controller.withdraw(investor, shares))

    async def settle(self) -> int:
        return await self._run(self._controller.settle)

    async def payout_commission(self, manager: str) -> int:
        return await self._run(lambda: self._controller.payout_commission(manager))

    async def revalue(self, reporter: str) -> int:
        return await self._run(lambda: self._controller.revalue(reporter))

    async def propose(
        self, proposer: str, kind: ProposalKind, payload: Optional[Mapping[str, Any]]
    ) -> int:
        return await self._run(lambda: self._controller.propose(proposer, kind, payload))

    async def vote(self, voter: str, proposal_id: int, support: bool) -> ProposalStatus:
        return await self._run(lambda: self._controller.vote(voter, proposal_id, support))

    async def execute(self, proposal_id: int) -> ExecutionResult:
        return await self._run(lambda: self._controller.execute(proposal_id))

    # ── Queries (no lock: reads of committed state never mutate) ──

    def summary(self) -> FundSummary:
        return self._controller.summary()

    def position(self, account: str) -> Tuple[int, int]:
        """``(share_balance, redeemable_value)`` for ``account``."""
        return (
            self._controller.share_balance(account),
            self._controller.redeemable_value(account),
        )

    def members(self) -> List[Manager]:
        return self._controller.members()

    def proposals(self) -> List[Tuple[Proposal, ProposalStatus]]:
        return [
            (p, self._controller.proposal_status(p.id)) for p in self._controller.proposals()
        ]

    def proposal(self, proposal_id: int) -> Tuple[Proposal, ProposalStatus]:
        proposal = self._controller.proposal(proposal_id)
        return proposal, self._controller.proposal_status(proposal_id)
