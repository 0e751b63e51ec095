"""
Persistence tests against a real in-memory SQLite database (aiosqlite).

Tests cover:
- Snapshot save / load round trip of a busy fund
- Full-snapshot semantics (closed positions are deleted)
- The event audit trail and its per-account query
- FundService.bootstrap founding a fund, then resuming it
"""

import pytest

from alphafund.core.config import Settings
from alphafund.engine.controller import FundController
from alphafund.engine.state import EventKind, FundStatus, ProposalKind, ProposalStatus
from alphafund.models.event import FundEventRecord
from alphafund.repositories.event_repo import EventRepository
from alphafund.repositories.snapshot_repo import FundSnapshotRepository
from alphafund.services.fund_service import FundService

from .conftest import gain, make_governance


async def _save(session_factory, controller):
    async with session_factory() as session:
        await FundSnapshotRepository(session).save(
            controller.snapshot(), controller.drain_events()
        )


async def _load(session_factory):
    async with session_factory() as session:
        return await FundSnapshotRepository(session).load()


class TestSnapshotRoundTrip:
    @pytest.mark.asyncio
    async def test_empty_database_loads_none(self, session_factory):
        assert await _load(session_factory) is None

    @pytest.mark.asyncio
    async def test_busy_fund_survives_round_trip(self, session_factory, host, controller):
        controller.deposit("alice", 1000)
        controller.deposit("bob", 500)
        gain(host, controller, 300)
        controller.settle()
        pid = controller.propose("m1", ProposalKind.ADD_MANAGER, {"account": "m6"})
        controller.vote("m1", pid, True)
        controller.vote("m2", pid, False)
        controller.propose("m2", ProposalKind.CLOSE_FUND)

        await _save(session_factory, controller)
        loaded = await _load(session_factory)

        expected = controller.snapshot()
        expected.events = []
        assert loaded == expected
        assert loaded.proposals[pid].votes_for == {"m1"}
        assert loaded.members["m1"].accrued_commission == 6

    @pytest.mark.asyncio
    async def test_closed_positions_are_deleted(self, session_factory, controller):
        controller.deposit("alice", 100)
        controller.deposit("bob", 100)
        await _save(session_factory, controller)

        controller.withdraw("bob", 100)
        await _save(session_factory, controller)

        loaded = await _load(session_factory)
        assert set(loaded.investors) == {"alice"}
        assert loaded.total_shares == 100

    @pytest.mark.asyncio
    async def test_updates_overwrite_previous_snapshot(self, session_factory, controller):
        pid = controller.propose("m1", ProposalKind.CLOSE_FUND)
        await _save(session_factory, controller)
        for voter in ("m1", "m2", "m3"):
            controller.vote(voter, pid, True)
        controller.execute(pid)
        await _save(session_factory, controller)

        loaded = await _load(session_factory)
        assert loaded.status == FundStatus.CLOSED
        assert loaded.proposals[pid].status == ProposalStatus.EXECUTED
        assert len(loaded.proposals) == 1

    @pytest.mark.asyncio
    async def test_resumed_controller_continues(self, session_factory, host, controller):
        controller.deposit("alice", 1000)
        await _save(session_factory, controller)

        resumed = FundController(host, await _load(session_factory), make_governance())
        assert resumed.withdraw("alice", 1000) == 1000


class TestEventTrail:
    @pytest.mark.asyncio
    async def test_events_recorded_newest_first(self, session_factory, clock, controller):
        controller.deposit("alice", 100)
        clock.advance(10)
        controller.deposit("bob", 50)
        controller.withdraw("alice", 20)
        await _save(session_factory, controller)

        async with session_factory() as session:
            repo = EventRepository(FundEventRecord, session)
            everything = await repo.list_events()
            alice = await repo.list_events(account="alice")
            page = await repo.list_events(skip=1, limit=1)
            total = await repo.count()

        assert [e.kind for e in everything] == [
            EventKind.WITHDRAW,
            EventKind.DEPOSIT,
            EventKind.DEPOSIT,
        ]
        assert [(e.kind, e.amount) for e in alice] == [
            (EventKind.WITHDRAW, 20),
            (EventKind.DEPOSIT, 100),
        ]
        assert page[0].account == "bob"
        assert page[0].ledger_time == clock.value
        assert total == 3


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_founds_then_resumes(self, session_factory, host):
        config = Settings(
            USE_SQLITE=True,
            FUND_ACCOUNT="fund",
            FUND_FOUNDING_MANAGERS="ann, ben",
            DEFAULT_COMMISSION_RATE_BPS=2000,
        )

        service = await FundService.bootstrap(host, session_factory, config)
        assert [m.account for m in service.members()] == ["ann", "ben"]
        await service.deposit("alice", 700)
        assert service.persistence_stale is False

        resumed = await FundService.bootstrap(host, session_factory, config)
        summary = resumed.summary()
        assert summary.total_shares == 700
        assert summary.commission_rate_bps == 2000
        assert resumed.position("alice") == (700, 700)
