"""
Unit tests for FundService.

The snapshot repository is mocked so these tests cover the service's own
responsibilities: serialising calls, draining events into the outbox, and
surviving a failed snapshot write.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from alphafund.core.config import Settings
from alphafund.core.exceptions import CircuitBreakerError, InsufficientShares
from alphafund.engine.state import EventKind, ProposalKind, ProposalStatus
from alphafund.services.fund_service import FundService, governance_config_from

from .conftest import gain


def _session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


class TestWithoutPersistence:
    @pytest.mark.asyncio
    async def test_commands_reach_the_engine(self, controller):
        service = FundService(controller)

        assert await service.deposit("alice", 1000) == 1000
        assert await service.withdraw("alice", 400) == 400
        assert service.position("alice") == (600, 600)
        assert service.pending_events == 0

    @pytest.mark.asyncio
    async def test_engine_errors_propagate(self, controller):
        service = FundService(controller)
        with pytest.raises(InsufficientShares):
            await service.withdraw("alice", 1)

    @pytest.mark.asyncio
    async def test_concurrent_deposits_are_serialised(self, controller):
        service = FundService(controller)

        results = await asyncio.gather(*(service.deposit(f"inv{i}", 100) for i in range(10)))

        assert results == [100] * 10
        assert controller.total_shares == 1000

    @pytest.mark.asyncio
    async def test_governance_round_trip(self, controller):
        service = FundService(controller)
        pid = await service.propose("m1", ProposalKind.CHANGE_COMMISSION_RATE, {"rate_bps": 500})
        for voter in ("m1", "m2"):
            await service.vote(voter, pid, True)
        assert await service.vote("m3", pid, True) == ProposalStatus.PASSED

        result = await service.execute(pid)

        assert result.proposal_id == pid
        assert service.summary().commission_rate_bps == 500
        proposal, status = service.proposal(pid)
        assert status == ProposalStatus.EXECUTED
        assert service.proposals() == [(proposal, status)]

    @pytest.mark.asyncio
    async def test_commission_round_trip(self, host, controller):
        service = FundService(controller)
        await service.deposit("alice", 1000)
        host.credit(controller.state.fund_account, 300)
        await service.revalue("m1")

        assert await service.settle() == 1_270_000_000
        assert await service.payout_commission("m2") == 6
        assert service.members()[0].account == "m1"


class TestPersistence:
    @pytest.mark.asyncio
    async def test_save_receives_snapshot_and_events(self, controller, mock_db):
        with patch("alphafund.services.fund_service.FundSnapshotRepository") as repo_cls:
            repo_cls.return_value.save = AsyncMock()
            service = FundService(controller, _session_factory(mock_db))

            await service.deposit("alice", 100)

        repo_cls.assert_called_once_with(mock_db)
        state, events = repo_cls.return_value.save.call_args.args
        assert state.total_shares == 100
        assert [e.kind for e in events] == [EventKind.DEPOSIT]
        assert service.pending_events == 0
        assert service.persistence_stale is False

    @pytest.mark.asyncio
    async def test_failed_save_keeps_operation_and_events(self, controller, mock_db):
        with patch("alphafund.services.fund_service.FundSnapshotRepository") as repo_cls:
            repo_cls.return_value.save = AsyncMock(
                side_effect=OperationalError("INSERT", {}, Exception("db down"))
            )
            service = FundService(controller, _session_factory(mock_db))

            shares = await service.deposit("alice", 100)

        assert shares == 100
        assert controller.share_balance("alice") == 100
        assert service.persistence_stale is True
        assert service.pending_events == 1

    @pytest.mark.asyncio
    async def test_next_save_delivers_held_events(self, controller, mock_db):
        with patch("alphafund.services.fund_service.FundSnapshotRepository") as repo_cls:
            repo_cls.return_value.save = AsyncMock(
                side_effect=[CircuitBreakerError("database", 5.0), None]
            )
            service = FundService(controller, _session_factory(mock_db))

            await service.deposit("alice", 100)
            await service.deposit("bob", 50)

        _, events = repo_cls.return_value.save.call_args.args
        assert [e.account for e in events] == ["alice", "bob"]
        assert service.persistence_stale is False
        assert service.pending_events == 0

    @pytest.mark.asyncio
    async def test_rejected_operation_saves_nothing_new(self, controller, mock_db):
        with patch("alphafund.services.fund_service.FundSnapshotRepository") as repo_cls:
            repo_cls.return_value.save = AsyncMock()
            service = FundService(controller, _session_factory(mock_db))

            with pytest.raises(InsufficientShares):
                await service.withdraw("alice", 5)

        repo_cls.return_value.save.assert_not_called()


class TestGovernanceConfigFrom:
    def test_defaults(self):
        config = governance_config_from(Settings(USE_SQLITE=True))
        assert config.voting_window == 259_200
        assert config.default_rules.quorum_bps == 6000
        assert config.default_rules.threshold_bps == 5001
        assert config.overrides == {}

    def test_rate_change_override(self):
        config = governance_config_from(
            Settings(USE_SQLITE=True, RATE_CHANGE_QUORUM_BPS=8000)
        )
        rules = config.rules_for(ProposalKind.CHANGE_COMMISSION_RATE)
        assert rules.quorum_bps == 8000
        assert rules.threshold_bps == 5001
