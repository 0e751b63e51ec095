"""
Shared pytest fixtures.

All tests run with ``USE_SQLITE=true``: the engine is exercised against an
in-memory host ledger driven by a manual clock, and nothing needs a real
database server or network I/O.
"""

import os
from typing import Dict, Optional

os.environ.setdefault("USE_SQLITE", "true")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import alphafund.models  # noqa: E402,F401
from alphafund.db.session import build_session_factory  # noqa: E402
from alphafund.engine.controller import FundController  # noqa: E402
from alphafund.engine.governance import GovernanceConfig, VotingRules  # noqa: E402
from alphafund.engine.state import PRICE_SCALE, FundState, Manager  # noqa: E402
from alphafund.host import InMemoryHostLedger, ManualClock  # noqa: E402

FUND = "fund"
MANAGERS = ("m1", "m2", "m3", "m4", "m5")
START = 1_700_000_000
WINDOW = 3 * 24 * 60 * 60

# Quorum 60% of active members, threshold 50% of votes cast.
RULES = VotingRules(quorum_bps=6000, threshold_bps=5000)


# ────────────────────────────────────────────────────────────────────────────
# Factory helpers
# ────────────────────────────────────────────────────────────────────────────


def make_governance(**overrides) -> GovernanceConfig:
    """GovernanceConfig with the test window and rules, overridable per test."""
    fields = {"voting_window": WINDOW, "default_rules": RULES}
    fields.update(overrides)
    return GovernanceConfig(**fields)


def make_state(
    *,
    total_shares: int = 0,
    total_asset_value: int = 0,
    high_water_mark: int = PRICE_SCALE,
    commission_rate_bps: int = 1000,
    managers=("m1", "m2", "m3"),
    owed: Optional[Dict[str, int]] = None,
) -> FundState:
    """Bare FundState with sensible test defaults; ``owed`` seeds manager accruals."""
    owed = owed or {}
    return FundState(
        fund_account=FUND,
        total_shares=total_shares,
        total_asset_value=total_asset_value,
        high_water_mark=high_water_mark,
        commission_rate_bps=commission_rate_bps,
        accrued_commission=sum(owed.values()),
        members={
            account: Manager(
                account=account, joined_at=START, accrued_commission=owed.get(account, 0)
            )
            for account in managers
        },
    )


def make_controller(
    host: InMemoryHostLedger,
    *,
    managers=MANAGERS,
    commission_rate_bps: int = 1000,
    governance: GovernanceConfig = None,
) -> FundController:
    return FundController.create(
        host,
        fund_account=FUND,
        founding_managers=managers,
        commission_rate_bps=commission_rate_bps,
        governance=governance or make_governance(),
    )


def gain(host: InMemoryHostLedger, controller: FundController, amount: int) -> None:
    """Simulate trading profit: credit the treasury, then mark the fund to it."""
    host.credit(FUND, amount)
    controller.revalue(MANAGERS[0])


def loss(host: InMemoryHostLedger, controller: FundController, amount: int) -> None:
    """Simulate a trading loss: debit the treasury, then mark the fund to it."""
    host.debit(FUND, amount)
    controller.revalue(MANAGERS[0])


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def clock():
    return ManualClock(START)


@pytest.fixture()
def host(clock):
    """In-memory host ledger that only enforces the treasury's balance."""
    return InMemoryHostLedger(custodian=FUND, clock=clock)


@pytest.fixture()
def controller(host):
    """Empty fund with five founding managers and a 10% commission."""
    return make_controller(host)


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    return session


@pytest_asyncio.fixture()
async def session_factory():
    """Session factory over a fresh in-memory SQLite database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture(autouse=True)
def _reset_db_circuit_breaker():
    """Close the global breaker so one test's failures never leak into another."""
    from alphafund.core.resilience import CircuitState, db_circuit_breaker

    db_circuit_breaker._state = CircuitState.CLOSED
    db_circuit_breaker._failure_count = 0
    yield
    db_circuit_breaker._state = CircuitState.CLOSED
    db_circuit_breaker._failure_count = 0
