"""
Alpha Fund Engine — application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers
and routers, and manages the lifecycle: create tables, resume (or found) the
fund from its stored snapshot, and expose it through a single
:class:`~alphafund.services.fund_service.FundService`.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlmodel import SQLModel

import alphafund.models  # noqa: F401  (registers tables on SQLModel.metadata)
from alphafund.api.v1.api import api_router
from alphafund.core.config import settings
from alphafund.core.exceptions import add_exception_handlers
from alphafund.core.logging import setup_logging
from alphafund.core.resilience import db_circuit_breaker
from alphafund.db.session import AsyncSessionLocal, engine
from alphafund.host import HostLedger, InMemoryHostLedger
from alphafund.middleware import RequestIDMiddleware, RequestTimingMiddleware
from alphafund.models.event import FundEventRecord
from alphafund.repositories.event_repo import EventRepository
from alphafund.services.fund_service import FundService

setup_logging()
logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Application lifespan
# ────────────────────────────────────────────────────────────────────────────


async def _create_tables(max_retries: int = 5, retry_delay: float = 2.0) -> None:
    """Create tables, retrying with exponential back-off while the DB comes up."""
    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            return
        except (OSError, ConnectionError, TimeoutError) as exc:
            if attempt == max_retries:
                raise
            logger.warning(
                "Database connection failed (attempt %d/%d): %s — retrying in %.0fs…",
                attempt,
                max_retries,
                exc,
                retry_delay,
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
      - Creates tables.
      - Resumes the stored fund, or founds one from settings on an empty DB.
      - Uses ``app.state.host_ledger`` when a deployment has installed a real
        host adapter; otherwise an in-memory ledger custodying FUND_ACCOUNT.

    Shutdown:
      - Disposes of the connection pool.

    Startup fails if the stored snapshot cannot be loaded.
    """
    await _create_tables()

    host: HostLedger = getattr(app.state, "host_ledger", None) or InMemoryHostLedger(
        custodian=settings.FUND_ACCOUNT
    )
    app.state.host_ledger = host
    app.state.fund_service = await FundService.bootstrap(host, AsyncSessionLocal, settings)
    logger.info("Fund service ready (account=%s)", settings.FUND_ACCOUNT)

    yield

    logger.info("Shutting down — disposing connection pool")
    await engine.dispose()


# ────────────────────────────────────────────────────────────────────────────
# FastAPI application instance
# ────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description=(
        "Pooled fund engine: share ledger, high-water-mark commission and "
        "member-voted governance over a custodied treasury."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# ── Middleware (order matters: the last one added runs first) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness probe.

    ``persistence`` is ``"stale"`` when the latest snapshot could not be
    written; the fund keeps operating from memory and catches up on the next
    successful save.
    """
    db_healthy = True
    events_recorded = None
    try:
        async with AsyncSessionLocal() as session:
            events_recorded = await EventRepository(FundEventRecord, session).count()
    except Exception:
        db_healthy = False

    service: FundService = app.state.fund_service
    stale = service.persistence_stale
    return {
        "status": "ok" if db_healthy and not stale else "degraded",
        "version": "1.0.0",
        "database": db_healthy,
        "persistence": "stale" if stale else "current",
        "events_recorded": events_recorded,
        "pending_events": service.pending_events,
        "circuit_breaker": db_circuit_breaker.get_status(),
    }
