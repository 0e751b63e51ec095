"""
Application configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
All sensitive values (DB credentials) come from environment — never hardcoded.

Fund economics and voting rules live here too, so the numbers that govern
custody (commission rate, quorum, threshold, voting window) are auditable in
one place and can be changed per deployment without touching the engine.
"""

from typing import List

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Alpha Fund engine and its HTTP surface.

    Environment variables are loaded automatically from .env if present.
    In production, these should be injected via the container orchestrator
    (e.g., Kubernetes Secrets, AWS Parameter Store).
    """

    PROJECT_NAME: str = "Alpha Fund Engine"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (no external DB required) ──
    USE_SQLITE: bool = False

    # ── PostgreSQL connection parameters ──
    # Empty defaults let USE_SQLITE=true work without dummy PG variables; the
    # validator below still fails fast when PostgreSQL mode is selected.
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a connection from the pool
    DB_POOL_RECYCLE: int = 1800  # seconds before a connection is recycled

    # ── Logging ──
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── Resilience (snapshot persistence) ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0
    PERSIST_MAX_RETRIES: int = 3
    PERSIST_BASE_DELAY: float = 0.5

    # ── Fund ──
    # Account identity of the treasury on the host ledger.
    FUND_ACCOUNT: str = "alpha-fund-treasury"
    # Comma-separated managers seeded on first boot (empty store only).
    FUND_FOUNDING_MANAGERS: str = "founder"
    DEFAULT_COMMISSION_RATE_BPS: int = 1000

    # ── Governance ──
    VOTING_WINDOW_SECONDS: int = 3 * 24 * 60 * 60
    QUORUM_BPS: int = 6000
    THRESHOLD_BPS: int = 5001
    # Optional stricter rules for commission-rate changes; 0 means "use default".
    RATE_CHANGE_QUORUM_BPS: int = 0
    RATE_CHANGE_THRESHOLD_BPS: int = 0

    # ── CORS ──
    CORS_ORIGINS: str = "*"

    # ── Misc ──
    DEBUG: bool = False

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Fail fast if PostgreSQL credentials are missing in production mode."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"PostgreSQL mode requires these environment variables: "
                    f"{', '.join(missing)}. Set them in .env or the environment, "
                    f"or run with USE_SQLITE=true for an in-memory database."
                )
        return self

    @model_validator(mode="after")
    def _check_basis_points(self) -> "Settings":
        """Reject basis-point values outside 0..10000 and an unreachable quorum."""
        for name in (
            "DEFAULT_COMMISSION_RATE_BPS",
            "QUORUM_BPS",
            "THRESHOLD_BPS",
            "RATE_CHANGE_QUORUM_BPS",
            "RATE_CHANGE_THRESHOLD_BPS",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 10_000:
                raise ValueError(f"{name} must be between 0 and 10000 (got {value})")
        if self.QUORUM_BPS == 0:
            raise ValueError("QUORUM_BPS must be greater than zero")
        if self.VOTING_WINDOW_SECONDS <= 0:
            raise ValueError("VOTING_WINDOW_SECONDS must be positive")
        return self

    @property
    def DATABASE_URL(self) -> str:
        """Construct the async database DSN (aiosqlite or asyncpg)."""
        if self.USE_SQLITE:
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def founding_managers(self) -> List[str]:
        """Founding manager accounts, blanks dropped, order preserved."""
        return [a.strip() for a in self.FUND_FOUNDING_MANAGERS.split(",") if a.strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
