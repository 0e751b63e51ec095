"""
Domain errors and the FastAPI exception handlers that render them.

Every failure the engine can report is a :class:`FundError` subclass whose
``code`` is the error kind name.  Clients branch on ``code`` so they can tell
a business-rule rejection (``InsufficientShares``) from an infrastructure
failure (``TransferFailed``) without parsing messages.  Error responses
follow one JSON shape::

    {
        "error": true,
        "code": "<ErrorKind>",
        "message": "<human-readable description>"
    }

The engine raises these instead of FastAPI's ``HTTPException``, keeping
business logic framework-agnostic; only :func:`add_exception_handlers` maps
them onto HTTP responses.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain errors  (raised by the engine, caught by handlers below)
# ────────────────────────────────────────────────────────────────────────────


class FundError(Exception):
    """Base class for every typed error the fund engine reports."""

    status_code: int = 400

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidAmount(FundError):
    """Amount is zero, negative, or otherwise out of range."""

    status_code = 422


class InsufficientShares(FundError):
    status_code = 422


class NotMember(FundError):
    """Caller (or target) is not an active member of the fund."""

    status_code = 403


class AlreadyMember(FundError):
    status_code = 409


class AlreadyVoted(FundError):
    status_code = 409


class ProposalNotFound(FundError):
    status_code = 404

    def __init__(self, proposal_id: int):
        super().__init__(f"Proposal {proposal_id} not found")
        self.proposal_id = proposal_id


class InvalidProposal(FundError):
    """Proposal payload is missing fields or names an impossible change."""

    status_code = 422


class ProposalClosed(FundError):
    """Proposal is no longer accepting votes (decided or expired)."""

    status_code = 409


class NotPassed(FundError):
    status_code = 409


class AlreadyExecuted(FundError):
    status_code = 409


class QuorumImpossible(FundError):
    """Action would leave the fund with no active members to vote."""

    status_code = 422


class NothingToPay(FundError):
    status_code = 422


class FundClosed(FundError):
    status_code = 409


class InvalidValuation(FundError):
    status_code = 422


class TransferFailed(FundError):
    """The host ledger refused or failed the value transfer."""

    status_code = 502


class CircuitBreakerError(Exception):
    """Raised when a database call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is OPEN — failing fast. "
            f"Retry after {retry_after:.1f}s."
        )


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(FundError)
    async def fund_error_handler(request: Request, exc: FundError) -> JSONResponse:
        """Render engine errors with their kind so clients can branch on it."""
        if exc.status_code >= 500:
            logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        else:
            logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "code": exc.code, "message": exc.message},
        )

    @app.exception_handler(CircuitBreakerError)
    async def circuit_open_handler(request: Request, exc: CircuitBreakerError) -> JSONResponse:
        """The database is failing fast; tell the client when to come back."""
        return JSONResponse(
            status_code=503,
            content={"error": True, "code": "ServiceUnavailable", "message": str(exc)},
            headers={"Retry-After": str(max(int(exc.retry_after), 1))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "code": "HTTPError", "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return a 422 listing each invalid field and why it failed."""
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={
                "error": True,
                "code": "ValidationError",
                "message": "Validation failed",
                "details": errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "code": "InternalError",
                "message": "Internal Server Error. Please contact support.",
            },
        )
