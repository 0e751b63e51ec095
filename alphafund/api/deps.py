"""
Shared FastAPI dependencies.

The :class:`FundService` is created once at startup and stored on
``app.state``; tests swap it through ``app.dependency_overrides``.
"""

from fastapi import Header, Request

from alphafund.services.fund_service import FundService


def get_fund_service(request: Request) -> FundService:
    """Return the application's single :class:`FundService`."""
    return request.app.state.fund_service


def get_caller(
    x_account: str = Header(
        ...,
        alias="X-Account",
        min_length=1,
        max_length=255,
        description="Caller account, as authenticated by the host gateway",
    ),
) -> str:
    """Account identity of the caller, supplied by the host in ``X-Account``."""
    return x_account
