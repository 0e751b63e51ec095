"""
Common / shared Pydantic schemas used across multiple endpoints.

Standard error model, so the OpenAPI document shows the error contract and
not just the happy path, plus a helper for rendering fixed-point prices.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from alphafund.engine.state import PRICE_SCALE


def price_to_decimal(scaled: int) -> str:
    """Render a ``PRICE_SCALE`` fixed-point price as a plain decimal string."""
    value = Decimal(scaled) / Decimal(PRICE_SCALE)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all non-validation error handlers."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    code: str = Field(
        ...,
        description="Error kind, stable for programmatic handling",
        examples=["InsufficientShares"],
    )
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Account 'alice' holds 10 shares, cannot redeem 20"],
    )
