"""
DTO of the delivery pipeline: VerifiedOrder (output of verify), IssuedToken,
TokenClaims (accepted token, input of deliver).
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# ----- Confirmed payment (read-only copy of the processor's transaction) -----


class VerifiedOrder(BaseModel):
    """Transaction confirmed as COMPLETED with the expected amount and currency."""

    transaction_id: str
    status: str
    amount: str = Field(..., description="Decimal amount exactly as the processor returned it")
    currency: str

    model_config = {"frozen": True}


# ----- Issued capability -----


class IssuedToken(BaseModel):
    token: str = Field(..., description="Opaque signed token string")
    token_id: str
    expires_at: datetime = Field(..., description="Absolute UTC expiry, for client display")

    model_config = {"frozen": True}


# ----- Verified token payload -----


class TokenClaims(BaseModel):
    """Decoded and signature-checked token payload."""

    token_id: str
    subject: str
    transaction_id: str
    issued_at: int
    expires_at: int

    model_config = {"frozen": True}
