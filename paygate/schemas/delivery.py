from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VerifyIn(BaseModel):
    """Body of POST /verify (camelCase, as sent by the checkout page)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    transaction_id: str | None = Field(default=None, alias="transactionId")
    expected_amount: str | None = Field(default=None, alias="expectedAmount")
    expected_currency: str | None = Field(default=None, alias="expectedCurrency")
    product: str | None = None

    @field_validator("transaction_id", "expected_amount", "expected_currency", "product", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class VerifyOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    download_url: str = Field(..., alias="downloadUrl")
    expires_at: str = Field(..., alias="expiresAt")


class ErrorOut(BaseModel):
    ok: bool = False
    message: str
