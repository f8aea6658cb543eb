"""
Error taxonomy of the delivery pipeline.

Each error carries the HTTP status and the short public message the API
returns; the detail passed to the constructor is for server logs only.
"""
from __future__ import annotations


class DeliveryError(Exception):
    status_code: int = 500
    public_message: str = "Internal server error"
    reason: str = "internal"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message


class InvalidRequest(DeliveryError):
    status_code = 400
    public_message = "Invalid request"
    reason = "invalid_request"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        # field names only, safe to echo back
        self.public_message = detail


class PaymentNotCompleted(DeliveryError):
    status_code = 400
    public_message = "Payment is not completed"
    reason = "not_completed"

    def __init__(self, status: str) -> None:
        super().__init__(f"transaction status is {status!r}")
        self.status = status


class AmountMismatch(DeliveryError):
    status_code = 400
    public_message = "Payment amount or currency does not match"
    reason = "amount_mismatch"

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(f"expected {expected}, got {got}")
        self.expected = expected
        self.got = got


class UpstreamError(DeliveryError):
    status_code = 502
    public_message = "Payment provider unavailable"
    reason = "upstream_error"


class InvalidToken(DeliveryError):
    status_code = 401
    public_message = "Invalid or expired token"
    reason = "invalid"


class TokenExpired(DeliveryError):
    status_code = 401
    public_message = "Invalid or expired token"
    reason = "expired"


class TokenAlreadyUsed(DeliveryError):
    status_code = 410
    public_message = "This link has already been used"
    reason = "already_used"


class OriginUnreachable(DeliveryError):
    status_code = 502
    public_message = "Download source unavailable, please retry"
    reason = "origin_unreachable"


class AssetUnavailable(DeliveryError):
    status_code = 500
    public_message = "Download failed, please retry"
    reason = "asset_unavailable"
