"""
Payment-gated single-use delivery pipeline.
verify (payment) -> issue (token) -> consume (guard) -> deliver (streamer);
deliver rolls the guard back when the source fails, or the client leaves, before
the response starts.
"""
from paygate.delivery.errors import (
    AmountMismatch,
    AssetUnavailable,
    DeliveryError,
    InvalidRequest,
    InvalidToken,
    OriginUnreachable,
    PaymentNotCompleted,
    TokenAlreadyUsed,
    TokenExpired,
    UpstreamError,
)
from paygate.delivery.guard import ConsumptionStore, TokenGuard
from paygate.delivery.models import IssuedToken, TokenClaims, VerifiedOrder
from paygate.delivery.payment import PaymentVerifier
from paygate.delivery.streamer import DeliveryResponse, DeliveryStreamer
from paygate.delivery.tokens import TokenIssuer, decode_token

__all__ = [
    "AmountMismatch",
    "AssetUnavailable",
    "ConsumptionStore",
    "DeliveryError",
    "DeliveryResponse",
    "DeliveryStreamer",
    "InvalidRequest",
    "InvalidToken",
    "IssuedToken",
    "OriginUnreachable",
    "PaymentNotCompleted",
    "PaymentVerifier",
    "TokenAlreadyUsed",
    "TokenClaims",
    "TokenExpired",
    "TokenGuard",
    "TokenIssuer",
    "UpstreamError",
    "VerifiedOrder",
    "decode_token",
]
