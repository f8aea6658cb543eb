"""
Download tokens: HS256 JWTs scoped to a product (sub) and a transaction (txn).

The signature binds every claim, so changing the subject or the transaction
id invalidates the token. jti is the identity the consumption record tracks.
"""
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

import jwt

from paygate.delivery.errors import InvalidToken
from paygate.delivery.models import IssuedToken, TokenClaims

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "txn", "iat", "exp", "jti"]


class TokenIssuer:
    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 3600,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, subject: str, transaction_id: str, ttl: int | None = None) -> IssuedToken:
        """Mint a token; never touches the consumption record."""
        ttl = self.ttl_seconds if ttl is None else ttl
        issued_at = int(self._clock())
        expires_at = issued_at + ttl
        token_id = uuid.uuid4().hex
        payload = {
            "sub": subject,
            "txn": transaction_id,
            "iat": issued_at,
            "exp": expires_at,
            "jti": token_id,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        logger.info(
            "download_token_issued",
            extra={"token_id": token_id, "transaction_id": transaction_id, "subject": subject},
        )
        return IssuedToken(
            token=token,
            token_id=token_id,
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


def decode_token(token: str, secret: str) -> TokenClaims:
    """
    Check signature and claim shape only. Expiry is left to the caller so the
    guard can order its checks and tests can control the clock.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken(f"{type(e).__name__}: {e}") from e

    try:
        return TokenClaims(
            token_id=str(payload["jti"]),
            subject=str(payload["sub"]),
            transaction_id=str(payload["txn"]),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
    except (TypeError, ValueError) as e:
        raise InvalidToken(f"malformed claims: {e}") from e
