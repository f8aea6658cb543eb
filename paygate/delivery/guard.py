"""
Single-use enforcement for download tokens.

ConsumptionStore is process-local state (no persistence, no cross-instance
sharing): the service must run as a single worker process.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from paygate.delivery.errors import TokenAlreadyUsed, TokenExpired
from paygate.delivery.models import TokenClaims
from paygate.delivery.tokens import decode_token
from paygate.utils.metrics import consumption_record_size

logger = logging.getLogger(__name__)


class ConsumptionStore:
    """
    token_id -> expires_at (unix seconds) for every accepted, not rolled back,
    not yet expired consumption.

    try_consume is an atomic insert-if-absent. The critical section never
    awaits, and the lock also covers threaded callers.
    """

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._used: dict[str, int] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)

    def __contains__(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._used

    def try_consume(self, token_id: str, expires_at: int) -> bool:
        """True if token_id was unused and is now marked used."""
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._sweep_interval:
                self._evict_locked(now)
            if token_id in self._used:
                return False
            self._used[token_id] = expires_at
            consumption_record_size.set(len(self._used))
            return True

    def rollback(self, token_id: str) -> None:
        with self._lock:
            self._used.pop(token_id, None)
            consumption_record_size.set(len(self._used))

    def evict_expired(self, before: float | None = None) -> int:
        """Drop entries whose token expired at or before `before` (default: now)."""
        with self._lock:
            return self._evict_locked(self._clock() if before is None else before)

    def _evict_locked(self, before: float) -> int:
        expired = [k for k, exp in self._used.items() if exp <= before]
        for k in expired:
            del self._used[k]
        self._last_sweep = self._clock()
        consumption_record_size.set(len(self._used))
        if expired:
            logger.info("consumption_record_evicted", extra={"evicted": len(expired)})
        return len(expired)


class TokenGuard:
    """Validates a presented token and moves it from unused to used exactly once."""

    def __init__(
        self,
        secret: str,
        store: ConsumptionStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._store = store
        self._clock = clock

    def consume(self, token: str) -> TokenClaims:
        """
        Signature first (InvalidToken), then expiry (TokenExpired, never marks
        the token used), then the atomic mark (TokenAlreadyUsed on replay).
        """
        claims = decode_token(token, self._secret)
        if claims.expires_at <= self._clock():
            raise TokenExpired(f"token {claims.token_id} expired at {claims.expires_at}")
        if not self._store.try_consume(claims.token_id, claims.expires_at):
            raise TokenAlreadyUsed(f"token {claims.token_id} already consumed")
        logger.info(
            "download_token_consumed",
            extra={"token_id": claims.token_id, "transaction_id": claims.transaction_id},
        )
        return claims

    def rollback(self, claims: TokenClaims) -> None:
        """Re-enable a consumed token. Only valid before any response byte was sent."""
        self._store.rollback(claims.token_id)
        logger.warning(
            "download_rollback",
            extra={"token_id": claims.token_id, "transaction_id": claims.transaction_id},
        )
