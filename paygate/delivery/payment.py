"""
PaymentVerifier: confirms a PayPal order is COMPLETED for the expected amount.

Two read-only calls per verification (client-credentials grant, then order
lookup). Nothing is cached and nothing is retried: a failure is surfaced to
the caller immediately.
"""
from __future__ import annotations

import logging
import time
from urllib.parse import quote

import httpx

from paygate.core.config import Settings
from paygate.delivery.errors import AmountMismatch, PaymentNotCompleted, UpstreamError
from paygate.delivery.models import VerifiedOrder
from paygate.utils.metrics import (
    payment_processor_requests_total,
    payment_processor_request_duration_seconds,
)

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"


class PaymentVerifier:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "PaymentVerifier":
        return cls(
            client,
            base_url=settings.paypal_base_url,
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            timeout=settings.paypal_timeout,
        )

    def _record_request(self, operation: str, status: str, duration: float) -> None:
        payment_processor_requests_total.labels(operation=operation, status=status).inc()
        payment_processor_request_duration_seconds.labels(operation=operation).observe(duration)

    async def _request_json(self, operation: str, method: str, path: str, **kwargs) -> dict:
        """Call the processor; any transport, status or body problem becomes UpstreamError."""
        start = time.perf_counter()
        try:
            resp = await self._client.request(
                method, f"{self._base_url}{path}", timeout=self._timeout, **kwargs
            )
        except httpx.HTTPError as e:
            self._record_request(operation, "network_error", time.perf_counter() - start)
            raise UpstreamError(f"{operation}: {type(e).__name__}: {e}") from e

        self._record_request(operation, str(resp.status_code), time.perf_counter() - start)
        if not resp.is_success:
            raise UpstreamError(f"{operation}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"{operation}: malformed JSON body") from e
        if not isinstance(data, dict):
            raise UpstreamError(f"{operation}: unexpected body type {type(data).__name__}")
        return data

    async def _access_token(self) -> str:
        data = await self._request_json(
            "oauth_token",
            "POST",
            "/v1/oauth2/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise UpstreamError("oauth_token: access_token missing")
        return token

    async def fetch_order(self, transaction_id: str) -> dict:
        access_token = await self._access_token()
        return await self._request_json(
            "get_order",
            "GET",
            f"/v2/checkout/orders/{quote(transaction_id, safe='')}",
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )

    async def verify(
        self, transaction_id: str, expected_amount: str, expected_currency: str
    ) -> VerifiedOrder:
        """
        Raise PaymentNotCompleted / AmountMismatch / UpstreamError, or return the
        confirmed order. Amount and currency are compared as exact strings:
        "5.0" does not match "5.00".
        """
        order = await self.fetch_order(transaction_id)

        status = order.get("status")
        if not isinstance(status, str):
            raise UpstreamError("get_order: status missing")
        if status != COMPLETED:
            raise PaymentNotCompleted(status)

        amount, currency = _extract_amount(order)
        if amount != expected_amount or currency != expected_currency:
            raise AmountMismatch(
                expected=f"{expected_amount} {expected_currency}",
                got=f"{amount} {currency}",
            )

        logger.info(
            "payment_verified",
            extra={"transaction_id": transaction_id, "status": status},
        )
        return VerifiedOrder(
            transaction_id=transaction_id,
            status=status,
            amount=amount,
            currency=currency,
        )


def _extract_amount(order: dict) -> tuple[str, str]:
    try:
        amount = order["purchase_units"][0]["amount"]
        value = amount["value"]
        currency = amount["currency_code"]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamError("get_order: purchase_units[0].amount missing") from e
    if not isinstance(value, str) or not isinstance(currency, str):
        raise UpstreamError("get_order: amount fields are not strings")
    return value, currency
