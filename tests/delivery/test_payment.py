"""Tests for PaymentVerifier against a mocked PayPal REST API."""
import asyncio

import httpx
import pytest

from paygate.delivery.errors import AmountMismatch, PaymentNotCompleted, UpstreamError
from paygate.delivery.payment import PaymentVerifier

BASE = "https://paypal.test"


def _order(status="COMPLETED", value="5.00", currency="EUR", order_id="ORDER1"):
    return {
        "id": order_id,
        "status": status,
        "purchase_units": [{"amount": {"currency_code": currency, "value": value}}],
    }


def _transport(order=None, *, token_status=200, order_status=200, order_body=None, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(token_status, json={"access_token": "A21-token", "token_type": "Bearer"})
        if request.url.path.startswith("/v2/checkout/orders/"):
            if order_body is not None:
                return httpx.Response(order_status, content=order_body)
            return httpx.Response(order_status, json=order if order is not None else _order())
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _verify(transport, *attempts):
    """Run one verify() per (txn, amount, currency) on a shared client; return the last result."""
    attempts = attempts or (("ORDER1", "5.00", "EUR"),)

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            verifier = PaymentVerifier(client, base_url=BASE, client_id="cid", client_secret="csecret")
            result = None
            for txn, amount, currency in attempts:
                result = await verifier.verify(txn, amount, currency)
            return result

    return asyncio.run(run())


class TestVerifySuccess:
    def test_completed_matching_order(self):
        order = _verify(_transport())
        assert order.transaction_id == "ORDER1"
        assert order.status == "COMPLETED"
        assert order.amount == "5.00"
        assert order.currency == "EUR"

    def test_uses_client_credentials_then_bearer(self):
        calls = []
        _verify(_transport(calls=calls))

        token_req, order_req = calls
        assert token_req.method == "POST"
        assert token_req.headers["Authorization"].startswith("Basic ")
        assert token_req.content == b"grant_type=client_credentials"
        assert order_req.method == "GET"
        assert order_req.headers["Authorization"] == "Bearer A21-token"

    def test_reauthenticates_on_every_call(self):
        calls = []
        _verify(_transport(calls=calls), ("ORDER1", "5.00", "EUR"), ("ORDER1", "5.00", "EUR"))
        token_calls = [c for c in calls if c.url.path == "/v1/oauth2/token"]
        assert len(token_calls) == 2

    def test_transaction_id_is_path_escaped(self):
        calls = []
        _verify(_transport(calls=calls), ("ab/c", "5.00", "EUR"))
        assert calls[1].url.raw_path == b"/v2/checkout/orders/ab%2Fc"


class TestVerifyRejections:
    @pytest.mark.parametrize("status", ["APPROVED", "CREATED", "VOIDED", "PAYER_ACTION_REQUIRED"])
    def test_not_completed(self, status):
        with pytest.raises(PaymentNotCompleted) as exc:
            _verify(_transport(_order(status=status)))
        assert exc.value.status == status

    def test_not_completed_wins_over_amount(self):
        with pytest.raises(PaymentNotCompleted):
            _verify(_transport(_order(status="APPROVED", value="1.00", currency="USD")))

    def test_amount_mismatch(self):
        with pytest.raises(AmountMismatch) as exc:
            _verify(_transport(_order(value="4.99")))
        assert exc.value.expected == "5.00 EUR"
        assert exc.value.got == "4.99 EUR"

    def test_currency_mismatch(self):
        with pytest.raises(AmountMismatch):
            _verify(_transport(_order(currency="USD")))

    def test_amount_compared_as_exact_string(self):
        with pytest.raises(AmountMismatch):
            _verify(_transport(_order(value="5.0")))


class TestVerifyUpstreamErrors:
    def test_token_endpoint_rejects_credentials(self):
        calls = []
        with pytest.raises(UpstreamError):
            _verify(_transport(token_status=401, calls=calls))
        assert len(calls) == 1

    def test_order_not_found(self):
        with pytest.raises(UpstreamError):
            _verify(_transport(order_status=404))

    def test_malformed_json(self):
        with pytest.raises(UpstreamError):
            _verify(_transport(order_body=b"<html>oops</html>"))

    def test_missing_purchase_units(self):
        with pytest.raises(UpstreamError):
            _verify(_transport({"id": "ORDER1", "status": "COMPLETED"}))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError):
            _verify(httpx.MockTransport(handler))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamError):
            _verify(httpx.MockTransport(handler))
