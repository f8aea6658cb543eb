"""
POST /verify: confirm a PayPal payment and hand out a single-use download link.
"""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends

from paygate.api.deps import get_payment_verifier, get_token_issuer
from paygate.api.errors import error_response
from paygate.core.config import settings
from paygate.delivery import (
    AmountMismatch,
    DeliveryError,
    InvalidRequest,
    PaymentVerifier,
    TokenIssuer,
)
from paygate.schemas.delivery import ErrorOut, VerifyIn, VerifyOut
from paygate.utils.metrics import verify_requests_total

logger = logging.getLogger(__name__)

router = APIRouter(tags=["delivery"])


def _expected_price(body: VerifyIn) -> tuple[str, str]:
    """
    The configured price is authoritative. Client-supplied values are only
    accepted when they repeat it, so a client cannot lower its own check.
    """
    amount = settings.product_amount
    currency = settings.product_currency
    if body.expected_amount is not None and body.expected_amount != amount:
        raise AmountMismatch(expected=f"{amount} {currency}", got=f"{body.expected_amount} (client)")
    if body.expected_currency is not None and body.expected_currency.upper() != currency:
        raise AmountMismatch(expected=f"{amount} {currency}", got=f"{body.expected_currency} (client)")
    return amount, currency


@router.post(
    "/verify",
    response_model=VerifyOut,
    responses={400: {"model": ErrorOut}, 502: {"model": ErrorOut}, 500: {"model": ErrorOut}},
)
async def verify_payment(
    body: VerifyIn = Body(...),
    verifier: PaymentVerifier = Depends(get_payment_verifier),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    try:
        if not body.transaction_id:
            raise InvalidRequest("transactionId is required")
        amount, currency = _expected_price(body)
        order = await verifier.verify(body.transaction_id, amount, currency)
        issued = issuer.issue(body.product or settings.product_name, order.transaction_id)
    except DeliveryError as e:
        verify_requests_total.labels(outcome=e.reason).inc()
        logger.warning(
            "verify_rejected",
            extra={"transaction_id": body.transaction_id, "error": e.detail, "status_code": e.status_code},
        )
        return error_response(e)
    except Exception:
        verify_requests_total.labels(outcome="error").inc()
        logger.exception("verify_failed", extra={"transaction_id": body.transaction_id})
        return error_response(DeliveryError())

    verify_requests_total.labels(outcome="issued").inc()
    download_url = f"{settings.public_base_url}/download?token={quote(issued.token, safe='')}"
    return VerifyOut(
        download_url=download_url,
        expires_at=issued.expires_at.isoformat().replace("+00:00", "Z"),
    )
