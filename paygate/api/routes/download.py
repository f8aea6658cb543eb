"""
GET /download?token=...: consume the token once and stream the asset.
"""
import logging

from fastapi import APIRouter, Depends

from paygate.api.deps import get_delivery_streamer, get_token_guard
from paygate.api.errors import error_response
from paygate.delivery import DeliveryError, DeliveryStreamer, InvalidRequest, TokenGuard
from paygate.schemas.delivery import ErrorOut
from paygate.utils.metrics import download_requests_total

logger = logging.getLogger(__name__)

router = APIRouter(tags=["delivery"])

_ERRORS = {code: {"model": ErrorOut} for code in (400, 401, 410, 500, 502)}


@router.get("/download", responses={200: {"content": {"application/zip": {}}}, **_ERRORS})
async def download(
    token: str | None = None,
    guard: TokenGuard = Depends(get_token_guard),
    streamer: DeliveryStreamer = Depends(get_delivery_streamer),
):
    try:
        if not token:
            raise InvalidRequest("token is required")
        claims = guard.consume(token)
    except DeliveryError as e:
        download_requests_total.labels(outcome=e.reason).inc()
        logger.info("download_rejected", extra={"error": e.detail, "status_code": e.status_code})
        return error_response(e)
    except Exception:
        download_requests_total.labels(outcome="error").inc()
        logger.exception("download_guard_failed")
        return error_response(DeliveryError())

    download_requests_total.labels(outcome="accepted").inc()
    try:
        return await streamer.deliver(claims)
    except DeliveryError as e:
        # deliver already rolled the token back
        return error_response(e)
    except Exception:
        logger.exception("download_failed", extra={"token_id": claims.token_id})
        return error_response(DeliveryError())
