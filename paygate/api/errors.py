import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from paygate.delivery.errors import DeliveryError

logger = logging.getLogger(__name__)


def error_response(exc: DeliveryError) -> JSONResponse:
    """Short public message only; the detail stays in the server log."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "message": exc.public_message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """400 {ok:false} instead of FastAPI's default 422 with the full error list."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
    logger.warning(
        "request_validation_failed",
        extra={"path": request.url.path, "error": ",".join(fields)},
    )
    return JSONResponse(
        status_code=400,
        content={"ok": False, "message": f"Invalid request: {', '.join(fields)}"},
    )
