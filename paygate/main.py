"""
Main FastAPI application for the payment-gated download service.
Serves /verify, /download, health probes and metrics.

Run with a single worker: the consumption record is process-local.
"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from paygate.api.errors import request_validation_handler
from paygate.api.middleware import RequestLogMiddleware
from paygate.api.routes import download, health, verify
from paygate.core.config import settings
from paygate.core.logging import configure_logging
from paygate.delivery import ConsumptionStore
from paygate.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.paypal_timeout),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.consumption = ConsumptionStore(
        sweep_interval_seconds=settings.consumption_sweep_interval_seconds,
    )
    logger.info(
        "service_started",
        extra={"source": "origin" if settings.asset_origin_url else "local"},
    )
    try:
        yield
    finally:
        await app.state.http.aclose()


app = FastAPI(
    title="Paygate Download API",
    description="Payment-verified single-use download links",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:3001"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestLogMiddleware, header_name=settings.request_id_header)

app.add_exception_handler(RequestValidationError, request_validation_handler)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(verify.router)
app.include_router(download.router)
app.include_router(metrics_router)
