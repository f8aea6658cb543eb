"""
FastAPI dependencies for the delivery pipeline.
Shared resources live on app.state (created in the lifespan); components are
cheap wrappers built per request.
"""
import httpx
from fastapi import Depends, Request

from paygate.core.config import settings
from paygate.delivery import (
    ConsumptionStore,
    DeliveryStreamer,
    PaymentVerifier,
    TokenGuard,
    TokenIssuer,
)


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_consumption_store(request: Request) -> ConsumptionStore:
    return request.app.state.consumption


def get_payment_verifier(client: httpx.AsyncClient = Depends(get_http_client)) -> PaymentVerifier:
    return PaymentVerifier.from_settings(client, settings)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(settings.jwt_secret_key, settings.download_token_ttl_seconds)


def get_token_guard(store: ConsumptionStore = Depends(get_consumption_store)) -> TokenGuard:
    return TokenGuard(settings.jwt_secret_key, store)


def get_delivery_streamer(
    client: httpx.AsyncClient = Depends(get_http_client),
    guard: TokenGuard = Depends(get_token_guard),
) -> DeliveryStreamer:
    return DeliveryStreamer.from_settings(client, guard, settings)
