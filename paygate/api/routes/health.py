from fastapi import APIRouter, Response

from paygate.core.config import settings
from paygate.delivery.streamer import local_asset_ready


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response) -> dict:
    """Readiness probe - returns 503 if no asset source is usable."""
    if settings.asset_origin_url:
        # the origin is only contacted per download; configured is enough
        return {"status": "ready", "source": "origin"}
    if local_asset_ready(settings.asset_file_path):
        return {"status": "ready", "source": "local"}
    response.status_code = 503
    return {"status": "not_ready", "error": "asset file not found"}
