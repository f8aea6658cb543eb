"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
verify_requests_total = Counter(
    "verify_requests_total",
    "Total payment verification requests",
    ["outcome"],  # issued, not_completed, amount_mismatch, upstream_error, invalid_request, error
)

payment_processor_requests_total = Counter(
    "payment_processor_requests_total",
    "Total payment processor API requests",
    ["operation", "status"],
)

download_requests_total = Counter(
    "download_requests_total",
    "Total download requests by token guard decision",
    ["outcome"],  # accepted, missing, invalid, expired, already_used, error
)

downloads_total = Counter(
    "downloads_total",
    "Total asset transfers",
    ["source", "outcome"],  # source: origin, local; outcome: completed, aborted, abandoned, unavailable
)

token_rollbacks_total = Counter(
    "token_rollbacks_total",
    "Total token consumptions rolled back after a pre-start delivery failure",
    ["source"],
)

# Histograms
payment_processor_request_duration_seconds = Histogram(
    "payment_processor_request_duration_seconds",
    "Payment processor API request duration",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10],
)

# Gauges
consumption_record_size = Gauge(
    "consumption_record_size",
    "Token ids currently held in the consumption record",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
