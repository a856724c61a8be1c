"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
token_purchases_total = Counter(
    "token_purchases_total",
    "Token purchase lifecycle events",
    ["event"],  # invoice_created, completed, expired, timeout
)

token_spend_total = Counter(
    "token_spend_total",
    "Token spend attempts by outcome",
    ["result"],  # unlocked, already_unlocked, insufficient, error
)

tokens_credited_total = Counter(
    "tokens_credited_total",
    "Total tokens credited after settled purchases",
)

tokens_spent_total = Counter(
    "tokens_spent_total",
    "Total tokens spent on content unlocks",
)

cryptopay_requests_total = Counter(
    "cryptopay_requests_total",
    "Total Crypto Pay API requests",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
cryptopay_request_duration_seconds = Histogram(
    "cryptopay_request_duration_seconds",
    "Crypto Pay API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)

# Gauges
active_streams = Gauge(
    "active_streams",
    "Live streams currently on air",
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
