"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
books_submitted_total = Counter(
    "books_submitted_total",
    "Total number of admitted book generation requests",
)

books_completed_total = Counter(
    "books_completed_total",
    "Total number of books that reached completed",
)

books_failed_total = Counter(
    "books_failed_total",
    "Total number of books that reached failed",
    ["stage"],  # admission, text, dispatch, images, watchdog
)

credit_operations_total = Counter(
    "credit_operations_total",
    "Total credit ledger operations",
    ["operation"],  # DEBIT, REFUND
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Total admissions rejected for insufficient credits",
)

story_requests_total = Counter(
    "story_requests_total",
    "Total story writer requests",
    ["status"],  # ok, error, parse_error
)

render_units_total = Counter(
    "render_units_total",
    "Finished page/cover render units",
    ["outcome"],  # completed, failed, skipped
)

render_trigger_attempts_total = Counter(
    "render_trigger_attempts_total",
    "Renderer trigger attempts",
    ["outcome"],  # ok, error
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
story_request_duration_seconds = Histogram(
    "story_request_duration_seconds",
    "Story writer request duration",
    buckets=[1, 5, 10, 30, 60, 120, 180],
)

render_duration_seconds = Histogram(
    "render_duration_seconds",
    "Wall time of one page/cover render unit",
    ["outcome"],
    buckets=[10, 30, 60, 120, 300, 600, 900, 1200],
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
