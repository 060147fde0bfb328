"""
Prometheus metrics for the inbox API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Private message outcome counter (result)
- Notification dispatch counter (channel, result)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# result: sent, deleted, cleared, not_found
private_messages_total = Counter(
    "private_messages_total",
    "Total private message operations by outcome",
    labelnames=["result"]
)

# channel: email, push; result: sent, skipped
notifications_total = Counter(
    "notifications_total",
    "Total new-message notifications by channel and outcome",
    labelnames=["channel", "result"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Normalize path to avoid high-cardinality labels
    normalized_path = path.split("?")[0]
    if normalized_path.startswith("/inbox/messages/"):
        normalized_path = "/inbox/messages/{message_id}"

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_message_outcome(result: str) -> None:
    private_messages_total.labels(result=result).inc()


def record_notification(channel: str, result: str) -> None:
    notifications_total.labels(channel=channel, result=result).inc()


def get_metrics() -> bytes:
    """Generate Prometheus exposition format metrics."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
