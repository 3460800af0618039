"""
Prometheus metrics for the inbox service.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Webhook ingestion counters for documents, messages and status updates

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

# HTTP request counter with labels for method, path, and status code
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# Request latency histogram in seconds
# Using default buckets: .005, .01, .025, .05, .075, .1, .25, .5, .75, 1.0, 2.5, 5.0, 7.5, 10.0
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# Webhook documents by outcome
# result: processed, skipped
webhook_documents_total = Counter(
    "webhook_documents_total",
    "Webhook documents seen by the ingestion engine",
    labelnames=["result"]
)

# Message entries by ingestion outcome
# result: created, duplicate, invalid
webhook_messages_total = Counter(
    "webhook_messages_total",
    "Message entries by ingestion outcome",
    labelnames=["result"]
)

# Status entries by ingestion outcome
# result: updated, unmatched, invalid
webhook_statuses_total = Counter(
    "webhook_statuses_total",
    "Status entries by ingestion outcome",
    labelnames=["result"]
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
    # (e.g., /api/conversations/+1111/messages -> /api/conversations/{conversation_id}/messages)
    normalized_path = path.split("?")[0]
    if normalized_path.startswith("/api/conversations/"):
        normalized_path = "/api/conversations/{conversation_id}/messages"

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_document_outcome(result: str) -> None:
    """
    Record the outcome of one webhook document.

    Args:
        result: "processed" or "skipped" (no entry/changes/value structure, unreadable JSON)
    """
    webhook_documents_total.labels(result=result).inc()


def record_message_outcome(result: str) -> None:
    """
    Record the outcome of one message entry.

    Args:
        result: Processing result - one of:
            - "created": New message stored
            - "duplicate": Message already existed (idempotent)
            - "invalid": Entry rejected during validation
    """
    webhook_messages_total.labels(result=result).inc()


def record_status_outcome(result: str) -> None:
    webhook_statuses_total.labels(result=result).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
