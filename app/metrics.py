"""
Prometheus metrics for the site CMS API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Login attempt counter (result)
- Contact submission counter (result)
- Page view counter

Metrics are stored in-memory using prometheus-client.
"""

import re

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
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# result: success, invalid_credentials, validation_error
login_attempts_total = Counter(
    "login_attempts_total",
    "Total admin login attempts",
    labelnames=["result"]
)

# result: created, validation_error
contact_submissions_total = Counter(
    "contact_submissions_total",
    "Total contact form submissions",
    labelnames=["result"]
)

page_views_recorded_total = Counter(
    "page_views_recorded_total",
    "Total page views recorded"
)

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_path(path: str) -> str:
    """
    Collapse query strings and numeric path segments so that
    /api/admin/contacts/17/read and /api/admin/contacts/18/read share a label.
    """
    return _NUMERIC_SEGMENT.sub("/:id", path.split("?")[0])


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = normalize_path(path)

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_login_attempt(result: str) -> None:
    login_attempts_total.labels(result=result).inc()


def record_contact_submission(result: str) -> None:
    contact_submissions_total.labels(result=result).inc()


def record_page_view() -> None:
    page_views_recorded_total.inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
