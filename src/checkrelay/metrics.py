"""
Prometheus Metrics for the Check Relay

Tracks:
- Inbound request counts, latency and sizes, labelled by route template
- Registry client requests (in-flight, counts, latency)
- Check set cache hits and misses
"""

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from fastapi import Response

# Path parameter with a converter, e.g. {check:path}
_CONVERTER_RE = re.compile(r"\{(\w+):\w+\}")


# =============================================================================
# Inbound Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "checkrelay_requests_total",
    "Total number of HTTP requests made",
    ["code", "method", "url"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "checkrelay_request_duration_seconds",
    "The HTTP request latencies in seconds",
    ["code", "method", "url"],
    buckets=[0.5, 1, 2, 4, 8, 16]
)

HTTP_REQUEST_SIZE = Histogram(
    "checkrelay_request_size_bytes",
    "The HTTP request sizes in bytes",
    ["code", "method", "url"],
    buckets=[128, 256, 512, 1024]
)

HTTP_RESPONSE_SIZE = Histogram(
    "checkrelay_response_size_bytes",
    "The HTTP response sizes in bytes",
    ["code", "method", "url"],
    buckets=[512, 2048, 8192, 32768]
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "checkrelay_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"]
)


# =============================================================================
# Registry Client Metrics
# =============================================================================

CLIENT_IN_FLIGHT = Gauge(
    "checkrelay_client_in_flight_requests",
    "A gauge of in-flight requests to the registry"
)

CLIENT_REQUESTS_TOTAL = Counter(
    "checkrelay_client_api_requests_total",
    "A counter for requests to the registry",
    ["code", "method"]
)

CLIENT_REQUEST_LATENCY = Histogram(
    "checkrelay_client_request_duration_seconds",
    "A histogram of registry request latencies",
    ["code", "method"]
)


# =============================================================================
# Cache Metrics
# =============================================================================

CACHE_HITS = Counter(
    "checkrelay_cache_hits_total",
    "Total check set cache hits"
)

CACHE_MISSES = Counter(
    "checkrelay_cache_misses_total",
    "Total check set cache misses"
)


# =============================================================================
# Metric Recording Functions
# =============================================================================

def record_http_request(
    method: str,
    url: str,
    status_code: int,
    duration_seconds: float,
    request_size: int = 0,
    response_size: int = 0,
):
    """
    Record an inbound HTTP request.

    Args:
        method: HTTP method (GET, HEAD)
        url: Route template, never the raw path, to keep label cardinality low
        status_code: Response status code
        duration_seconds: Request duration
        request_size: Approximate request size in bytes
        response_size: Response body size in bytes
    """
    code = str(status_code)
    HTTP_REQUESTS_TOTAL.labels(code=code, method=method, url=url).inc()
    HTTP_REQUEST_LATENCY.labels(code=code, method=method, url=url).observe(duration_seconds)
    HTTP_REQUEST_SIZE.labels(code=code, method=method, url=url).observe(request_size)
    HTTP_RESPONSE_SIZE.labels(code=code, method=method, url=url).observe(response_size)


def record_client_request(method: str, status_code: int, duration_seconds: float):
    """Record a completed registry request. Transport failures use code '0'."""
    code = str(status_code)
    CLIENT_REQUESTS_TOTAL.labels(code=code, method=method).inc()
    CLIENT_REQUEST_LATENCY.labels(code=code, method=method).observe(duration_seconds)


def route_template(scope: dict) -> str:
    """
    Label for an inbound request.

    Uses the matched route path so that /verify/checks/id/web-1 and
    /verify/checks/id/web-2 share the /verify/checks/id/{check} label.
    """
    route = scope.get("route")
    path = getattr(route, "path", None)
    if path is None:
        return "unmatched"
    path = _CONVERTER_RE.sub(r"{\1}", path)
    if len(path) > 1:
        path = path.rstrip("/")
    return path


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
