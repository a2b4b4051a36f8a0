"""Prometheus metrics shared by the app and services."""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "blogauth_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "blogauth_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
AUTH_ATTEMPTS = Counter(
    "blogauth_auth_attempts_total",
    "Authentication operations by outcome",
    ["operation", "outcome"],
)
TOKEN_REFRESH = Counter(
    "blogauth_token_refresh_total",
    "Refresh token exchanges by outcome",
    ["outcome"],
)
