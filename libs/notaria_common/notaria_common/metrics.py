from prometheus_client import Counter, Histogram

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "HTTP requests",
    labelnames=("service", "method", "endpoint", "status_code"),
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=("service", "method", "endpoint"),
    buckets=(0.05, 0.1, 0.2, 0.5, 1, 2, 5, 10),
)


def record_request(
    service: str, method: str, endpoint: str, status_code: int, duration: float
) -> None:
    HTTP_REQUESTS.labels(
        service=service,
        method=method,
        endpoint=endpoint,
        status_code=str(status_code),
    ).inc()
    HTTP_REQUEST_DURATION.labels(
        service=service, method=method, endpoint=endpoint
    ).observe(duration)
