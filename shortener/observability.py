from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import time

# Metrics definitions
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

REDIRECT_TOTAL = Counter("redirect_total", "Total redirects")
REDIRECT_404_TOTAL = Counter("redirect_404_total", "Total failed redirects (404)")
EDIT_CONFLICT_TOTAL = Counter("edit_conflict_total", "Total link updates rejected by the version check")

FIXED_PATHS = {"/health", "/metrics", "/v1/links", "/v1/tokens"}


def metric_path(path: str) -> str:
    """Collapse ids and tokens so label cardinality stays bounded."""
    if path in FIXED_PATHS:
        return path
    if path.startswith("/v1/links/"):
        if path.endswith("/visits"):
            return "/v1/links/{id}/visits"
        return "/v1/links/{id}"
    if len(path) > 1 and "/" not in path[1:]:  # Root redirect /{token}
        return "/{token}"
    return "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        path = metric_path(request.url.path)

        HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=request.method, path=path).observe(process_time)

        return response

def metrics_endpoint(request: Request):
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
