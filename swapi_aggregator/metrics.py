import time
from fastapi import FastAPI, Request, Response
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# --- Metric objects ---
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["path", "method", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "Request latency seconds",
    labelnames=["path", "method"],
)
UPSTREAM_REQUESTS = Counter(
    "upstream_requests_total",
    "Upstream page/entity fetches",
    labelnames=["collection", "outcome"],
)
CACHE_LOOKUPS = Counter(
    "cache_lookups_total", "Cache-aside lookups", labelnames=["result"]
)
CACHE_ERRORS = Counter(
    "cache_errors_total", "Cache store operation errors", labelnames=["op"]
)
SYNC_RUNS = Counter(
    "sync_runs_total", "Per-collection sync outcomes", labelnames=["collection", "outcome"]
)


# --- Helpers called from the core ---
def record_upstream(collection: str, outcome: str) -> None:
    UPSTREAM_REQUESTS.labels(collection=collection, outcome=outcome).inc()


def record_cache_lookup(hit: bool) -> None:
    CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()


def record_cache_error(op: str) -> None:
    CACHE_ERRORS.labels(op=op).inc()


def record_sync(collection: str, ok: bool) -> None:
    SYNC_RUNS.labels(collection=collection, outcome="ok" if ok else "error").inc()


# --- Installation: middleware + /metrics endpoint ---
def install(app: FastAPI) -> None:
    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):
        t0 = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = getattr(response, "status_code", 500)
            return response
        finally:
            # label by route template so entity ids don't explode cardinality
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            REQUEST_LATENCY.labels(path=path, method=request.method).observe(
                time.perf_counter() - t0
            )
            REQUESTS.labels(path=path, method=request.method, status=str(status)).inc()

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
