"""FastAPI app, lifespan bootstrap, sync worker and HTTP routes.

The HTTP layer only parses query parameters, calls the
``StarWarsService`` and renders service errors as RFC 7807 problem+json.

- GET  /healthz                              -> liveness
- GET  /healthcheck                          -> upstream probe + cache state
- GET  /collections/{name}                   -> filtered, optionally paginated
- GET  /collections/{name}/pages/{page}      -> one upstream page
- GET  /collections/{name}/{entity_id}       -> single entity
- GET  /analysis/opening-crawl               -> word counts + top mentioned
- POST /sync                                 -> refresh every collection
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

from . import metrics
from .errors import (
    AggregatorError,
    InvalidArgument,
    NotFound,
    UpstreamMalformed,
    UpstreamUnavailable,
)
from .logging_config import configure_logging
from .pagination import PageRequest
from .schemas import (
    CollectionPage,
    CorpusAnalysis,
    HealthcheckOut,
    ProblemDetail,
    SyncOutcome,
)
from .service import StarWarsService
from .settings import settings

configure_logging()
log = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# App
# ---------------------------------------------------------------------

app = FastAPI(title="Star Wars Collections", version="1.0.0")
metrics.install(app)

_STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

_ERROR_STATUS = {
    InvalidArgument: 400,
    NotFound: 404,
    UpstreamMalformed: 502,
    UpstreamUnavailable: 503,
}

# Reserved query params; everything else on /collections/{name} is a filter
_PAGINATION_PARAMS = {"page", "per_page"}


def _problem(
    status: int,
    title: str | None = None,
    detail: str | None = None,
    instance: str | None = None,
) -> JSONResponse:
    """Return an RFC7807 problem+json response."""
    body = {
        "type": "about:blank",
        "title": title or _STATUS_TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "instance": instance,
    }
    return JSONResponse(
        status_code=status, content=body, media_type="application/problem+json"
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_req: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else None
    return _problem(
        status=exc.status_code, title=_STATUS_TITLES.get(exc.status_code), detail=detail
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_req: Request, exc: RequestValidationError):
    msg = exc.errors()[0]["msg"] if exc.errors() else "Validation error"
    return _problem(status=422, title=_STATUS_TITLES[422], detail=msg)


@app.exception_handler(AggregatorError)
async def aggregator_exception_handler(req: Request, exc: AggregatorError):
    status = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    log.info(
        "route.error path=%s status=%d type=%s detail=%s",
        req.url.path,
        status,
        type(exc).__name__,
        exc,
    )
    return _problem(status=status, detail=str(exc), instance=req.url.path)


# ---------------------------------------------------------------------
# Lifespan + sync worker
# ---------------------------------------------------------------------


async def _sync_worker(
    service: StarWarsService, stop_event: asyncio.Event, interval: float
) -> None:
    """Warm the cache at startup, then once per ``interval`` until stopped."""
    while not stop_event.is_set():
        try:
            report = await service.sync_all()
            failed = [name for name, o in report.items() if not o.ok]
            log.info("sync_worker.cycle failed=%s", failed or "-")
        except Exception as exc:
            # keep going; the next cycle may succeed
            log.warning("sync_worker.error error=%r", exc)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service, start the sync worker, close everything on shutdown."""
    service = StarWarsService.from_settings(settings)
    app.state.service = service

    stop_event = asyncio.Event()
    task = None
    if settings.SYNC_WORKER_ENABLED:
        interval = settings.SYNC_INTERVAL_SECONDS
        log.info("sync_worker enabled=true interval=%.3fs", interval)
        task = asyncio.create_task(_sync_worker(service, stop_event, interval))

    try:
        yield
    finally:
        stop_event.set()
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await service.aclose()


app.router.lifespan_context = lifespan

_problem_resp = {
    "application/problem+json": {"schema": ProblemDetail.model_json_schema()},
}
_errors = {
    code: {"content": _problem_resp, "model": ProblemDetail}
    for code in (400, 404, 502, 503)
}


def get_service(request: Request) -> StarWarsService:
    """FastAPI dependency returning the service built in ``lifespan``."""
    return request.app.state.service


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root(_request: Request):
    """Redirect the root path to the interactive API docs (/docs)."""
    return RedirectResponse(url=app.docs_url or "/docs", status_code=307)


@app.get("/healthz", include_in_schema=False)
async def healthz():
    """Liveness probe; never touches the network."""
    return {"status": "ok"}


@app.get("/healthcheck", response_model=HealthcheckOut)
async def healthcheck(service: StarWarsService = Depends(get_service)):
    """Deep health check: upstream reachability, cache backend and its stats."""
    upstream_ok = await service.client.probe()
    status = "ok" if upstream_ok else "degraded"
    log.info(
        "route.healthcheck status=%s upstream_ok=%s cache=%s",
        status,
        upstream_ok,
        service.store.name,
    )
    return {
        "status": status,
        "upstream_ok": upstream_ok,
        "cache_backend": service.store.name,
        "cache_stats": service.store.stats(),
        "last_sync_age": service.last_sync_age(),
    }


@app.get("/collections/{name}", response_model=CollectionPage, responses=_errors)
async def list_collection(
    name: str,
    request: Request,
    page: Optional[int] = Query(None, description="1-based page number"),
    per_page: Optional[int] = Query(None, description="Items per page"),
    service: StarWarsService = Depends(get_service),
):
    """Return a collection filtered by any extra query params.

    Pagination applies when ``page`` or ``per_page`` is given (defaults 1 and
    10); otherwise the whole filtered collection is returned with ``meta=null``.
    """
    filters = {
        k: v for k, v in request.query_params.items() if k not in _PAGINATION_PARAMS
    }
    pagination = None
    if page is not None or per_page is not None:
        pagination = PageRequest(
            page=1 if page is None else page,
            per_page=10 if per_page is None else per_page,
        )
    return await service.list_collection(name, pagination, filters)


@app.get("/collections/{name}/pages/{page}", responses=_errors)
async def upstream_page(
    name: str,
    page: int,
    request: Request,
    service: StarWarsService = Depends(get_service),
):
    """Return one upstream page (cached per page), filtered by query params."""
    filters = dict(request.query_params)
    items = await service.list_upstream_page(name, page, filters)
    return {"page": page, "items": items}


@app.get("/collections/{name}/{entity_id}", responses=_errors)
async def get_entity(
    name: str, entity_id: str, service: StarWarsService = Depends(get_service)
):
    """Return a single entity by id."""
    return await service.get_entity(name, entity_id)


@app.get("/analysis/opening-crawl", response_model=CorpusAnalysis, responses=_errors)
async def analyze_opening_crawl(service: StarWarsService = Depends(get_service)):
    """Word counts over all opening crawls and the most mentioned characters."""
    return await service.analyze_corpus()


@app.post("/sync", response_model=Dict[str, SyncOutcome])
async def sync(service: StarWarsService = Depends(get_service)):
    """Refresh every collection now; failures are reported per collection."""
    return await service.sync_all()
