"""Upstream SWAPI client: one HTTP GET per page or entity.

Decodes the uniform ``{count, next, previous, results}`` envelope and maps
transport/shape failures onto ``UpstreamUnavailable`` / ``UpstreamMalformed``.
No retry or caching happens here; both belong to callers.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from . import metrics
from .errors import InvalidArgument, UpstreamMalformed, UpstreamUnavailable
from .schemas import Envelope, with_id

log = logging.getLogger(__name__)


class SwapiClient:
    """Thin async wrapper over ``httpx.AsyncClient`` for one upstream base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "SwapiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def collection_url(self, collection: str) -> str:
        return f"{self.base_url}/{collection}/"

    async def _get(
        self, collection: str, url: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        try:
            resp = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            metrics.record_upstream(collection, "transport_error")
            log.warning("upstream.error url=%s params=%s err=%r", url, params, exc)
            raise UpstreamUnavailable(f"GET {url} failed: {exc!r}") from exc
        return resp

    @staticmethod
    def _json(url: str, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            log.error("upstream.malformed url=%s reason=invalid_json", url)
            raise UpstreamMalformed(f"GET {url} returned invalid JSON") from exc

    async def fetch_page(self, collection: str, page: int = 1) -> Envelope:
        """Fetch and decode one page of ``collection``.

        Args:
            collection: Upstream collection key (e.g. ``"films"``).
            page: 1-based page number.

        Returns:
            The decoded ``Envelope``; every result carries a derived ``id``.

        Raises:
            InvalidArgument: Empty collection or page < 1.
            UpstreamUnavailable: Transport error or non-2xx status.
            UpstreamMalformed: Body is not a valid envelope.
        """
        if not collection:
            raise InvalidArgument("collection must be non-empty")
        if page < 1:
            raise InvalidArgument(f"page must be >= 1, got {page}")

        url = self.collection_url(collection)
        resp = await self._get(collection, url, {"page": page})
        if resp.status_code >= 400:
            metrics.record_upstream(collection, str(resp.status_code))
            log.warning(
                "upstream.status collection=%s page=%d status=%d",
                collection,
                page,
                resp.status_code,
            )
            raise UpstreamUnavailable(
                f"GET {url}?page={page} returned {resp.status_code}",
                status=resp.status_code,
            )

        data = self._json(url, resp)
        try:
            envelope = Envelope.model_validate(data)
        except ValidationError as exc:
            metrics.record_upstream(collection, "malformed")
            log.error(
                "upstream.malformed collection=%s page=%d errors=%d",
                collection,
                page,
                exc.error_count(),
            )
            raise UpstreamMalformed(
                f"{collection} page {page}: unexpected envelope shape"
            ) from exc

        metrics.record_upstream(collection, "ok")
        log.debug(
            "upstream.page collection=%s page=%d results=%d count=%d",
            collection,
            page,
            len(envelope.results),
            envelope.count,
        )
        return envelope

    async def fetch_entity(
        self, collection: str, entity_id: str
    ) -> Optional[Dict[str, Any]]:
        """Fetch a single entity; ``None`` on 404 or an empty body."""
        url = f"{self.collection_url(collection)}{entity_id}/"
        resp = await self._get(collection, url)
        if resp.status_code == 404:
            metrics.record_upstream(collection, "404")
            log.info("upstream.not_found collection=%s id=%s", collection, entity_id)
            return None
        if resp.status_code >= 400:
            metrics.record_upstream(collection, str(resp.status_code))
            raise UpstreamUnavailable(
                f"GET {url} returned {resp.status_code}", status=resp.status_code
            )
        if not resp.content.strip():
            metrics.record_upstream(collection, "empty")
            return None

        data = self._json(url, resp)
        if not isinstance(data, dict):
            raise UpstreamMalformed(f"GET {url} did not return an object")
        metrics.record_upstream(collection, "ok")
        return with_id(data) if data else None

    async def probe(self) -> bool:
        """Return True if the upstream root answers 200 (never raises)."""
        try:
            r = await self._http.get(f"{self.base_url}/", timeout=5.0)
            return r.status_code == 200
        except httpx.HTTPError as exc:
            log.debug("upstream.probe failed err=%r", exc)
            return False
