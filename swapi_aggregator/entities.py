"""Single-entity lookups, cache-aside keyed ``<collection>_<id>`` (numeric ids only)."""

import logging
from typing import Any, Dict

from .accessor import CacheAside
from .cache import cache_key
from .clients import SwapiClient
from .errors import InvalidArgument

log = logging.getLogger(__name__)


class EntityAccessor:
    def __init__(self, client: SwapiClient, accessor: CacheAside, *, ttl_seconds: int) -> None:
        self.client = client
        self.accessor = accessor
        self.ttl_seconds = ttl_seconds

    async def get_by_id(self, collection: str, entity_id: Any) -> Dict[str, Any]:
        """Return one entity; ``NotFound`` if upstream has nothing for the id."""
        eid = str(entity_id).strip() if entity_id is not None else ""
        if not collection:
            raise InvalidArgument("collection must be non-empty")
        if not eid:
            raise InvalidArgument("id must be non-empty")
        # upstream ids are plain integers; keeps "all" and "page_<n>" keys apart
        if not (eid.isascii() and eid.isdigit()):
            raise InvalidArgument(f"id must be numeric, got {eid!r}")

        entity = await self.accessor.get_or_compute(
            cache_key(collection, eid),
            self.ttl_seconds,
            lambda: self.client.fetch_entity(collection, eid),
        )
        log.debug("entities.get collection=%s id=%s", collection, eid)
        return entity
