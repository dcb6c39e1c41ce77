"""Pydantic schemas for the upstream envelope and API response bodies."""

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, field_validator

_URL_ID = re.compile(r"/(\d+)/?$")


def entity_id(entity: Dict[str, Any]) -> Optional[str]:
    """Return the stable id of an entity.

    Prefers an explicit ``id`` field, otherwise the trailing number of the
    canonical ``url`` (``https://swapi.dev/api/films/1/`` -> ``"1"``).
    """
    explicit = entity.get("id")
    if explicit not in (None, ""):
        return str(explicit)
    m = _URL_ID.search(str(entity.get("url") or ""))
    return m.group(1) if m else None


def with_id(entity: Dict[str, Any]) -> Dict[str, Any]:
    """Return the entity with its derived ``id`` filled in (copy, never in place)."""
    if "id" in entity:
        return entity
    eid = entity_id(entity)
    return entity if eid is None else {**entity, "id": eid}


class Envelope(BaseModel):
    """One upstream page: ``{count, next, previous, results}``."""

    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[Dict[str, Any]]

    @field_validator("count")
    @classmethod
    def _count_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("count must be >= 0")
        return v

    @field_validator("results")
    @classmethod
    def _attach_ids(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [with_id(item) for item in v]


class PaginationMeta(BaseModel):
    current_page: int
    per_page: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class CollectionPage(BaseModel):
    """Filtered collection, optionally sliced. ``meta`` is None when unpaginated."""

    items: List[Dict[str, Any]]
    meta: Optional[PaginationMeta] = None


class WordCount(BaseModel):
    word: str
    count: int


class CorpusAnalysis(BaseModel):
    word_counts: List[WordCount]
    top_mentioned: List[str]


class SyncOutcome(BaseModel):
    ok: bool
    items: int = 0
    error: Optional[str] = None


class HealthcheckOut(BaseModel):
    status: Literal["ok", "degraded"]
    upstream_ok: bool
    cache_backend: str
    cache_stats: Optional[Dict[str, int]] = None
    last_sync_age: Optional[float] = None


class ProblemDetail(BaseModel):
    """RFC 7807-style problem response (simplified)."""

    type: str = "about:blank"
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
