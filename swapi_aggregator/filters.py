"""Tagged filter predicates over collection entities.

Each collection declares which fields can be filtered and how: a
case-insensitive substring match for text fields, exact equality for numeric
ones. A filter holds at most one matcher per field; evaluation is the AND of
the matchers present, and a filter with no matchers matches everything.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidArgument


class MatchKind(str, enum.Enum):
    SUBSTRING_CI = "substring-ci"
    EXACT = "exact"


_S = MatchKind.SUBSTRING_CI
_E = MatchKind.EXACT

# Filterable fields per upstream collection
FILTER_FIELDS: Dict[str, Dict[str, MatchKind]] = {
    "films": {"title": _S, "episode_id": _E, "director": _S},
    "people": {"name": _S, "gender": _S, "birth_year": _S},
    "planets": {"name": _S, "climate": _S, "terrain": _S},
    "species": {"name": _S, "classification": _S, "language": _S},
    "starships": {"name": _S, "model": _S, "starship_class": _S},
    "vehicles": {"name": _S, "model": _S, "manufacturer": _S},
}

KNOWN_COLLECTIONS: Tuple[str, ...] = tuple(sorted(FILTER_FIELDS))


@dataclass(frozen=True)
class FieldMatcher:
    field: str
    kind: MatchKind
    value: Any

    def matches(self, entity: Mapping[str, Any]) -> bool:
        if self.field not in entity:
            return False
        actual = entity[self.field]
        if self.kind is MatchKind.EXACT:
            return _as_number(actual) == _as_number(self.value)
        if actual is None:
            return False
        return str(self.value).lower() in str(actual).lower()


def _as_number(v: Any) -> Any:
    # SWAPI sends episode_id as int; query strings arrive as text
    if isinstance(v, str):
        try:
            return int(v)
        except ValueError:
            return v
    return v


@dataclass(frozen=True)
class EntityFilter:
    matchers: Tuple[FieldMatcher, ...] = field(default_factory=tuple)

    def __call__(self, entity: Mapping[str, Any]) -> bool:
        return all(m.matches(entity) for m in self.matchers)

    def __bool__(self) -> bool:
        return bool(self.matchers)

    def signature(self) -> str:
        """Stable text form, e.g. ``director~lucas&episode_id=4`` (for logs)."""
        parts = sorted(
            f"{m.field}{'=' if m.kind is MatchKind.EXACT else '~'}{m.value}"
            for m in self.matchers
        )
        return "&".join(parts) or "-"

    @classmethod
    def for_collection(
        cls, collection: str, criteria: Optional[Mapping[str, Any]] = None
    ) -> "EntityFilter":
        """Build a filter from ``{field: value}`` using the collection's schema.

        ``None``/empty values are treated as absent (always match).

        Raises:
            InvalidArgument: Unknown collection or field not filterable.
        """
        schema = FILTER_FIELDS.get(collection)
        if schema is None:
            raise InvalidArgument(f"unknown collection {collection!r}")
        matchers = []
        for name, value in (criteria or {}).items():
            if name not in schema:
                allowed = ", ".join(sorted(schema))
                raise InvalidArgument(
                    f"{collection} cannot be filtered by {name!r} (allowed: {allowed})"
                )
            if value is None or value == "":
                continue
            matchers.append(FieldMatcher(name, schema[name], value))
        return cls(tuple(sorted(matchers, key=lambda m: m.field)))


MATCH_ALL = EntityFilter()
