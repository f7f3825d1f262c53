"""Encode and decode the slug segments that carry map navigation state.

A slug is the ordered list of path segments after ``/maps/``. It alternates
between plural entity-type tokens (``entities``, ``ratings``...) and the id
that follows each of them, optionally terminated by a verb (``create`` or
``edit``). Decoding is permissive: hand-edited URLs never raise, unknown
tokens are kept as opaque chain entries tagged ``TokenKind.UNKNOWN``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

RouterQueryParam = Union[str, Sequence[str], None]
RouterQuery = Mapping[str, RouterQueryParam]

SLUG_QUERY_KEY = "slug"


class SlugVerb(str, Enum):
    """Trailing slug token selecting a form."""

    CREATE = "create"
    EDIT = "edit"


class SlugEntity(str, Enum):
    """Plural resource tokens recognized in type position."""

    ENTITIES = "entities"
    EVENTS = "events"
    RATINGS = "ratings"
    COMMENTS = "comments"


class TokenKind(str, Enum):
    ENTITY = "entity"
    UNKNOWN = "unknown"


ENTITY_TOKENS = frozenset(entity.value for entity in SlugEntity)
VERB_TOKENS = frozenset(verb.value for verb in SlugVerb)


@dataclass(frozen=True)
class ChainEntry:
    """One ``{entity_type, id?}`` pair of the entity chain."""

    entity_type: str
    id: Optional[str] = None
    kind: TokenKind = TokenKind.ENTITY

    def to_dict(self) -> Dict[str, Any]:
        return {"entity_type": self.entity_type, "id": self.id, "kind": self.kind.value}


@dataclass(frozen=True)
class NavigationDescriptor:
    """Decoded slug: the entity chain plus an optional trailing verb."""

    chain: Tuple[ChainEntry, ...] = ()
    verb: Optional[SlugVerb] = None

    @property
    def leaf(self) -> Optional[ChainEntry]:
        return self.chain[-1] if self.chain else None

    def truncate(self, depth: int) -> "NavigationDescriptor":
        """Keep the first ``depth`` chain entries and drop the verb."""

        return NavigationDescriptor(chain=self.chain[: max(0, depth)])

    def append(self, entity_type: str, entry_id: Optional[str] = None) -> "NavigationDescriptor":
        kind = TokenKind.ENTITY if entity_type in ENTITY_TOKENS else TokenKind.UNKNOWN
        entry = ChainEntry(entity_type=entity_type, id=entry_id, kind=kind)
        return replace(self, chain=self.chain + (entry,))

    def with_verb(self, verb: Optional[SlugVerb]) -> "NavigationDescriptor":
        return replace(self, verb=verb)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": [entry.to_dict() for entry in self.chain],
            "verb": self.verb.value if self.verb else None,
        }


def _is_reserved(token: str) -> bool:
    return token in ENTITY_TOKENS or token in VERB_TOKENS


def decode(segments: Iterable[str]) -> NavigationDescriptor:
    """Decode slug segments into a :class:`NavigationDescriptor`. Never raises."""

    tokens = [str(segment) for segment in segments]
    verb: Optional[SlugVerb] = None
    if tokens and tokens[-1] in VERB_TOKENS:
        verb = SlugVerb(tokens.pop())

    chain: List[ChainEntry] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        kind = TokenKind.ENTITY if token in ENTITY_TOKENS else TokenKind.UNKNOWN
        entry_id = None
        if index + 1 < len(tokens) and not _is_reserved(tokens[index + 1]):
            entry_id = tokens[index + 1]
            index += 1
        chain.append(ChainEntry(entity_type=token, id=entry_id, kind=kind))
        index += 1

    return NavigationDescriptor(chain=tuple(chain), verb=verb)


def encode(descriptor: NavigationDescriptor) -> List[str]:
    """Return the slug segments for ``descriptor``; the verb is always last."""

    segments: List[str] = []
    for entry in descriptor.chain:
        segments.append(entry.entity_type)
        if entry.id is not None:
            segments.append(entry.id)
    if descriptor.verb is not None:
        segments.append(descriptor.verb.value)
    return segments


def normalize_query_param(param: RouterQueryParam) -> List[str]:
    """Collapse a single value, a list of values or ``None`` into a list."""

    if param is None:
        return []
    if isinstance(param, str):
        return [param]
    return [str(value) for value in param]


def split_path(path: str) -> List[str]:
    """Split a ``/``-joined slug into its segments, dropping empty ones."""

    return [segment for segment in path.split("/") if segment]


def split_slug_from_query(query: RouterQuery) -> Tuple[str, Dict[str, RouterQueryParam]]:
    """Return the joined slug path and a new query without the slug key."""

    segments = normalize_query_param(query.get(SLUG_QUERY_KEY))
    remaining = {
        key: _copy_param(value) for key, value in query.items() if key != SLUG_QUERY_KEY
    }
    return "/".join(segments), remaining


def _copy_param(value: RouterQueryParam) -> RouterQueryParam:
    if value is None or isinstance(value, str):
        return value
    return list(value)


def descriptor_from_query(query: RouterQuery) -> NavigationDescriptor:
    return decode(normalize_query_param(query.get(SLUG_QUERY_KEY)))
