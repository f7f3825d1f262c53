"""Build redirect targets from the current map query."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import urlencode

from slug import (
    SLUG_QUERY_KEY,
    NavigationDescriptor,
    RouterQuery,
    RouterQueryParam,
    SlugEntity,
    SlugVerb,
    TokenKind,
    descriptor_from_query,
    encode,
    split_slug_from_query,
)

MAP_PATH_PREFIX = "/maps"
PIN_QUERY_KEYS = ("pinLat", "pinLng")


class Category(str, Enum):
    """Directory categories, identified by their API ids."""

    INITIATIVE = "2cd00bebec0c48ba9db761da48678134"
    COMPANY = "77b3c33a92554bcf8e8c2c86cedd6f6f"
    EVENT = "c2dc278a2d6a4b9b8a50cb606fc017ed"


CATEGORY_NAMES: Dict[str, Category] = {
    "initiative": Category.INITIATIVE,
    "company": Category.COMPANY,
    "event": Category.EVENT,
}

# Initiatives and companies share the entity detail view. Split them here if
# they ever get separate views.
CATEGORY_SLUG_ENTITY: Dict[Category, SlugEntity] = {
    Category.INITIATIVE: SlugEntity.ENTITIES,
    Category.COMPANY: SlugEntity.ENTITIES,
    Category.EVENT: SlugEntity.EVENTS,
}

# categories the entry form can create or edit
ENTRY_CATEGORIES = (Category.INITIATIVE, Category.COMPANY)


def parse_category(value: Union[str, Category, None], default: Optional[Category] = None) -> Category:
    """Accept a category id or name (``initiative``, ``company``, ``event``)."""

    if isinstance(value, Category):
        return value
    if value:
        candidate = str(value).strip().lower()
        if candidate in CATEGORY_NAMES:
            return CATEGORY_NAMES[candidate]
        try:
            return Category(candidate)
        except ValueError:
            pass
    if default is not None:
        return default
    raise ValueError(f"Unknown category: {value!r}")


def category_for_entry(categories: Sequence[str]) -> Category:
    """Return the category of a search result from its first category id."""

    if not categories:
        raise ValueError("search result has no category")
    return parse_category(categories[0])


@dataclass(frozen=True)
class RedirectTarget:
    """Path and query a client navigates to, without a full reload."""

    path: str
    query: Dict[str, RouterQueryParam] = field(default_factory=dict)

    @property
    def url(self) -> str:
        params = {key: value for key, value in self.query.items() if value is not None}
        if not params:
            return self.path
        return f"{self.path}?{urlencode(params, doseq=True)}"

    def to_dict(self) -> Dict[str, object]:
        return {"path": self.path, "query": dict(self.query), "url": self.url}


def _build_target(
    query: RouterQuery,
    descriptor: NavigationDescriptor,
    keys_to_strip: Iterable[str] = (),
) -> RedirectTarget:
    patched = dict(query)
    patched[SLUG_QUERY_KEY] = encode(descriptor)
    path, remaining = split_slug_from_query(patched)
    for key in keys_to_strip:
        remaining.pop(key, None)
    return RedirectTarget(path=f"{MAP_PATH_PREFIX}/{path}", query=remaining)


def resolve(
    query: RouterQuery,
    target_id: str,
    target_category: Union[str, Category],
    truncate_depth: int,
    keys_to_strip: Iterable[str] = (),
) -> RedirectTarget:
    """Return the target for the detail view of ``target_id``.

    The current chain is cut to ``truncate_depth`` entries (0 starts a fresh
    chain) before the target entity is appended, and ``keys_to_strip`` are
    removed from the remaining query. ``query`` itself is left untouched.
    """

    category = parse_category(target_category)
    descriptor = descriptor_from_query(query).truncate(truncate_depth)
    descriptor = descriptor.append(CATEGORY_SLUG_ENTITY[category].value, str(target_id))
    return _build_target(query, descriptor, keys_to_strip)


def new_rating_form_target(query: RouterQuery) -> RedirectTarget:
    """Return the target of the "add rating" button on an entity."""

    descriptor = descriptor_from_query(query).with_verb(None)
    descriptor = descriptor.append(SlugEntity.RATINGS.value).with_verb(SlugVerb.CREATE)
    return _build_target(query, descriptor)


def rating_comment_form_target(query: RouterQuery, rating_id: str) -> RedirectTarget:
    """Return the target of the "add comment" button on a rating."""

    descriptor = descriptor_from_query(query).with_verb(None)
    descriptor = descriptor.append(SlugEntity.RATINGS.value, str(rating_id))
    descriptor = descriptor.append(SlugEntity.COMMENTS.value).with_verb(SlugVerb.CREATE)
    return _build_target(query, descriptor)


class MapView(str, Enum):
    """What the sidebar shows for a decoded slug."""

    SEARCH = "search"
    ENTRY = "entry"
    EVENT = "event"
    ENTRY_FORM = "entry-form"
    RATING_FORM = "rating-form"
    COMMENT_FORM = "comment-form"
    NOT_FOUND = "not-found"


def select_view(descriptor: NavigationDescriptor) -> MapView:
    """Pick the view for ``descriptor``; malformed chains map to ``NOT_FOUND``."""

    chain, verb = descriptor.chain, descriptor.verb
    if not chain:
        return MapView.SEARCH if verb is None else MapView.NOT_FOUND
    if any(entry.kind is TokenKind.UNKNOWN for entry in chain):
        return MapView.NOT_FOUND
    if any(entry.id is None for entry in chain[:-1]):
        return MapView.NOT_FOUND

    leaf = chain[-1]
    parent = chain[-2] if len(chain) > 1 else None
    if leaf.entity_type == SlugEntity.ENTITIES.value:
        if verb is SlugVerb.CREATE and leaf.id is None and parent is None:
            return MapView.ENTRY_FORM
        if verb is SlugVerb.EDIT and leaf.id is not None:
            return MapView.ENTRY_FORM
        if verb is None and leaf.id is not None:
            return MapView.ENTRY
    if leaf.entity_type == SlugEntity.EVENTS.value and verb is None and leaf.id:
        return MapView.EVENT
    if (
        leaf.entity_type == SlugEntity.RATINGS.value
        and verb is SlugVerb.CREATE
        and leaf.id is None
        and parent is not None
        and parent.entity_type == SlugEntity.ENTITIES.value
    ):
        return MapView.RATING_FORM
    if (
        leaf.entity_type == SlugEntity.COMMENTS.value
        and verb is SlugVerb.CREATE
        and leaf.id is None
        and parent is not None
        and parent.entity_type == SlugEntity.RATINGS.value
    ):
        return MapView.COMMENT_FORM
    return MapView.NOT_FOUND


def build_query(slug_segments: Sequence[str], params: Mapping[str, RouterQueryParam]) -> Dict[str, RouterQueryParam]:
    """Combine path segments and query parameters into one router query."""

    query: Dict[str, RouterQueryParam] = {
        key: value for key, value in params.items() if key != SLUG_QUERY_KEY
    }
    query[SLUG_QUERY_KEY] = list(slug_segments)
    return query
