"""Tests for slug decoding and encoding."""

from __future__ import annotations

import sys
from pathlib import Path

# pylint: disable=wrong-import-position

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from slug import (
    ChainEntry,
    NavigationDescriptor,
    SlugVerb,
    TokenKind,
    decode,
    encode,
    normalize_query_param,
    split_path,
    split_slug_from_query,
)


def test_decode_rating_create_form():
    """The rating form slug decodes to entity, rating and verb."""
    descriptor = decode(["entities", "abc123", "ratings", "create"])
    assert descriptor.chain == (
        ChainEntry(entity_type="entities", id="abc123"),
        ChainEntry(entity_type="ratings"),
    )
    assert descriptor.verb is SlugVerb.CREATE


def test_decode_empty_slug():
    """An empty slug decodes to an empty chain."""
    descriptor = decode([])
    assert descriptor.chain == ()
    assert descriptor.verb is None


def test_decode_verb_only():
    """A lone verb decodes to an empty chain with the verb."""
    descriptor = decode(["edit"])
    assert descriptor.chain == ()
    assert descriptor.verb is SlugVerb.EDIT


def test_decode_entity_without_id():
    """An entity token without id decodes to an id-less entry."""
    descriptor = decode(["entities", "ratings"])
    assert [entry.entity_type for entry in descriptor.chain] == ["entities", "ratings"]
    assert all(entry.id is None for entry in descriptor.chain)


def test_decode_keeps_unknown_tokens_as_opaque_entries():
    """Unknown tokens are kept as unknown entries."""
    descriptor = decode(["foo", "bar", "entities", "x1"])
    assert descriptor.chain[0] == ChainEntry("foo", "bar", TokenKind.UNKNOWN)
    assert descriptor.chain[1] == ChainEntry("entities", "x1", TokenKind.ENTITY)
    assert descriptor.verb is None


def test_decode_non_terminal_verb_is_unknown_entry():
    """A verb before the end is an unknown entry."""
    descriptor = decode(["entities", "create", "ratings"])
    assert descriptor.verb is None
    assert descriptor.chain[0] == ChainEntry("entities")
    assert descriptor.chain[1] == ChainEntry("create", None, TokenKind.UNKNOWN)
    assert descriptor.chain[2] == ChainEntry("ratings")


def test_encode_puts_verb_last():
    """Encoding writes the verb after the chain."""
    descriptor = NavigationDescriptor(
        chain=(ChainEntry("entities", "abc"), ChainEntry("ratings", "r1"), ChainEntry("comments")),
        verb=SlugVerb.CREATE,
    )
    assert encode(descriptor) == ["entities", "abc", "ratings", "r1", "comments", "create"]


def test_round_trip_for_well_formed_descriptors():
    """Decoding an encoded descriptor gives it back."""
    descriptors = [
        NavigationDescriptor(),
        NavigationDescriptor(verb=SlugVerb.CREATE),
        NavigationDescriptor(chain=(ChainEntry("entities"),), verb=SlugVerb.CREATE),
        NavigationDescriptor(chain=(ChainEntry("entities", "e1"),), verb=SlugVerb.EDIT),
        NavigationDescriptor(
            chain=(ChainEntry("entities", "e1"), ChainEntry("ratings", "r1"), ChainEntry("comments"))
        ),
        NavigationDescriptor(chain=(ChainEntry("events", "ev1"),)),
    ]
    for descriptor in descriptors:
        assert decode(encode(descriptor)) == descriptor


def test_descriptor_helpers_return_new_values():
    """Descriptor helpers leave the original unchanged."""
    descriptor = decode(["entities", "e1", "ratings", "create"])
    truncated = descriptor.truncate(1)
    assert truncated.chain == (ChainEntry("entities", "e1"),)
    assert truncated.verb is None
    assert descriptor.verb is SlugVerb.CREATE
    assert len(descriptor.chain) == 2
    assert descriptor.leaf == ChainEntry("ratings")
    assert NavigationDescriptor().leaf is None


def test_normalize_query_param():
    """Query parameters collapse to a list of strings."""
    assert normalize_query_param(None) == []
    assert normalize_query_param("entities") == ["entities"]
    assert normalize_query_param(["entities", "abc"]) == ["entities", "abc"]
    assert normalize_query_param(("a",)) == ["a"]


def test_split_path_drops_empty_segments():
    """Empty path segments are dropped."""
    assert split_path("entities//abc/") == ["entities", "abc"]
    assert split_path("") == []


def test_split_slug_from_query_does_not_mutate():
    """Splitting the slug off copies the query."""
    query = {"slug": ["entities", "abc"], "pinLat": "52.1", "tags": ["a", "b"]}
    path, remaining = split_slug_from_query(query)
    assert path == "entities/abc"
    assert remaining == {"pinLat": "52.1", "tags": ["a", "b"]}
    remaining["tags"].append("c")
    assert query["tags"] == ["a", "b"]
    assert query["slug"] == ["entities", "abc"]
