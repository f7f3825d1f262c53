"""Helpers that reshape flat form payloads before they go over the wire."""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Mapping


def fill_defaults(entry: Mapping[str, Any], defaults: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``entry`` with absent or ``None`` fields set from ``defaults``.

    Present, non-null values are never overwritten, so applying the same
    table twice yields the same result as applying it once.
    """

    filled = dict(entry)
    for key, default in defaults.items():
        if filled.get(key) is None:
            filled[key] = copy.deepcopy(default)
    return filled


def apply_rules(
    entry: Mapping[str, Any], rules: Mapping[str, Callable[[Any], Any]]
) -> Dict[str, Any]:
    """Return a copy of ``entry`` with ``rule(value)`` applied to each matching key."""

    transformed = dict(entry)
    for key, rule in rules.items():
        if key in transformed:
            transformed[key] = rule(transformed[key])
    return transformed


def rename_fields(entry: Mapping[str, Any], renames: Mapping[str, str]) -> Dict[str, Any]:
    """Return a copy of ``entry`` with keys in ``renames`` moved to their new names."""

    renamed: Dict[str, Any] = {}
    for key, value in entry.items():
        renamed[renames.get(key, key)] = value
    return renamed
