"""Shared utility helpers for the map directory."""

from .logging import configure_logger
from .objects import apply_rules, fill_defaults, rename_fields

__all__ = [
    "apply_rules",
    "configure_logger",
    "fill_defaults",
    "rename_fields",
]
