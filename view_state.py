"""Render states of views that depend on a remote fetch."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ViewState(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    NOT_FOUND = "not-found"
    READY = "ready"


def compute_view_state(
    *,
    requested: bool,
    data: Any = None,
    error: Optional[BaseException] = None,
    found: Optional[bool] = None,
) -> ViewState:
    """Return the single state a view renders in.

    ``found`` defaults to "data is not empty" when omitted.
    """

    if not requested:
        return ViewState.READY
    if error is not None:
        return ViewState.ERROR
    if data is None:
        return ViewState.LOADING
    if found is None:
        found = bool(data)
    if not found:
        return ViewState.NOT_FOUND
    return ViewState.READY
