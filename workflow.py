"""Submission workflow for the entry form with its duplicate check.

States::

    editing -> submitted -> checking-duplicates
        -> committing -> redirected                       (no duplicates)
        -> awaiting-decision -> committing -> redirected  (confirmed)
        -> awaiting-decision -> editing                   (declined)

The duplicate check always finishes before the create or update call is
issued. Network failures are not retried: the workflow goes back to
``editing`` with the submitted payload still cached and re-raises.
"""

from __future__ import annotations

import copy
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from config import config
from entries import (
    build_duplicate_payload,
    convert_new_entry_to_search_entry,
    prepare_entry_payload,
)
from navigation import PIN_QUERY_KEYS, Category, RedirectTarget, resolve
from ofdb_client import OfdbClient, OfdbClientError
from results import SearchResultStore, search_results
from slug import RouterQuery
from utils.logging import configure_logger

LOG_FILE = Path(config.LOG_DIR) / "workflow.log"
logger = configure_logger(__name__, LOG_FILE)


class WorkflowState(str, Enum):
    EDITING = "editing"
    SUBMITTED = "submitted"
    CHECKING_DUPLICATES = "checking-duplicates"
    AWAITING_DECISION = "awaiting-decision"
    COMMITTING = "committing"
    REDIRECTED = "redirected"


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed in the current state."""


class DuplicateDetectionWorkflow:
    """Drive one entry form session from submit to redirect."""

    def __init__(
        self,
        client: OfdbClient,
        query: RouterQuery,
        *,
        is_edit: bool,
        entry_id: Optional[str] = None,
        category: Union[str, Category] = Category.INITIATIVE,
        results: Optional[SearchResultStore] = None,
    ) -> None:
        if is_edit and not entry_id:
            raise ValueError("editing requires the id of the entry")
        self.client = client
        self.query = copy.deepcopy(dict(query))
        self.is_edit = is_edit
        self.entry_id = entry_id
        self.category = category
        self.results = results if results is not None else search_results
        self.state = WorkflowState.EDITING
        self.cached_entry: Optional[Dict[str, Any]] = None
        self.duplicates: List[Dict[str, Any]] = []
        self.redirect: Optional[RedirectTarget] = None

    def _require(self, *states: WorkflowState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(
                f"cannot do that while {self.state.value}"
            )

    def _back_to_editing(self) -> None:
        self.state = WorkflowState.EDITING
        self.duplicates = []

    async def submit(self, entry: Mapping[str, Any]) -> WorkflowState:
        """Cache ``entry`` and check it for duplicates, committing if none."""
        self._require(WorkflowState.EDITING)
        self.cached_entry = copy.deepcopy(dict(entry))
        self.state = WorkflowState.SUBMITTED
        logger.info("Entry submitted is_edit=%s entry_id=%s", self.is_edit, self.entry_id)

        self.state = WorkflowState.CHECKING_DUPLICATES
        try:
            duplicates = await self.client.check_duplicates(
                build_duplicate_payload(self.cached_entry)
            )
        except OfdbClientError:
            logger.error("Duplicate check failed, returning to the form")
            self._back_to_editing()
            raise

        if duplicates:
            self.duplicates = list(duplicates)
            self.state = WorkflowState.AWAITING_DECISION
            logger.info("Awaiting decision on %d possible duplicates", len(duplicates))
            return self.state

        return await self._commit()

    async def confirm(self) -> WorkflowState:
        """Commit the cached entry although duplicates were found."""
        self._require(WorkflowState.AWAITING_DECISION)
        logger.info("Duplicates confirmed by the user")
        return await self._commit()

    def decline(self) -> Dict[str, Any]:
        """Return to the form, handing back the cached entry unchanged."""
        self._require(WorkflowState.AWAITING_DECISION)
        logger.info("Duplicates declined, returning to the form")
        self._back_to_editing()
        return copy.deepcopy(self.cached_entry or {})

    async def _commit(self) -> WorkflowState:
        self.state = WorkflowState.COMMITTING
        payload = prepare_entry_payload(self.cached_entry or {})
        logger.debug("Committing payload: %s", payload)
        try:
            if self.is_edit:
                await self.client.update_entry(self.entry_id, payload)
                result_id = self.entry_id
            else:
                result_id = await self.client.create_entry(payload)
        except OfdbClientError:
            logger.error("Saving the entry failed, returning to the form")
            self._back_to_editing()
            raise

        # edited entries are refreshed by the next search, not patched here
        if not self.is_edit:
            self.results.prepend(convert_new_entry_to_search_entry(result_id, payload))

        self.entry_id = result_id
        self.redirect = resolve(self.query, result_id, self.category, 0, PIN_QUERY_KEYS)
        self.duplicates = []
        self.state = WorkflowState.REDIRECTED
        logger.info("Entry %s saved, redirecting to %s", result_id, self.redirect.path)
        return self.state
