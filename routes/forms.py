"""Pending entry form sessions waiting for a duplicate decision."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse, RedirectResponse

from config import config
from ofdb_client import OfdbClientError
from utils.logging import configure_logger
from workflow import DuplicateDetectionWorkflow, InvalidTransitionError, WorkflowState

router = APIRouter(prefix="/forms", tags=["forms"])

LOG_FILE = Path(config.LOG_DIR) / "forms.log"
logger = configure_logger(__name__, LOG_FILE)


@dataclass
class FormSession:
    workflow: DuplicateDetectionWorkflow
    created: float = field(default_factory=time.monotonic)

    def expired(self, now: float) -> bool:
        return now - self.created > config.FORM_SESSION_TTL


# insertion order is creation order
FORM_SESSIONS: Dict[str, FormSession] = {}


def prune_sessions(now: float) -> None:
    """Drop expired sessions, then the oldest ones above the size cap."""

    for session_id in [sid for sid, session in FORM_SESSIONS.items() if session.expired(now)]:
        logger.info("Form session %s expired", session_id)
        del FORM_SESSIONS[session_id]
    while len(FORM_SESSIONS) >= config.MAX_FORM_SESSIONS:
        session_id = next(iter(FORM_SESSIONS))
        logger.warning("Too many open form sessions, dropping %s", session_id)
        del FORM_SESSIONS[session_id]


def store_session(workflow: DuplicateDetectionWorkflow) -> str:
    now = time.monotonic()
    prune_sessions(now)
    session_id = uuid.uuid4().hex
    FORM_SESSIONS[session_id] = FormSession(workflow, created=now)
    return session_id


def workflow_response(workflow: DuplicateDetectionWorkflow):
    """Translate the workflow state after a step into an HTTP response."""

    if workflow.state is WorkflowState.REDIRECTED and workflow.redirect is not None:
        return RedirectResponse(
            workflow.redirect.url, status_code=status.HTTP_303_SEE_OTHER
        )
    if workflow.state is WorkflowState.AWAITING_DECISION:
        session_id = store_session(workflow)
        logger.info(
            "Stored form session %s with %d duplicates",
            session_id,
            len(workflow.duplicates),
        )
        return {
            "status": "duplicates",
            "session": session_id,
            "duplicates": workflow.duplicates,
        }
    logger.warning("Unexpected workflow state %s", workflow.state.value)
    return {"status": workflow.state.value, "entry": workflow.cached_entry}


def network_failure_response(
    workflow: DuplicateDetectionWorkflow, exc: OfdbClientError
) -> JSONResponse:
    """Report a failed API call and hand the user's input back."""

    logger.error("Entry submission failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": "Saving the entry failed. Please try again later.",
            "entry": workflow.cached_entry,
        },
    )


def _get_session(session_id: str) -> DuplicateDetectionWorkflow:
    session = FORM_SESSIONS.get(session_id)
    if session is not None and session.expired(time.monotonic()):
        del FORM_SESSIONS[session_id]
        session = None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Form session not found"
        )
    return session.workflow


@router.post("/{session_id}/confirm")
async def confirm_duplicates(session_id: str):
    """Save the entry although possible duplicates were shown."""
    logger.info("POST /forms/%s/confirm", session_id)
    workflow = _get_session(session_id)
    try:
        await workflow.confirm()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except OfdbClientError as exc:
        FORM_SESSIONS.pop(session_id, None)
        return network_failure_response(workflow, exc)
    FORM_SESSIONS.pop(session_id, None)
    return workflow_response(workflow)


@router.post("/{session_id}/decline")
def decline_duplicates(session_id: str):
    """Go back to the form with the submitted values."""
    logger.info("POST /forms/%s/decline", session_id)
    workflow = _get_session(session_id)
    try:
        entry = workflow.decline()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    FORM_SESSIONS.pop(session_id, None)
    return {"status": workflow.state.value, "entry": entry}
