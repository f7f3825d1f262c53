"""Redirect targets for clicks in the sidebar."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from config import config
from navigation import (
    build_query,
    category_for_entry,
    new_rating_form_target,
    rating_comment_form_target,
    resolve,
)
from slug import split_path
from utils.logging import configure_logger

router = APIRouter(prefix="/navigate", tags=["navigation"])

LOG_FILE = Path(config.LOG_DIR) / "navigation.log"
logger = configure_logger(__name__, LOG_FILE)


class NavigationRequest(BaseModel):
    """The address the click happened on."""

    slug: str = Field("", description="Current slug, segments joined by '/'.")
    query: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)

    def router_query(self):
        return build_query(split_path(self.slug), self.query)


class ResultClickRequest(NavigationRequest):
    id: str = Field(..., min_length=1)
    categories: List[str] = Field(..., min_length=1)


class CommentFormRequest(NavigationRequest):
    rating_id: str = Field(..., min_length=1)


@router.post("/result")
def result_click(payload: ResultClickRequest):
    """Open the detail view of a clicked search result."""
    logger.info("POST /navigate/result id=%s", payload.id)
    try:
        category = category_for_entry(payload.categories)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    target = resolve(payload.router_query(), payload.id, category, 0, [])
    return target.to_dict()


@router.post("/new-rating")
def new_rating(payload: NavigationRequest):
    """Open the rating form of the current entity."""
    logger.info("POST /navigate/new-rating slug=%s", payload.slug)
    return new_rating_form_target(payload.router_query()).to_dict()


@router.post("/new-comment")
def new_comment(payload: CommentFormRequest):
    """Open the comment form of a rating."""
    logger.info(
        "POST /navigate/new-comment slug=%s rating=%s", payload.slug, payload.rating_id
    )
    return rating_comment_form_target(payload.router_query(), payload.rating_id).to_dict()
