"""Map views addressed by slug and the entry form submission."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Request, status
from pydantic import BaseModel, Field, ValidationError

from config import config
from entries import (
    entry_form_to_dict,
    form_options,
    initial_form_values,
    parse_entry_form,
)
from geolocation import Point, lookup_address_fields
from navigation import (
    ENTRY_CATEGORIES,
    Category,
    MapView,
    build_query,
    parse_category,
    select_view,
)
from ofdb_client import OfdbClient, OfdbClientError
from ratings import EmptyRatingError, Rating, build_ratings_view
from results import search_results
from routes.forms import network_failure_response, workflow_response
from slug import (
    NavigationDescriptor,
    RouterQuery,
    SlugVerb,
    descriptor_from_query,
    normalize_query_param,
    split_path,
)
from utils.logging import configure_logger
from view_state import ViewState, compute_view_state
from workflow import DuplicateDetectionWorkflow

router = APIRouter()

LOG_FILE = Path(config.LOG_DIR) / "maps.log"
logger = configure_logger(__name__, LOG_FILE)

client = OfdbClient()

ORG_TAG_QUERY_KEY = "org-tag"
CATEGORY_QUERY_KEY = "category"


class MapViewResponse(BaseModel):
    """Everything the sidebar needs to render the current address."""

    view: MapView
    state: ViewState = ViewState.READY
    chain: List[Dict[str, Any]] = Field(default_factory=list)
    verb: Optional[str] = None
    entity_id: Optional[str] = None
    rating_id: Optional[str] = None
    entry: Optional[Dict[str, Any]] = None
    ratings: Optional[List[Dict[str, Any]]] = None
    ratings_state: Optional[ViewState] = None
    initial_values: Optional[Dict[str, Any]] = None
    form: Optional[Dict[str, Any]] = None
    results: Optional[List[Dict[str, Any]]] = None


def _request_query(request: Request, slug: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values[0] if len(values) == 1 else values
    return build_query(split_path(slug), params)


def _single_value(query: RouterQuery, key: str) -> Optional[str]:
    values = normalize_query_param(query.get(key))
    return values[0] if values else None


def _org_tag(query: RouterQuery) -> Optional[str]:
    raw = query.get(ORG_TAG_QUERY_KEY)
    return raw if isinstance(raw, str) and raw else None


def _entry_category(query: RouterQuery) -> Category:
    """Category of the entry form; anything but initiative or company falls back."""
    raw = query.get(CATEGORY_QUERY_KEY)
    try:
        category = parse_category(
            _single_value(query, CATEGORY_QUERY_KEY), default=Category.INITIATIVE
        )
    except ValueError:
        logger.warning("Unknown category %s, using initiative", raw)
        return Category.INITIATIVE
    if category not in ENTRY_CATEGORIES:
        logger.warning("Entry form cannot use category %s, using initiative", raw)
        return Category.INITIATIVE
    return category


def _base_response(view: MapView, descriptor: NavigationDescriptor) -> MapViewResponse:
    data = descriptor.to_dict()
    return MapViewResponse(view=view, chain=data["chain"], verb=data["verb"])


async def _fetch_entries(entry_id: str, query: RouterQuery):
    try:
        entries = await client.get_entries(entry_id, _org_tag(query))
    except OfdbClientError as exc:
        logger.error("Fetching entry %s failed: %s", entry_id, exc)
        return None, exc
    return entries, None


async def _load_ratings(rating_ids: List[str]):
    if not rating_ids:
        return [], ViewState.READY
    try:
        raw = await client.get_ratings(rating_ids)
        ratings = [Rating.model_validate(item) for item in raw]
        view = build_ratings_view(ratings)
    except OfdbClientError as exc:
        logger.error("Fetching ratings failed: %s", exc)
        return None, ViewState.ERROR
    except (ValidationError, EmptyRatingError) as exc:
        logger.error("Received malformed ratings: %s", exc)
        return None, ViewState.ERROR
    return view, ViewState.READY


async def _entry_view(response: MapViewResponse, entry_id: str, query: RouterQuery):
    response.entity_id = entry_id
    entries, error = await _fetch_entries(entry_id, query)
    response.state = compute_view_state(requested=True, data=entries, error=error)
    if response.state is not ViewState.READY:
        return response
    entry = entries[0]
    response.entry = entry
    response.ratings, response.ratings_state = await _load_ratings(
        [str(rating_id) for rating_id in entry.get("ratings") or []]
    )
    return response


async def _entry_form_view(
    response: MapViewResponse, descriptor: NavigationDescriptor, query: RouterQuery
):
    category = _entry_category(query)
    response.form = form_options()
    if descriptor.verb is SlugVerb.EDIT:
        entry_id = descriptor.leaf.id
        response.entity_id = entry_id
        entries, error = await _fetch_entries(entry_id, query)
        response.state = compute_view_state(requested=True, data=entries, error=error)
        if response.state is not ViewState.READY:
            return response
        response.initial_values = initial_form_values(entries[0], category)
        return response

    values = initial_form_values(None, category)
    values.update(await lookup_address_fields(Point.from_query(query)))
    response.initial_values = values
    return response


@router.get("/maps", response_model=MapViewResponse)
@router.get("/maps/{slug:path}", response_model=MapViewResponse)
async def map_view(request: Request, slug: str = ""):
    """Describe the view addressed by the slug."""
    logger.info("GET /maps/%s", slug)
    query = _request_query(request, slug)
    descriptor = descriptor_from_query(query)
    view = select_view(descriptor)
    response = _base_response(view, descriptor)

    if view is MapView.SEARCH:
        response.results = [entry.model_dump() for entry in search_results.all()]
    elif view is MapView.ENTRY:
        await _entry_view(response, descriptor.leaf.id, query)
    elif view is MapView.EVENT:
        response.entity_id = descriptor.leaf.id
    elif view is MapView.ENTRY_FORM:
        await _entry_form_view(response, descriptor, query)
    elif view is MapView.RATING_FORM:
        response.entity_id = descriptor.chain[-2].id
    elif view is MapView.COMMENT_FORM:
        response.entity_id = descriptor.chain[0].id
        response.rating_id = descriptor.chain[-2].id
    else:
        response.state = ViewState.NOT_FOUND

    logger.info("Serving view=%s state=%s", response.view.value, response.state.value)
    return response


@router.post("/maps/{slug:path}")
async def submit_entry_form(
    request: Request, slug: str, payload: Dict[str, Any] = Body(...)
):
    """Submit the entry form addressed by the slug."""
    logger.info("POST /maps/%s", slug)
    logger.debug("POST /maps/%s payload: %s", slug, payload)
    query = _request_query(request, slug)
    descriptor = descriptor_from_query(query)
    if select_view(descriptor) is not MapView.ENTRY_FORM:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No entry form at this address"
        )

    is_edit = descriptor.verb is SlugVerb.EDIT
    try:
        form = parse_entry_form(payload, is_edit)
    except ValidationError as exc:
        logger.info("Entry form rejected with %d errors", exc.error_count())
        raise HTTPException(
            status_code=422,
            detail=json.loads(exc.json(include_url=False)),
        ) from exc

    category = _entry_category(query)
    entry = entry_form_to_dict(form)
    # the category always comes from the navigation
    entry["categories"] = [category.value]

    workflow = DuplicateDetectionWorkflow(
        client,
        query,
        is_edit=is_edit,
        entry_id=descriptor.leaf.id if is_edit else None,
        category=category,
    )
    try:
        await workflow.submit(entry)
    except OfdbClientError as exc:
        return network_failure_response(workflow, exc)
    return workflow_response(workflow)


@router.get("/results")
def list_results():
    """Return the search results currently held in memory."""
    logger.info("GET /results")
    return [entry.model_dump() for entry in search_results.all()]
