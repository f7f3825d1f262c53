"""Tests for the map view and entry form routes."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# pylint: disable=wrong-import-position

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import routes.maps as maps
from config import config
from main import app
from navigation import Category
from ofdb_client import OfdbClientError
from results import search_results
from routes.forms import FORM_SESSIONS


class FakeClient:
    def __init__(
        self,
        entries: Optional[List[Dict[str, Any]]] = None,
        ratings: Optional[List[Dict[str, Any]]] = None,
        duplicates: Optional[List[Dict[str, Any]]] = None,
        fail_on: Optional[str] = None,
    ):
        self.entries = entries if entries is not None else []
        self.ratings = ratings or []
        self.duplicates = duplicates or []
        self.fail_on = fail_on
        self.calls: List[tuple] = []

    def _maybe_fail(self, name: str):
        if self.fail_on == name:
            raise OfdbClientError(f"{name} failed")

    async def get_entries(self, entry_id, org_tag=None):
        self.calls.append(("get_entries", entry_id, org_tag))
        self._maybe_fail("get_entries")
        return self.entries

    async def get_ratings(self, rating_ids):
        self.calls.append(("get_ratings", list(rating_ids)))
        self._maybe_fail("get_ratings")
        return self.ratings

    async def check_duplicates(self, payload):
        self.calls.append(("check_duplicates", payload))
        self._maybe_fail("check_duplicates")
        return self.duplicates

    async def create_entry(self, payload):
        self.calls.append(("create_entry", payload))
        self._maybe_fail("create_entry")
        return "new-id"

    async def update_entry(self, entry_id, payload):
        self.calls.append(("update_entry", entry_id, payload))
        self._maybe_fail("update_entry")

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch: pytest.MonkeyPatch):
    search_results.clear()
    FORM_SESSIONS.clear()

    async def no_address(point):
        return {}

    monkeypatch.setattr(maps, "lookup_address_fields", no_address)
    yield
    search_results.clear()
    FORM_SESSIONS.clear()


def _install(monkeypatch: pytest.MonkeyPatch, **kwargs) -> FakeClient:
    fake = FakeClient(**kwargs)
    monkeypatch.setattr(maps, "client", fake)
    return fake


def _form(**overrides) -> Dict[str, Any]:
    data = {
        "title": "Repair Café",
        "description": "We fix things together every Saturday.",
        "lat": 52.52,
        "lng": 13.4,
        "tags": ["repair"],
        "license": ["CC0-1.0"],
    }
    data.update(overrides)
    return data


def _rating(rating_id: str, context: str, comments: int = 1) -> Dict[str, Any]:
    return {
        "id": rating_id,
        "title": "Rating",
        "created": 1700000000,
        "value": 1,
        "context": context,
        "source": None,
        "comments": [
            {"id": f"{rating_id}-c{i}", "created": 1700000000 + i, "text": f"text {i}"}
            for i in range(comments)
        ],
    }


def test_search_view_lists_results(monkeypatch: pytest.MonkeyPatch):
    """Empty slug shows the search view with local results."""
    _install(monkeypatch)
    client = TestClient(app)
    resp = client.get("/maps")
    assert resp.status_code == 200
    body = resp.json()
    assert body["view"] == "search"
    assert body["state"] == "ready"
    assert body["results"] == []


def test_entry_view_with_threaded_ratings(monkeypatch: pytest.MonkeyPatch):
    """Entry view fetches the entry and threads its ratings."""
    fake = _install(
        monkeypatch,
        entries=[{"id": "e1", "title": "Repair Café", "ratings": ["r1", "r2"]}],
        ratings=[_rating("r1", "transparency", comments=3), _rating("r2", "diversity")],
    )
    client = TestClient(app)
    resp = client.get("/maps/entities/e1?org-tag=kvm")
    assert resp.status_code == 200
    body = resp.json()
    assert body["view"] == "entry"
    assert body["state"] == "ready"
    assert body["entity_id"] == "e1"
    assert body["ratings_state"] == "ready"
    assert [group["context"] for group in body["ratings"]] == ["diversity", "transparency"]
    transparency = body["ratings"][1]["ratings"][0]
    assert transparency["root"]["id"] == "r1-c0"
    assert [reply["id"] for reply in transparency["replies"]] == ["r1-c1", "r1-c2"]
    assert ("get_entries", "e1", "kvm") in fake.calls
    assert ("get_ratings", ["r1", "r2"]) in fake.calls


def test_entry_view_degrades_when_fetch_fails(monkeypatch: pytest.MonkeyPatch):
    """A failed entry fetch gives the error state."""
    _install(monkeypatch, fail_on="get_entries")
    resp = TestClient(app).get("/maps/entities/e1")
    assert resp.status_code == 200
    assert resp.json()["state"] == "error"
    assert resp.json()["entry"] is None


def test_entry_view_degrades_when_ratings_fail(monkeypatch: pytest.MonkeyPatch):
    """A failed ratings fetch only affects the ratings section."""
    _install(
        monkeypatch,
        entries=[{"id": "e1", "ratings": ["r1"]}],
        fail_on="get_ratings",
    )
    body = TestClient(app).get("/maps/entities/e1").json()
    assert body["state"] == "ready"
    assert body["ratings"] is None
    assert body["ratings_state"] == "error"


def test_entry_view_with_empty_rating_is_error(monkeypatch: pytest.MonkeyPatch):
    """A rating without comments puts the ratings section in error."""
    _install(
        monkeypatch,
        entries=[{"id": "e1", "ratings": ["r1"]}],
        ratings=[_rating("r1", "fairness", comments=0)],
    )
    body = TestClient(app).get("/maps/entities/e1").json()
    assert body["ratings_state"] == "error"


def test_edit_form_not_found(monkeypatch: pytest.MonkeyPatch):
    """Editing an unknown entry shows not found."""
    _install(monkeypatch, entries=[])
    body = TestClient(app).get("/maps/entities/missing/edit").json()
    assert body["view"] == "entry-form"
    assert body["state"] == "not-found"
    assert body["initial_values"] is None


def test_edit_form_initial_values(monkeypatch: pytest.MonkeyPatch):
    """Edit form starts with the stored entry and the navigation category."""
    _install(
        monkeypatch,
        entries=[{"id": "e1", "title": "T", "version": 5, "categories": ["x"], "links": []}],
    )
    body = TestClient(app).get("/maps/entities/e1/edit?category=company").json()
    assert body["state"] == "ready"
    assert body["initial_values"]["version"] == 5
    assert body["initial_values"]["categories"] == [Category.COMPANY.value]
    assert body["form"]["license_options"][0]["value"] == "CC0-1.0"


def test_create_form_prefills_address(monkeypatch: pytest.MonkeyPatch):
    """Create form is prefilled from the pin position."""
    _install(monkeypatch)

    async def fake_lookup(point):
        return {"lat": point.lat, "lng": point.lng, "city": "Berlin"}

    monkeypatch.setattr(maps, "lookup_address_fields", fake_lookup)
    body = TestClient(app).get("/maps/entities/create?pinLat=52.5&pinLng=13.4").json()
    assert body["view"] == "entry-form"
    assert body["initial_values"]["city"] == "Berlin"
    assert body["initial_values"]["categories"] == [Category.INITIATIVE.value]


def test_rating_and_comment_form_views(monkeypatch: pytest.MonkeyPatch):
    """Rating and comment form addresses select their views."""
    _install(monkeypatch)
    client = TestClient(app)
    rating_form = client.get("/maps/entities/e1/ratings/create").json()
    assert rating_form["view"] == "rating-form"
    assert rating_form["entity_id"] == "e1"
    comment_form = client.get("/maps/entities/e1/ratings/r1/comments/create").json()
    assert comment_form["view"] == "comment-form"
    assert comment_form["rating_id"] == "r1"
    assert comment_form["verb"] == "create"


def test_unknown_slug_is_not_found(monkeypatch: pytest.MonkeyPatch):
    """Unknown slug tokens give the not-found view."""
    _install(monkeypatch)
    body = TestClient(app).get("/maps/whatever/that/was").json()
    assert body["view"] == "not-found"
    assert body["state"] == "not-found"
    assert body["chain"][0]["kind"] == "unknown"


def test_create_without_duplicates_redirects(monkeypatch: pytest.MonkeyPatch):
    """Create without duplicates posts, prepends and redirects."""
    fake = _install(monkeypatch)
    client = TestClient(app)
    resp = client.post(
        "/maps/entities/create?pinLat=52.5&pinLng=13.4&zoom=12",
        json=_form(),
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/maps/entities/new-id?zoom=12"
    assert fake.names() == ["check_duplicates", "create_entry"]
    assert [entry.id for entry in search_results.all()] == ["new-id"]
    assert client.get("/results").json()[0]["id"] == "new-id"


def test_create_rejects_invalid_form(monkeypatch: pytest.MonkeyPatch):
    """Invalid forms are rejected without calling the API."""
    fake = _install(monkeypatch)
    resp = TestClient(app).post("/maps/entities/create", json=_form(title="ab"))
    assert resp.status_code == 422
    assert fake.calls == []


def test_submit_to_non_form_address(monkeypatch: pytest.MonkeyPatch):
    """Posting to an address without a form returns 404."""
    _install(monkeypatch)
    resp = TestClient(app).post("/maps/entities/e1", json=_form())
    assert resp.status_code == 404


def test_duplicates_then_confirm(monkeypatch: pytest.MonkeyPatch):
    """Duplicates wait for confirmation before the entry is created."""
    fake = _install(monkeypatch, duplicates=[{"id": "d1"}, {"id": "d2"}])
    client = TestClient(app)
    resp = client.post("/maps/entities/create", json=_form())
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "duplicates"
    assert [candidate["id"] for candidate in body["duplicates"]] == ["d1", "d2"]
    assert fake.names() == ["check_duplicates"]

    resp = client.post(f"/forms/{body['session']}/confirm", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/maps/entities/new-id"
    assert fake.names() == ["check_duplicates", "create_entry"]
    assert body["session"] not in FORM_SESSIONS


def test_duplicates_then_decline(monkeypatch: pytest.MonkeyPatch):
    """Declining duplicates returns the submitted entry."""
    fake = _install(monkeypatch, duplicates=[{"id": "d1"}])
    client = TestClient(app)
    session = client.post("/maps/entities/create", json=_form()).json()["session"]

    resp = client.post(f"/forms/{session}/decline")
    assert resp.status_code == 200
    assert resp.json()["status"] == "editing"
    assert resp.json()["entry"]["title"] == "Repair Café"
    assert fake.names() == ["check_duplicates"]
    assert client.post(f"/forms/{session}/confirm").status_code == 404


def test_edit_submits_put_with_next_version(monkeypatch: pytest.MonkeyPatch):
    """Edit submits a PUT with the next version."""
    fake = _install(monkeypatch)
    form = _form(version=5)
    form.pop("license")
    resp = TestClient(app).post(
        "/maps/entities/e42/edit", json=form, follow_redirects=False
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/maps/entities/e42"
    assert fake.names() == ["check_duplicates", "update_entry"]
    assert fake.calls[1][2]["version"] == 6
    assert search_results.all() == []


def test_network_failure_returns_entry(monkeypatch: pytest.MonkeyPatch):
    """Network failures return the user's input with a 502."""
    _install(monkeypatch, fail_on="create_entry")
    resp = TestClient(app).post("/maps/entities/create", json=_form())
    assert resp.status_code == 502
    assert resp.json()["entry"]["title"] == "Repair Café"
    assert search_results.all() == []


def test_entry_form_ignores_event_category(monkeypatch: pytest.MonkeyPatch):
    """Entry forms fall back to initiative when asked for the event category."""
    fake = _install(monkeypatch)
    client = TestClient(app)

    body = client.get("/maps/entities/create?category=event").json()
    assert body["initial_values"]["categories"] == [Category.INITIATIVE.value]

    resp = client.post(
        "/maps/entities/create?category=event",
        json=_form(categories=[Category.EVENT.value]),
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/maps/entities/new-id?category=event"
    assert fake.calls[1][1]["categories"] == [Category.INITIATIVE.value]


def test_company_category_is_kept(monkeypatch: pytest.MonkeyPatch):
    """Companies are created with the company category."""
    fake = _install(monkeypatch)
    resp = TestClient(app).post(
        "/maps/entities/create?category=company", json=_form(), follow_redirects=False
    )
    assert resp.headers["location"] == "/maps/entities/new-id?category=company"
    assert fake.calls[1][1]["categories"] == [Category.COMPANY.value]


def test_unanswered_sessions_are_capped(monkeypatch: pytest.MonkeyPatch):
    """Only the newest sessions are kept once the cap is reached."""
    _install(monkeypatch, duplicates=[{"id": "d1"}])
    monkeypatch.setattr(config, "MAX_FORM_SESSIONS", 3)
    client = TestClient(app)

    sessions = [
        client.post("/maps/entities/create", json=_form()).json()["session"]
        for _ in range(5)
    ]

    assert list(FORM_SESSIONS) == sessions[-3:]
    assert client.post(f"/forms/{sessions[0]}/confirm").status_code == 404


def test_expired_sessions_are_dropped(monkeypatch: pytest.MonkeyPatch):
    """Sessions older than the TTL can no longer be answered."""
    _install(monkeypatch, duplicates=[{"id": "d1"}])
    client = TestClient(app)
    stale = client.post("/maps/entities/create", json=_form()).json()["session"]
    FORM_SESSIONS[stale].created -= config.FORM_SESSION_TTL + 1

    fresh = client.post("/maps/entities/create", json=_form()).json()["session"]
    assert list(FORM_SESSIONS) == [fresh]

    FORM_SESSIONS[fresh].created -= config.FORM_SESSION_TTL + 1
    assert client.post(f"/forms/{fresh}/decline").status_code == 404
    assert fresh not in FORM_SESSIONS
