"""Async client for the directory (OpenFairDB) REST API."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from config import config
from utils.logging import configure_logger

LOG_FILE = Path(config.LOG_DIR) / "ofdb_client.log"
logger = configure_logger(__name__, LOG_FILE)

API_ENDPOINTS = {
    "entries": "/entries",
    "duplicates": "/entries/duplicates",
    "ratings": "/ratings",
}


class OfdbClientError(Exception):
    """Raised when a request to the directory API fails."""


class OfdbClient:
    """Thin wrapper issuing one ``httpx.AsyncClient`` request per call."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or config.OFDB_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        logger.info("%s %s", method, url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                resp = await client.request(method, url, json=json, params=params)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "%s %s failed with status %s", method, url, exc.response.status_code
            )
            raise OfdbClientError(
                f"{method} {path} returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise OfdbClientError(f"{method} {path} failed") from exc
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise OfdbClientError("Response body is not valid JSON") from exc

    async def create_entry(self, payload: Mapping[str, Any]) -> str:
        """Create an entry and return the id assigned by the server."""
        resp = await self._request("POST", API_ENDPOINTS["entries"], json=dict(payload))
        entry_id = self._json(resp)
        if not isinstance(entry_id, str) or not entry_id:
            raise OfdbClientError("Create entry response did not contain an id")
        logger.info("Created entry %s", entry_id)
        return entry_id

    async def update_entry(self, entry_id: str, payload: Mapping[str, Any]) -> None:
        await self._request(
            "PUT", f"{API_ENDPOINTS['entries']}/{entry_id}", json=dict(payload)
        )
        logger.info("Updated entry %s version=%s", entry_id, payload.get("version"))

    async def check_duplicates(self, payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Return near-duplicate candidates for ``payload`` (possibly empty)."""
        resp = await self._request(
            "POST", API_ENDPOINTS["duplicates"], json=dict(payload)
        )
        data = self._json(resp)
        candidates = data if isinstance(data, list) else []
        logger.info("Duplicate check returned %d candidates", len(candidates))
        return candidates

    async def get_entries(
        self, entry_id: str, org_tag: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {"org_tag": org_tag} if org_tag else None
        resp = await self._request(
            "GET", f"{API_ENDPOINTS['entries']}/{entry_id}", params=params
        )
        data = self._json(resp)
        return data if isinstance(data, list) else []

    async def get_ratings(self, rating_ids: Sequence[str]) -> List[Dict[str, Any]]:
        if not rating_ids:
            return []
        ids = ",".join(str(rating_id) for rating_id in rating_ids)
        resp = await self._request("GET", f"{API_ENDPOINTS['ratings']}/{ids}")
        data = self._json(resp)
        return data if isinstance(data, list) else []
