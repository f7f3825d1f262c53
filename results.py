"""In-memory collection of search results shown next to the map."""

from __future__ import annotations

from typing import Iterable, List, Optional

from entries import SearchEntry


class SearchResultStore:
    """Ordered search results; newly created entries go to the front."""

    def __init__(self, entries: Optional[Iterable[SearchEntry]] = None) -> None:
        self._entries: List[SearchEntry] = list(entries or [])

    def all(self) -> List[SearchEntry]:
        return list(self._entries)

    def prepend(self, entry: SearchEntry) -> None:
        self._entries.insert(0, entry)

    def find(self, entry_id: str) -> Optional[SearchEntry]:
        return next((entry for entry in self._entries if entry.id == entry_id), None)

    def replace(self, entries: Iterable[SearchEntry]) -> None:
        self._entries = list(entries)

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)


search_results = SearchResultStore()
