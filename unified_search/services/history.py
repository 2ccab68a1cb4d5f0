"""Bounded, persisted log of distinct recent searches.

Invariants:
- One entry per history key (term + service filter + media filter).
- At most ``limit`` entries; the oldest is evicted first.
- History is best-effort: storage failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Iterable

from unified_search.core.config import settings
from unified_search.schema.search import MediaType, SearchHistoryEntry
from unified_search.storage.key_value import KeyValueStore
from unified_search.utils.datetime import parse_timestamp, utc_now_iso

logger = logging.getLogger("unified_search.history")

EPOCH_ISO = "1970-01-01T00:00:00+00:00"


def normalize_term(term: str) -> str:
    return term.strip()


def sort_identifiers(values: Iterable[MediaType | str] | None) -> list[str] | None:
    """Sorted, de-duplicated identifiers, or None for an absent/empty filter."""
    if not values:
        return None
    normalized = {value.value if isinstance(value, MediaType) else str(value) for value in values}
    return sorted(normalized) or None


def create_history_key(
    term: str,
    service_ids: Iterable[str] | None = None,
    media_types: Iterable[MediaType | str] | None = None,
) -> str:
    """Stable identity for a search: case, whitespace and filter order do not matter."""
    normalized_term = normalize_term(term).lower()
    services_key = ",".join(sort_identifiers(service_ids) or [])
    media_key = ",".join(sort_identifiers(media_types) or [])
    return f"{normalized_term}__{services_key}__{media_key}"


def entry_key(entry: SearchHistoryEntry) -> str:
    return create_history_key(entry.term, entry.service_ids, entry.media_types)


def _recency(entry: SearchHistoryEntry) -> float:
    return parse_timestamp(entry.last_searched_at) or 0.0


class SearchHistoryManager:
    """Owns the in-memory history cache and its persisted copy."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str | None = None,
        limit: int | None = None,
        min_term_length: int | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.store = store
        self.storage_key = storage_key or settings.history_storage_key
        self.limit = limit or settings.history_limit
        self.min_term_length = min_term_length or settings.search_min_term_length
        self._clock = clock
        self._history: list[SearchHistoryEntry] = []
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get_history(self) -> list[SearchHistoryEntry]:
        await self._ensure_loaded()
        return sorted(self._history, key=_recency, reverse=True)

    async def record(
        self,
        term: str,
        service_ids: Iterable[str] | None = None,
        media_types: Iterable[MediaType | str] | None = None,
    ) -> None:
        normalized_term = normalize_term(term)
        if len(normalized_term) < self.min_term_length:
            return
        await self._ensure_loaded()

        entry = SearchHistoryEntry(
            term=normalized_term,
            last_searched_at=self._clock(),
            service_ids=sort_identifiers(service_ids),
            media_types=sort_identifiers(media_types),
        )
        key = entry_key(entry)
        history = list(self._history)
        for index, existing in enumerate(history):
            if entry_key(existing) == key:
                history[index] = entry
                break
        else:
            history.insert(0, entry)

        # Stable sort: on equal timestamps the newer insertion stays ahead.
        history.sort(key=_recency, reverse=True)
        self._history = history[: self.limit]
        await self._persist()

    async def remove(self, entry: SearchHistoryEntry) -> None:
        await self._ensure_loaded()
        key = entry_key(entry)
        remaining = [item for item in self._history if entry_key(item) != key]
        if len(remaining) == len(self._history):
            return
        self._history = remaining
        await self._persist()

    async def clear(self) -> None:
        await self._ensure_loaded()
        self._history = []
        try:
            await self.store.remove_item(self.storage_key)
        except Exception as exc:  # noqa: BLE001
            logger.error(json.dumps({"event": "history_clear_failed", "error": str(exc)}))

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        # Concurrent first callers wait for the single read instead of re-reading.
        async with self._load_lock:
            if self._loaded:
                return
            try:
                raw = await self.store.get_item(self.storage_key)
                self._history = self._parse(raw) if raw else []
            except Exception as exc:  # noqa: BLE001
                self._history = []
                logger.error(json.dumps({"event": "history_load_failed", "error": str(exc)}))
            finally:
                self._loaded = True

    def _parse(self, raw: str) -> list[SearchHistoryEntry]:
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            return []
        entries: list[SearchHistoryEntry] = []
        for item in parsed:
            entry = self._coerce_entry(item)
            if entry is not None:
                entries.append(entry)
        return entries

    @staticmethod
    def _coerce_entry(item: Any) -> SearchHistoryEntry | None:
        if not isinstance(item, dict):
            return None
        term = item.get("term")
        if not isinstance(term, str) or not term.strip():
            return None
        last_searched_at = item.get("lastSearchedAt", item.get("last_searched_at"))
        service_ids = item.get("serviceIds", item.get("service_ids"))
        media_types = item.get("mediaTypes", item.get("media_types"))
        return SearchHistoryEntry(
            term=normalize_term(term),
            last_searched_at=last_searched_at if isinstance(last_searched_at, str) else EPOCH_ISO,
            service_ids=sort_identifiers(service_ids) if isinstance(service_ids, list) else None,
            media_types=sort_identifiers(media_types) if isinstance(media_types, list) else None,
        )

    async def _persist(self) -> None:
        payload = [entry.model_dump(mode="json", by_alias=True, exclude_none=True) for entry in self._history]
        try:
            await self.store.set_item(self.storage_key, json.dumps(payload))
        except Exception as exc:  # noqa: BLE001
            logger.error(json.dumps({"event": "history_persist_failed", "error": str(exc)}))
