from __future__ import annotations

import json
import re
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    payload: T
    stored_at: float


class TTLCache(Generic[T]):
    """Time-bounded memo table for successful upstream results.

    Owned by the feed service and created once at startup. Entries expire by
    TTL; ``max_entries`` bounds memory with least-recently-used eviction.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int | None = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = max(0.0, ttl_seconds)
        self.max_entries = max_entries if max_entries is None else max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.payload

    def set(self, key: str, payload: T) -> None:
        self._entries[key] = CacheEntry(payload=payload, stored_at=self._clock())
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def query_signature(source: str, params: dict[str, Any]) -> str:
    """Normalized cache key: lower-cased, whitespace-collapsed, key-order independent."""
    normalized: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, str):
            folded = _WHITESPACE_RE.sub(" ", value).strip().lower()
            if not folded:
                continue
            normalized[key.lower()] = folded
        else:
            normalized[key.lower()] = value
    return f"{source}:{json.dumps(normalized, sort_keys=True, separators=(',', ':'), default=str)}"
