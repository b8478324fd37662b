"""
services/view_debounce.py — Suppresses repeated pet view counts.

A view of pet P from address A is counted at most once per window
(VIEW_DEBOUNCE_SECONDS, default 5). Entries live in a cachetools TTLCache:
expired keys drop out after the window, and once `max_entries` is reached
the least recently used key is evicted, so memory stays bounded under
sustained traffic.

The cache is process-local and best effort. Several workers each keep their
own cache, so a view can be counted once per worker inside one window.

The raw address is never stored; keys are (pet_id, sha256(address)).
"""

from __future__ import annotations

import hashlib
import threading
import time
from typing import Callable

from cachetools import TTLCache


def _address_digest(address: str | None) -> str:
    return hashlib.sha256((address or "unknown").encode("utf-8")).hexdigest()


class ViewDebouncer:

    def __init__(
            self,
            window_seconds: float = 5,
            max_entries: int = 10000,
            timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self._cache: TTLCache = TTLCache(maxsize=max_entries, ttl=window_seconds, timer=timer)
        # TTLCache is not thread-safe; Flask may serve requests on threads.
        self._lock = threading.Lock()

    def should_count(self, pet_id: int, address: str | None) -> bool:
        """
        True if this (pet, address) has not been seen within the window.

        The first call records the key; calls inside the window return False
        and do not extend it.
        """
        key = (pet_id, _address_digest(address))
        with self._lock:
            if key in self._cache:
                return False
            self._cache[key] = True
            return True

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
