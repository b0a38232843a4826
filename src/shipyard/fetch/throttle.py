"""Process-wide record of recent fetches, used to skip redundant network calls."""

from __future__ import annotations

import threading

from shipyard.models import normalize_location
from shipyard.policy import DEFAULT_FETCH_WINDOW_SECONDS


class FetchThrottle:
    """Remembers when each repository location was last fetched successfully.

    One lock guards the whole map; callers share a single instance across
    concurrent dependency pipelines. The coordinator keys entries by
    ``ProjectIdentity.canonical``, so https and ssh spellings of one
    repository share an entry.
    """

    def __init__(self, window_seconds: float = DEFAULT_FETCH_WINDOW_SECONDS) -> None:
        self.window_seconds = window_seconds
        self._fetched_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def should_skip_fetch(self, location: str, now: float) -> bool:
        key = normalize_location(location)
        with self._lock:
            fetched_at = self._fetched_at.get(key)
        if fetched_at is None:
            return False
        return 0 <= now - fetched_at < self.window_seconds

    def record_fetch(self, location: str, now: float) -> None:
        key = normalize_location(location)
        with self._lock:
            self._fetched_at[key] = now

    def clear(self) -> None:
        with self._lock:
            self._fetched_at.clear()
