"""In-memory memo of the last status computed for each repository path."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from gitdash.git import StatusResult

NO_EXPIRY = None


class ResultCache:
    """Thread-safe ``path -> StatusResult`` map.

    Advisory only: entries are reused until they are older than ``max_age``
    seconds (never, when ``max_age`` is None) or explicitly invalidated.
    Writes are last-writer-wins per path.
    """

    def __init__(self, max_age: Optional[float] = NO_EXPIRY,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[StatusResult, float]] = {}

    def get(self, path: str, max_age: Optional[float] = NO_EXPIRY) -> Optional[StatusResult]:
        """Return the cached result for path if it is still fresh.

        ``max_age`` overrides the cache-wide setting when given.
        """
        limit = self.max_age if max_age is None else max_age
        with self._lock:
            entry = self._entries.get(path)
        if entry is None:
            return None
        result, stored_at = entry
        if limit is not None and self._clock() - stored_at > limit:
            return None
        return result

    def put(self, result: StatusResult) -> None:
        with self._lock:
            self._entries[result.repo.path] = (result, self._clock())

    def invalidate(self, path: Optional[str] = None) -> None:
        """Drop one path, or everything when path is None."""
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(path, None)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
