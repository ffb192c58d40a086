"""Scan engine — the entry point front ends use to run and refresh scans.

A ``Scanner`` owns a worker pool and an optional result cache. Each
``start_scan`` walks the tree and feeds the pool concurrently, returning a
``ScanHandle`` whose results can be consumed as they arrive.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from gitdash.aggregate import ScanPass, aggregate
from gitdash.cache import NO_EXPIRY, ResultCache
from gitdash.cancel import CancelToken
from gitdash.constants import (
    APP_NAME,
    CANCEL_GRACE,
    DEFAULT_CEILING,
    DEFAULT_TIMEOUT,
    UNLIMITED,
)
from gitdash.git import StatusResult, probe
from gitdash.pool import Probe, PoolRun, WorkerPool
from gitdash.scanner import iter_repos

logger = logging.getLogger(APP_NAME)


class ScanHandle:
    """One running scan pass.

    Iterating yields results in completion order; iterate from one thread
    only. ``cancel`` may be called from any thread.
    """

    def __init__(self, root: str, run: PoolRun) -> None:
        self.root = root
        self.started_at = datetime.now(timezone.utc)
        self._run = run
        self._results: list[StatusResult] = []
        self._lock = threading.Lock()
        self._done = False

    def __iter__(self) -> Iterator[StatusResult]:
        for result in self._run:
            with self._lock:
                self._results.append(result)
            yield result
        self._done = True

    @property
    def token(self) -> CancelToken:
        return self._run.token

    @property
    def done(self) -> bool:
        return self._done

    @property
    def cancelled(self) -> bool:
        return self._run.cancelled

    @property
    def results(self) -> list[StatusResult]:
        """Snapshot of the results received so far."""
        with self._lock:
            return list(self._results)

    def cancel(self, grace: float = CANCEL_GRACE) -> None:
        """Stop the scan, killing in-flight git processes.

        Waits up to ``grace`` seconds for the workers; 0 returns at once.
        """
        self._run.cancel()
        if grace > 0 and not self._run.join(grace):
            logger.warning("Scan workers still running %.1fs after cancel", grace)

    def wait(self) -> ScanPass:
        """Consume the remaining results and return the aggregated pass."""
        if not self._done:
            for _ in self:
                pass
        return ScanPass(
            root=self.root,
            started_at=self.started_at,
            results=aggregate(self.results),
            submitted=self._run.submitted,
            cancelled=self._run.cancelled,
        )


class Scanner:
    """Runs scan passes over a shared worker pool and result cache."""

    def __init__(
        self,
        cache: Optional[ResultCache] = None,
        *,
        workers: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        ceiling: Optional[float] = DEFAULT_CEILING,
        skip: Iterable[str] = (),
        cache_max_age: Optional[float] = NO_EXPIRY,
        probe: Probe = probe,
    ) -> None:
        self.cache = cache
        self.ceiling = ceiling
        self.skip = tuple(skip)
        self.pool = WorkerPool(
            workers,
            timeout=timeout,
            probe=probe,
            cache=cache,
            cache_max_age=cache_max_age,
        )
        self._current: Optional[ScanHandle] = None
        self._lock = threading.Lock()

    def start_scan(
        self,
        root: str,
        max_depth: int = UNLIMITED,
        workers: Optional[int] = None,
    ) -> ScanHandle:
        """Start a scan pass; a previous pass still running is cancelled first."""
        root = os.path.abspath(os.path.expanduser(root))
        pool = self.pool if workers is None else self.pool.resized(workers)
        token = CancelToken()
        with self._lock:
            previous, self._current = self._current, None
        if previous is not None and not previous.done:
            logger.debug("Cancelling previous scan of %s", previous.root)
            previous.cancel()

        repos = iter_repos(root, max_depth, skip=self.skip, token=token)
        handle = ScanHandle(root, pool.run(repos, token=token, ceiling=self.ceiling))
        with self._lock:
            self._current = handle
        logger.debug("Scan started: %s (depth %s, %d workers)",
                     root, "unlimited" if max_depth == UNLIMITED else max_depth, pool.workers)
        return handle

    def cancel(self, handle: Optional[ScanHandle] = None, grace: float = CANCEL_GRACE) -> None:
        """Cancel ``handle``, or the current scan when none is given."""
        if handle is None:
            with self._lock:
                handle = self._current
        if handle is not None:
            handle.cancel(grace)

    def invalidate_cache(self, path: Optional[str] = None) -> None:
        """Forget one repository's cached status, or all of them."""
        if self.cache is None:
            return
        if path is not None:
            path = os.path.abspath(os.path.expanduser(path))
        self.cache.invalidate(path)


def scan(
    root: str,
    max_depth: int = UNLIMITED,
    *,
    workers: Optional[int] = None,
    timeout: float = DEFAULT_TIMEOUT,
    ceiling: Optional[float] = DEFAULT_CEILING,
    skip: Iterable[str] = (),
    probe: Probe = probe,
) -> ScanPass:
    """Run one uncached scan pass to completion."""
    scanner = Scanner(workers=workers, timeout=timeout, ceiling=ceiling, skip=skip, probe=probe)
    return scanner.start_scan(root, max_depth).wait()
