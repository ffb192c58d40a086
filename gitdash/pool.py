"""Worker pool — fan repository probes out over a bounded set of threads.

Jobs flow feeder → bounded job queue → workers → bounded result queue →
consumer. A slow consumer backs the whole chain up to the walker instead of
buffering results in memory. Results come out in completion order.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator, Optional, Union

from gitdash.cache import NO_EXPIRY, ResultCache
from gitdash.cancel import CancelToken
from gitdash.constants import (
    APP_NAME,
    CANCEL_GRACE,
    DEFAULT_TIMEOUT,
    DETAIL_ERROR,
    MAX_WORKERS,
)
from gitdash.errors import ConfigError
from gitdash.git import StatusKind, StatusResult, probe
from gitdash.scanner import RepoRecord

logger = logging.getLogger(APP_NAME)

Probe = Callable[..., StatusResult]

_POLL = 0.05
_STOP = object()


def default_workers() -> int:
    """Twice the CPU count (probes wait on subprocesses), capped at MAX_WORKERS."""
    return max(1, min((os.cpu_count() or 1) * 2, MAX_WORKERS))


@dataclass(frozen=True)
class ScanJob:
    """One repository to probe, with its per-job timeout and cancel token."""

    repo: RepoRecord
    timeout: float
    token: CancelToken


class PoolRun:
    """Live results of one ``WorkerPool.run`` call, iterated in completion order."""

    def __init__(self, pool: WorkerPool, jobs: Iterable[Union[RepoRecord, ScanJob]],
                 token: CancelToken, ceiling: Optional[float]) -> None:
        self._pool = pool
        self.token = token
        self.ceiling = ceiling
        self.submitted = 0
        self.received = 0
        self._feeding = True
        self._alive = pool.workers
        self._lock = threading.Lock()
        self._jobs: queue.Queue = queue.Queue(maxsize=pool.queue_size)
        self._results: queue.Queue = queue.Queue(maxsize=pool.queue_size)
        self._started = time.monotonic()

        self._threads = [threading.Thread(
            target=self._feed, args=(jobs,), name="gitdash-feed", daemon=True,
        )]
        for i in range(pool.workers):
            self._threads.append(threading.Thread(
                target=self._work, name=f"gitdash-worker-{i}", daemon=True,
            ))
        for t in self._threads:
            t.start()

    # ── Producer side ───────────────────────────────────────────────────

    def _put(self, q: queue.Queue, item: object) -> bool:
        """Blocking put that gives up once the run is cancelled."""
        while not self.token.cancelled:
            try:
                q.put(item, timeout=_POLL)
                return True
            except queue.Full:
                continue
        return False

    def _feed(self, jobs: Iterable[Union[RepoRecord, ScanJob]]) -> None:
        seen: set[str] = set()
        source = iter(jobs)
        try:
            for job in source:
                if self.token.cancelled:
                    break
                if isinstance(job, RepoRecord):
                    job = ScanJob(repo=job, timeout=self._pool.timeout, token=self.token)
                else:
                    self.token.link(job.token)
                if job.repo.path in seen:
                    logger.debug("Skipping duplicate job for %s", job.repo.path)
                    continue
                seen.add(job.repo.path)
                with self._lock:
                    self.submitted += 1
                if not self._put(self._jobs, job):
                    with self._lock:
                        self.submitted -= 1
                    break
        except Exception:
            logger.exception("Job source failed; no further jobs will be submitted")
        finally:
            close = getattr(source, "close", None)
            if close is not None:
                close()
            with self._lock:
                self._feeding = False
            for _ in range(self._pool.workers):
                if not self._put(self._jobs, _STOP):
                    break

    def _work(self) -> None:
        try:
            while not self.token.cancelled:
                try:
                    job = self._jobs.get(timeout=_POLL)
                except queue.Empty:
                    continue
                if job is _STOP:
                    break
                result = self._pool._process(job)
                if result is None or not self._put(self._results, result):
                    break
        finally:
            with self._lock:
                self._alive -= 1

    # ── Consumer side ───────────────────────────────────────────────────

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._alive == 0 and not self._feeding

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def missing(self) -> int:
        """Jobs submitted whose result never arrived (cancel or ceiling)."""
        return self.submitted - self.received

    def cancel(self) -> None:
        self.token.cancel()

    def join(self, grace: float = CANCEL_GRACE) -> bool:
        """Wait up to ``grace`` seconds for all threads; True if they all exited."""
        end = time.monotonic() + grace
        for t in self._threads:
            t.join(max(0.0, end - time.monotonic()))
        return not any(t.is_alive() for t in self._threads)

    def __iter__(self) -> Iterator[StatusResult]:
        return self

    def __next__(self) -> StatusResult:
        while True:
            if self.token.cancelled:
                raise StopIteration
            if self.ceiling is not None and time.monotonic() - self._started > self.ceiling:
                logger.debug("Result ceiling of %.1fs reached, %d job(s) abandoned",
                             self.ceiling, self.submitted - self.received)
                self.token.cancel()
                raise StopIteration
            try:
                result = self._results.get(timeout=_POLL)
            except queue.Empty:
                if self.finished and self._results.empty():
                    raise StopIteration
                continue
            self.received += 1
            return result


class WorkerPool:
    """Bounded set of threads probing repositories.

    The pool object holds configuration and the cross-run bookkeeping
    (per-path claims); each ``run`` gets its own threads and queues.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        probe: Probe = probe,
        cache: Optional[ResultCache] = None,
        cache_max_age: Optional[float] = NO_EXPIRY,
        queue_size: Optional[int] = None,
    ) -> None:
        if workers is None:
            workers = default_workers()
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ConfigError(f"worker count must be a positive integer, got {workers!r}")
        if timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout!r}")
        if queue_size is None:
            queue_size = workers * 2
        if queue_size < 1:
            raise ConfigError(f"queue size must be positive, got {queue_size!r}")

        self.workers = workers
        self.timeout = timeout
        self.queue_size = queue_size
        self.probe = probe
        self.cache = cache
        self.cache_max_age = cache_max_age
        self._guard = threading.Lock()
        self._claims: dict[str, list] = {}

    def resized(self, workers: int) -> WorkerPool:
        """Same settings with another worker count, sharing per-path claims."""
        pool = WorkerPool(
            workers,
            timeout=self.timeout,
            probe=self.probe,
            cache=self.cache,
            cache_max_age=self.cache_max_age,
        )
        pool._guard = self._guard
        pool._claims = self._claims
        return pool

    @contextmanager
    def _claim(self, path: str) -> Iterator[None]:
        """Hold the per-path lock so one path is never probed twice at once."""
        with self._guard:
            entry = self._claims.setdefault(path, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if not entry[1]:
                    del self._claims[path]

    def _process(self, job: ScanJob) -> Optional[StatusResult]:
        """Probe one job; None means the job was abandoned by a cancel."""
        path = job.repo.path
        with self._claim(path):
            if job.token.cancelled:
                return None
            if self.cache is not None:
                cached = self.cache.get(path, self.cache_max_age)
                if cached is not None:
                    return replace(cached, repo=job.repo)
            try:
                result = self.probe(job.repo, job.timeout, token=job.token)
            except Exception:
                logger.exception("Unexpected error probing %s", path)
                result = StatusResult(repo=job.repo, kind=StatusKind.ERROR, detail=DETAIL_ERROR)
            if job.token.cancelled:
                return None
            if self.cache is not None:
                self.cache.put(result)
            return result

    def run(
        self,
        jobs: Iterable[Union[RepoRecord, ScanJob]],
        *,
        token: Optional[CancelToken] = None,
        ceiling: Optional[float] = None,
    ) -> PoolRun:
        """Start probing ``jobs`` and return the live result stream."""
        return PoolRun(self, jobs, token or CancelToken(), ceiling)
