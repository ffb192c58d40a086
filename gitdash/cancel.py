"""Cooperative cancellation shared by a scan's walker, pool and probes."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator

from gitdash.constants import APP_NAME

logger = logging.getLogger(APP_NAME)


def kill_tree(proc: subprocess.Popen) -> None:
    """Kill a child started with ``start_new_session`` together with its children."""
    if proc.poll() is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


class CancelToken:
    """A one-shot cancel flag that also kills the subprocesses registered with it."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._procs: set[subprocess.Popen] = set()
        self._children: list[CancelToken] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            procs = list(self._procs)
            children = list(self._children)
        if procs:
            logger.debug("Cancel: killing %d running git process(es)", len(procs))
        for proc in procs:
            kill_tree(proc)
        for child in children:
            child.cancel()

    def link(self, child: CancelToken) -> None:
        """Cancel ``child`` whenever this token is cancelled."""
        if child is self:
            return
        with self._lock:
            late = self._event.is_set()
            if not late and child not in self._children:
                self._children.append(child)
        if late:
            child.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)

    @contextmanager
    def track(self, proc: subprocess.Popen) -> Iterator[subprocess.Popen]:
        """Register ``proc`` so that ``cancel`` kills it while it runs."""
        with self._lock:
            self._procs.add(proc)
            late = self._event.is_set()
        if late:
            kill_tree(proc)
        try:
            yield proc
        finally:
            with self._lock:
                self._procs.discard(proc)
