"""Git status probing — subprocess-based, read-only, deadline-bounded."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from gitdash.cancel import CancelToken, kill_tree
from gitdash.constants import (
    APP_NAME,
    DEFAULT_TIMEOUT,
    DETAIL_CANCELLED,
    DETAIL_DIRTY,
    DETAIL_ERROR,
    DETAIL_SYNCED,
    DETAIL_TIMEOUT,
    GIT,
)
from gitdash.errors import ProbeCancelled, ProbeFailure, ProbeTimeout
from gitdash.scanner import RepoRecord

logger = logging.getLogger(APP_NAME)

LAST_COMMIT_FORMAT = "--pretty=%h %cr %an"

# Keep `git status` from refreshing the index, so probing never writes to the repo
_GIT_ENV = {**os.environ, "GIT_OPTIONAL_LOCKS": "0", "GIT_TERMINAL_PROMPT": "0"}


class StatusKind(str, Enum):
    SYNCED = "synced"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    DIRTY = "dirty"
    ERROR = "error"


@dataclass(frozen=True)
class StatusResult:
    """Outcome of probing one repository."""

    repo: RepoRecord
    kind: StatusKind = StatusKind.ERROR
    detail: str = DETAIL_ERROR
    branch: str = ""
    last_commit: str = ""
    ahead: int = 0
    behind: int = 0
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> str:
        return self.repo.path

    @property
    def synced(self) -> bool:
        return self.kind is StatusKind.SYNCED

    def to_dict(self) -> dict:
        return {
            "path": self.repo.path,
            "relative_path": self.repo.rel_path,
            "modified_at": self.repo.modified_at.isoformat(),
            "status": self.kind.value,
            "detail": self.detail,
            "branch": self.branch,
            "last_commit": self.last_commit,
            "ahead": self.ahead,
            "behind": self.behind,
        }


def classify(is_dirty: bool, ahead: int, behind: int) -> tuple[StatusKind, str]:
    """Map the three probe facts to a status kind and detail message.

    Remote divergence wins over local edits: a dirty tree that is also
    ahead or behind is reported as ahead/behind/diverged.
    """
    if not is_dirty and ahead == 0 and behind == 0:
        return StatusKind.SYNCED, DETAIL_SYNCED
    if ahead > 0 and behind > 0:
        return StatusKind.DIVERGED, f"Diverged ({ahead} ahead, {behind} behind)"
    if ahead > 0:
        return StatusKind.AHEAD, f"{ahead} commit(s) to push"
    if behind > 0:
        return StatusKind.BEHIND, f"{behind} commit(s) to pull"
    return StatusKind.DIRTY, DETAIL_DIRTY


def _run_git(
    repo_path: str,
    args: list[str],
    deadline: float,
    token: Optional[CancelToken] = None,
    git: str = GIT,
) -> str:
    """Run a git command and return stdout.

    Raises ProbeTimeout when ``deadline`` (a ``time.monotonic`` value)
    passes, ProbeCancelled when ``token`` fires, ProbeFailure otherwise.
    """
    if token is not None and token.cancelled:
        raise ProbeCancelled(repo_path, args)
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise ProbeTimeout(repo_path, args, "deadline passed")
    try:
        proc = subprocess.Popen(
            [git, "-C", repo_path] + args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            env=_GIT_ENV,
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        raise ProbeFailure(repo_path, args, str(e)) from e

    if token is None:
        token = CancelToken()
    with token.track(proc):
        try:
            stdout, stderr = proc.communicate(timeout=remaining)
        except subprocess.TimeoutExpired:
            kill_tree(proc)
            proc.communicate()
            raise ProbeTimeout(repo_path, args, f"exceeded {remaining:.1f}s") from None

    if token.cancelled:
        raise ProbeCancelled(repo_path, args)
    if proc.returncode != 0:
        raise ProbeFailure(repo_path, args, stderr.strip() or f"exit {proc.returncode}")
    return stdout


def _optional(
    repo_path: str,
    args: list[str],
    deadline: float,
    token: Optional[CancelToken],
    git: str,
) -> str:
    """Run a non-essential query; a failed query degrades to empty output."""
    try:
        return _run_git(repo_path, args, deadline, token, git).strip()
    except ProbeFailure as e:
        logger.debug("Degraded: %s", e)
        return ""


def _count(output: str) -> int:
    try:
        return int(output)
    except ValueError:
        return 0


def probe(
    repo: RepoRecord,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    token: Optional[CancelToken] = None,
    git: str = GIT,
) -> StatusResult:
    """Probe one repository and classify it. Never raises."""
    deadline = time.monotonic() + timeout
    failed = StatusResult(repo=repo)
    path = repo.path

    if not os.path.isdir(path):
        logger.debug("Repository path vanished: %s", path)
        return failed

    try:
        status_out = _run_git(path, ["status", "--porcelain"], deadline, token, git)
        ahead = _count(_optional(path, ["rev-list", "--count", "@{u}..HEAD"], deadline, token, git))
        behind = _count(_optional(path, ["rev-list", "--count", "HEAD..@{u}"], deadline, token, git))
        branch = _optional(path, ["rev-parse", "--abbrev-ref", "HEAD"], deadline, token, git)
        last_commit = _optional(path, ["log", "-1", LAST_COMMIT_FORMAT], deadline, token, git)
    except ProbeTimeout as e:
        logger.debug("Timeout: %s", e)
        return replace(failed, detail=DETAIL_TIMEOUT)
    except ProbeCancelled:
        return replace(failed, detail=DETAIL_CANCELLED)
    except ProbeFailure as e:
        logger.debug("Probe failed: %s", e)
        return failed

    kind, detail = classify(bool(status_out.strip()), ahead, behind)
    return StatusResult(
        repo=repo,
        kind=kind,
        detail=detail,
        branch=branch,
        last_commit=last_commit,
        ahead=ahead,
        behind=behind,
    )
