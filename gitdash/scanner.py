"""Repo discovery — walk a directory tree and yield git working-tree roots."""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from gitdash.cancel import CancelToken
from gitdash.constants import APP_NAME, GIT_DIR, UNLIMITED, WALK_FANOUT
from gitdash.errors import WalkError

logger = logging.getLogger(APP_NAME)

# Never descended into. Extend with the ``skip`` argument, not by editing the walker.
SKIP_DIRS = frozenset({
    # VCS internals
    ".git", ".hg", ".svn",
    # dependencies
    "node_modules", ".venv", "venv", "vendor", "site-packages", "Pods",
    ".npm", ".yarn", ".cargo", ".rustup",
    # build output
    "target", "build", "dist", "bin", "obj", ".gradle", ".dart_tool",
    ".next", ".nuxt", "DerivedData",
    # caches
    ".cache", "__pycache__", ".tox", ".mypy_cache", ".ruff_cache",
    ".pytest_cache",
    # editors
    ".idea", ".vscode",
})

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class RepoRecord:
    """One discovered working tree."""

    path: str
    rel_path: str
    modified_at: datetime = _EPOCH
    order: int = field(default=0, compare=False)

    @property
    def name(self) -> str:
        return os.path.basename(self.path) or self.path


def make_record(path: str, base_dir: str, order: int = 0) -> RepoRecord:
    """Build a RepoRecord, reading the directory mtime for ordering."""
    path = os.path.abspath(path)
    rel = os.path.relpath(path, os.path.abspath(base_dir))
    try:
        mtime = datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)
    except OSError:
        mtime = _EPOCH
    return RepoRecord(path=path, rel_path=rel, modified_at=mtime, order=order)


def _list_dir(path: str) -> list[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        raise WalkError(e.errno, e.strerror, path) from e


def _visit(path: str, depth: int, max_depth: int, skip: frozenset[str]) -> tuple[bool, list[str]]:
    """Inspect one directory.

    Returns (is_repo, child directories to descend into). Children are only
    listed when the directory is not a repo and the depth limit allows.
    """
    try:
        entries = _list_dir(path)
    except WalkError as e:
        logger.debug("Skipping unreadable directory %s: %s", path, e.strerror)
        return False, []

    subdirs: list[str] = []
    for entry in entries:
        try:
            if not entry.is_dir(follow_symlinks=False):
                continue
        except OSError:
            continue
        if entry.name == GIT_DIR:
            # Don't recurse into a found repo — nested repos are not reported
            return True, []
        subdirs.append(entry.name)

    if max_depth != UNLIMITED and depth >= max_depth:
        return False, []

    return False, [os.path.join(path, name) for name in sorted(subdirs) if name not in skip]


def iter_repos(
    root: str,
    max_depth: int = UNLIMITED,
    *,
    skip: Iterable[str] = (),
    fanout: int = WALK_FANOUT,
    token: Optional[CancelToken] = None,
) -> Iterator[RepoRecord]:
    """Lazily yield a RepoRecord for every git repository under root.

    Depth is counted from root = 0; ``UNLIMITED`` disables the cutoff.
    Sibling directories are listed by at most ``fanout`` threads. Records come
    out in discovery order, which is not stable across runs.
    """
    if fanout < 1:
        raise ValueError("fanout must be at least 1")
    root = os.path.abspath(os.path.expanduser(root))
    skipped = SKIP_DIRS | frozenset(skip)
    order = 0

    executor = ThreadPoolExecutor(max_workers=fanout, thread_name_prefix="gitdash-walk")
    try:
        pending: dict[Future, tuple[str, int]] = {
            executor.submit(_visit, root, 0, max_depth, skipped): (root, 0),
        }
        while pending:
            if token is not None and token.cancelled:
                return
            done, _ = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
            for fut in done:
                path, depth = pending.pop(fut)
                is_repo, children = fut.result()
                if is_repo:
                    yield make_record(path, root, order)
                    order += 1
                    continue
                for child in children:
                    pending[executor.submit(_visit, child, depth + 1, max_depth, skipped)] = (child, depth + 1)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def find_repos(root: str, max_depth: int = UNLIMITED, *, skip: Iterable[str] = ()) -> list[str]:
    """Recursively find all git repository paths under root.

    Returns a sorted list of absolute paths to directories containing .git.
    """
    return sorted(r.path for r in iter_repos(root, max_depth, skip=skip))
