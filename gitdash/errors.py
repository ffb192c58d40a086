"""Exception types.

Only ``ConfigError`` ever reaches callers of the scan engine. The others are
raised and caught inside the walker and the probe, where they are turned into
an empty walk contribution or an ``error`` status result.
"""

from __future__ import annotations


class GitDashError(Exception):
    """Base class for git-status-dash errors."""


class ConfigError(GitDashError, ValueError):
    """Invalid scan configuration (worker count, timeout, queue size)."""


class WalkError(GitDashError, OSError):
    """A directory could not be listed during discovery."""


class ProbeError(GitDashError):
    """A git query did not produce usable output."""

    def __init__(self, repo_path: str, args: list[str], message: str = "") -> None:
        self.repo_path = repo_path
        self.git_args = args
        super().__init__(f"git {' '.join(args)} in {repo_path}: {message}".rstrip(": "))


class ProbeFailure(ProbeError):
    """git is missing, the path is gone, or the query exited non-zero."""


class ProbeTimeout(ProbeError):
    """The job deadline expired while a query was running."""


class ProbeCancelled(ProbeError):
    """The scan was cancelled while a query was running."""
