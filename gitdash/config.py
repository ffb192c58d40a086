"""Scan settings — plain values handed to the engine at scan start."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from typing import Optional

from gitdash.constants import DEFAULT_CEILING, DEFAULT_TIMEOUT, UNLIMITED
from gitdash.errors import ConfigError


@dataclass
class ScanConfig:
    """Everything a front end decides before starting a scan.

    Attributes:
        root: Directory to scan (``~`` is expanded, made absolute).
        max_depth: Recursion limit, ``UNLIMITED`` for none.
        workers: Probe threads; None picks a default from the CPU count.
        timeout: Seconds allowed per repository.
        ceiling: Seconds to wait for a whole pass; None waits forever.
        show_all: Include synced repositories in the output.
        skip: Directory names to skip on top of the built-in list.
        cache_max_age: Seconds a cached status stays valid (dashboard only).
        refresh: Seconds between automatic dashboard rescans, 0 to disable.
    """

    root: str = "."
    max_depth: int = UNLIMITED
    workers: Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT
    ceiling: Optional[float] = DEFAULT_CEILING
    show_all: bool = False
    skip: tuple[str, ...] = field(default_factory=tuple)
    cache_max_age: Optional[float] = 15.0
    refresh: float = 60.0

    def __post_init__(self) -> None:
        self.root = os.path.abspath(os.path.expanduser(self.root))
        self.skip = tuple(self.skip)
        if self.max_depth < 0 and self.max_depth != UNLIMITED:
            raise ConfigError(f"depth must be >= 0 or {UNLIMITED} for unlimited")
        if self.workers is not None and self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.ceiling is not None and self.ceiling <= 0:
            raise ConfigError("ceiling must be positive")
        if self.refresh < 0:
            raise ConfigError("refresh interval cannot be negative")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ScanConfig:
        root = args.directory or args.path or os.getcwd()
        return cls(
            root=root,
            max_depth=args.depth,
            workers=args.workers,
            timeout=args.timeout,
            ceiling=args.ceiling or None,
            show_all=args.all,
            skip=tuple(args.skip or ()),
        )
