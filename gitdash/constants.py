"""Shared constants for git-status-dash."""

from __future__ import annotations

APP_NAME = "gitdash"

# ── Discovery ───────────────────────────────────────────────────────────

UNLIMITED = -1
"""Depth sentinel: walk without a depth cutoff."""

GIT_DIR = ".git"

WALK_FANOUT = 4
"""Directories listed concurrently by the walker."""

# ── Probing ─────────────────────────────────────────────────────────────

GIT = "git"

DEFAULT_TIMEOUT = 5.0
"""Seconds a single repository probe may take."""

DEFAULT_CEILING = 30.0
"""Seconds a scan pass waits for results before giving up on stragglers."""

MAX_WORKERS = 16

CANCEL_GRACE = 2.0
"""Seconds to wait for workers to exit after a cancel."""

# ── Status details ──────────────────────────────────────────────────────

DETAIL_SYNCED = "Up to date"
DETAIL_DIRTY = "Uncommitted changes"
DETAIL_ERROR = "Error accessing repository"
DETAIL_TIMEOUT = "Timeout"
DETAIL_CANCELLED = "Scan cancelled"
