"""Shared visual constants and helpers for git-status-dash."""

from __future__ import annotations

from rich.style import Style
from rich.text import Text

from gitdash.git import StatusKind, StatusResult

# ── Color Palette (GitHub Dark + Neon Accents) ──────────────────────────

SURFACE = "#161b22"
MUTED = "#8b949e"

CYAN = "#58a6ff"
GREEN = "#39d353"
YELLOW = "#e3b341"
RED = "#f85149"

# ── Status Markers ──────────────────────────────────────────────────────

SYMBOLS: dict[StatusKind, str] = {
    StatusKind.SYNCED: "✓",
    StatusKind.AHEAD: "↑",
    StatusKind.BEHIND: "↓",
    StatusKind.DIVERGED: "↕",
    StatusKind.DIRTY: "✗",
    StatusKind.ERROR: "⚠",
}

KIND_COLORS: dict[StatusKind, str] = {
    StatusKind.SYNCED: GREEN,
    StatusKind.AHEAD: YELLOW,
    StatusKind.BEHIND: YELLOW,
    StatusKind.DIVERGED: YELLOW,
    StatusKind.DIRTY: RED,
    StatusKind.ERROR: RED,
}

LEGEND = [
    (StatusKind.SYNCED, "Synced and up to date"),
    (StatusKind.AHEAD, "Ahead of remote (local commits to push)"),
    (StatusKind.BEHIND, "Behind remote (commits to pull)"),
    (StatusKind.DIVERGED, "Diverged (need to merge or rebase)"),
    (StatusKind.DIRTY, "Uncommitted changes"),
    (StatusKind.ERROR, "Error accessing repository"),
]


def status_style(kind: StatusKind) -> Style:
    return Style(color=KIND_COLORS[kind], bold=kind is StatusKind.ERROR)


def status_symbol(result: StatusResult) -> Text:
    return Text(SYMBOLS[result.kind], style=status_style(result.kind))


def repo_label(result: StatusResult) -> str:
    """Display name: the path relative to the scan root, '.' for the root."""
    return result.repo.rel_path or "."


def render_summary(summary: dict[StatusKind, int]) -> Text:
    """One-line count per kind, e.g. '✓ 4  ↑ 1  ✗ 2'; zero counts omitted."""
    text = Text()
    for kind, count in summary.items():
        if not count:
            continue
        if text:
            text.append("  ")
        text.append(f"{SYMBOLS[kind]} {count}", style=status_style(kind))
    if not text:
        text.append("no repositories", style=Style(color=MUTED, italic=True))
    return text


def render_legend() -> Text:
    """One line per status symbol and its meaning."""
    text = Text()
    for kind, label in LEGEND:
        text.append(f"  {SYMBOLS[kind]} ", style=status_style(kind))
        text.append(f"{label}\n", style=Style(color=MUTED))
    return text
