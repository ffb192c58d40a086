"""Aggregation — order, filter and count the results of a scan pass."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from gitdash.git import StatusKind, StatusResult


def _sort_key(result: StatusResult) -> tuple[float, int]:
    return (-result.repo.modified_at.timestamp(), result.repo.order)


def aggregate(results: Iterable[StatusResult], show_all: bool = True) -> list[StatusResult]:
    """Most recently modified repository first; discovery order breaks ties.

    With ``show_all=False`` synced repositories are dropped. Errors are
    always kept so broken repositories stay visible.
    """
    ordered = sorted(results, key=_sort_key)
    if show_all:
        return ordered
    return only_unsynced(ordered)


def only_unsynced(results: Iterable[StatusResult]) -> list[StatusResult]:
    return [r for r in results if not r.synced]


def summarize(results: Iterable[StatusResult]) -> dict[StatusKind, int]:
    """Count results per kind, every kind present (zero when absent)."""
    counts = Counter(r.kind for r in results)
    return {kind: counts.get(kind, 0) for kind in StatusKind}


@dataclass
class ScanPass:
    """All results collected in one scan pass, in aggregate order."""

    root: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: list[StatusResult] = field(default_factory=list)
    submitted: int = 0
    cancelled: bool = False

    @property
    def missing(self) -> int:
        return max(0, self.submitted - len(self.results))

    @property
    def complete(self) -> bool:
        return not self.cancelled and self.missing == 0

    @property
    def summary(self) -> dict[StatusKind, int]:
        return summarize(self.results)

    def visible(self, show_all: bool = True) -> list[StatusResult]:
        return self.results if show_all else only_unsynced(self.results)

    def to_dict(self, show_all: bool = True) -> dict:
        return {
            "root": self.root,
            "started_at": self.started_at.isoformat(),
            "total_repos": len(self.results),
            "submitted": self.submitted,
            "missing": self.missing,
            "complete": self.complete,
            "summary": {kind.value: n for kind, n in self.summary.items()},
            "repos": [r.to_dict() for r in self.visible(show_all)],
        }
