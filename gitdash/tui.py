"""Textual TUI dashboard — live repository status that refreshes in place."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Label, Static
from textual.worker import get_current_worker

from gitdash.aggregate import ScanPass, aggregate, summarize
from gitdash.cache import ResultCache
from gitdash.config import ScanConfig
from gitdash.engine import Scanner
from gitdash.git import StatusResult
from gitdash.theme import MUTED, render_summary, repo_label, status_style, status_symbol


def detail_text(result: StatusResult) -> Text:
    """Body of the detail panel for one repository."""
    text = Text()
    text.append("Repository Details\n\n", style="bold")
    for label, value in (
        ("Path", result.repo.path),
        ("Branch", result.branch or "—"),
        ("Status", result.detail),
        ("Last Commit", result.last_commit or "—"),
    ):
        text.append(f"{label + ':':<13}", style=MUTED)
        text.append(f"{value}\n", style=status_style(result.kind) if label == "Status" else "")
    return text


def missing_note(scan_pass: ScanPass) -> str:
    """Status-bar note for repositories that never reported back."""
    if not scan_pass.missing:
        return ""
    reason = "pass stopped early" if scan_pass.cancelled else "no reply"
    return f"   {scan_pass.missing} not answered ({reason})"


class StatusTable(DataTable):
    """One row per repository, keyed by path."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.add_columns("", "Repository", "Status", "Branch")

    def add_result(self, result: StatusResult) -> None:
        if result.path in self.rows:
            self.remove_row(result.path)
        self.add_row(
            status_symbol(result),
            Text(repo_label(result), style=status_style(result.kind)),
            Text(result.detail, style=status_style(result.kind)),
            Text(result.branch, style=MUTED),
            key=result.path,
        )

    def show(self, results: list[StatusResult]) -> None:
        self.clear()
        for r in results:
            self.add_result(r)


class DetailPanel(Static):
    """Details of the selected repository."""


class DashApp(App):
    """git-status-dash — live status of every repository under a directory."""

    CSS = """
    #status {
        height: 1;
        padding: 0 1;
    }

    #repos {
        height: 1fr;
    }

    #detail {
        display: none;
        border: round $accent;
        padding: 1 2;
        height: auto;
    }

    #detail.visible {
        display: block;
    }
    """

    TITLE = "git-status-dash"
    SUB_TITLE = "repository sync status"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("a", "toggle_all", "Show all"),
        Binding("escape", "close_detail", "Close details", show=False),
    ]

    def __init__(self, config: ScanConfig) -> None:
        super().__init__()
        self.config = config
        self.show_all = config.show_all
        self.scanner = Scanner(
            ResultCache(config.cache_max_age),
            workers=config.workers,
            timeout=config.timeout,
            ceiling=config.ceiling,
            skip=config.skip,
        )
        self.results: list[StatusResult] = []
        self.known: dict[str, StatusResult] = {}
        self.last_pass: Optional[ScanPass] = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Label("  Scanning repositories...", id="status")
        yield StatusTable(id="repos")
        yield DetailPanel(id="detail")
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = self.config.root
        self.run_scan()
        if self.config.refresh:
            self.set_interval(self.config.refresh, self.run_scan)

    def on_unmount(self) -> None:
        # Workers are daemon threads; never block the UI thread joining them.
        self.scanner.cancel(grace=0)

    # ── Scanning ────────────────────────────────────────────────────────

    @work(thread=True, exclusive=True, group="scan")
    def run_scan(self) -> None:
        """Scan in a background thread, streaming rows as results arrive."""
        worker = get_current_worker()
        handle = self.scanner.start_scan(self.config.root, self.config.max_depth)
        self.call_from_thread(self._set_status, Text("  Scanning repositories...", style=MUTED))
        for result in handle:
            if worker.is_cancelled:
                handle.cancel()
                return
            self.call_from_thread(self._add_result, result)
        scan_pass = handle.wait()
        if not worker.is_cancelled:
            self.call_from_thread(self._finish_scan, scan_pass)

    def _set_status(self, text: Text) -> None:
        try:
            self.query_one("#status", Label).update(text)
        except Exception:
            pass

    def _add_result(self, result: StatusResult) -> None:
        self.known[result.path] = result
        table = self.query_one(StatusTable)
        if self.show_all or not result.synced:
            table.add_result(result)
        elif result.path in table.rows:
            table.remove_row(result.path)

    def _finish_scan(self, scan_pass: ScanPass) -> None:
        self.last_pass = scan_pass
        self.results = scan_pass.results
        self.known = {r.path: r for r in scan_pass.results}
        self._redraw()

    def visible_rows(self) -> list[StatusResult]:
        """Rows to display: the last finished pass, or what has streamed in so far."""
        current = self.results or list(self.known.values())
        return aggregate(current, show_all=self.show_all)

    def _redraw(self) -> None:
        visible = self.visible_rows()
        self.query_one(StatusTable).show(visible)

        status = Text("  ")
        if not self.results:
            status.append("No git repositories found.", style=MUTED)
        else:
            status.append_text(render_summary(summarize(self.results)))
            if not visible:
                status.append("   all synced, press a to list them", style=MUTED)
        if self.last_pass is not None:
            status.append(missing_note(self.last_pass), style=MUTED)
        status.append(f"   updated {datetime.now():%H:%M:%S}", style=MUTED)
        self._set_status(status)

    # ── Actions ─────────────────────────────────────────────────────────

    def action_refresh(self) -> None:
        self.scanner.invalidate_cache()
        self.run_scan()

    def action_toggle_all(self) -> None:
        self.show_all = not self.show_all
        if self.last_pass is not None:
            self._redraw()
        else:
            self.query_one(StatusTable).show(self.visible_rows())

    def action_close_detail(self) -> None:
        self.query_one(DetailPanel).remove_class("visible")

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        result = self.known.get(event.row_key.value)
        if result is None:
            return
        panel = self.query_one(DetailPanel)
        panel.update(detail_text(result))
        panel.toggle_class("visible")


def run_tui(config: ScanConfig) -> None:
    """Launch the git-status-dash TUI dashboard."""
    app = DashApp(config)
    app.run()
