"""CLI entry point for git-status-dash."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from gitdash import __version__
from gitdash.aggregate import ScanPass
from gitdash.config import ScanConfig
from gitdash.constants import APP_NAME, DEFAULT_CEILING, DEFAULT_TIMEOUT, UNLIMITED
from gitdash.engine import Scanner
from gitdash.errors import ConfigError

logger = logging.getLogger(APP_NAME)


def _setup_logging(verbose: bool) -> None:
    """Send library logs to stderr through rich."""
    from rich.console import Console
    from rich.logging import RichHandler

    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _run_scan(config: ScanConfig) -> ScanPass:
    """Scan config.root to completion with progress on stderr."""
    scanner = Scanner(
        workers=config.workers,
        timeout=config.timeout,
        ceiling=config.ceiling,
        skip=config.skip,
    )
    handle = scanner.start_scan(config.root, config.max_depth)
    try:
        for i, result in enumerate(handle, 1):
            print(f"\r  [{i}] {result.repo.name:<30}", end="", file=sys.stderr)
    except KeyboardInterrupt:
        handle.cancel()
        print(file=sys.stderr)
        raise
    print("\r" + " " * 40 + "\r", end="", file=sys.stderr)
    return handle.wait()


def print_report(config: ScanConfig) -> None:
    """Print a one-shot Rich table of repository status to stdout."""
    from rich.console import Console
    from rich.table import Table
    from rich.text import Text

    from gitdash.theme import (
        CYAN,
        MUTED,
        RED,
        SURFACE,
        render_summary,
        repo_label,
        status_style,
        status_symbol,
    )

    console = Console()
    scan_pass = _run_scan(config)
    console.print(f"Found [bold {CYAN}]{len(scan_pass.results)}[/bold {CYAN}] repositories")

    if scan_pass.missing:
        console.print(
            f"[{RED}]{scan_pass.missing} repositories did not answer in time "
            f"and are not shown.[/{RED}]"
        )

    rows = scan_pass.visible(config.show_all)
    if not rows:
        if scan_pass.results:
            console.print(f"[{MUTED}]Everything is up to date.[/{MUTED}] Use --all to list them.")
        else:
            console.print(f"[{RED}]No git repos found.[/{RED}] Try: git-status-dash ~/code")
        return

    table = Table(border_style=SURFACE, show_edge=False, box=None, pad_edge=False)
    table.add_column("", no_wrap=True)
    table.add_column("Repository", no_wrap=True)
    table.add_column("Status")
    table.add_column("Branch", style=MUTED)

    for r in rows:
        style = status_style(r.kind)
        table.add_row(
            status_symbol(r),
            Text(repo_label(r), style=style),
            Text(r.detail, style=style),
            r.branch,
        )

    console.print(table)
    console.print()
    console.print(render_summary(scan_pass.summary))


def print_json(config: ScanConfig) -> None:
    """Dump the scan pass as JSON to stdout."""
    scan_pass = _run_scan(config)
    print(json.dumps(scan_pass.to_dict(show_all=config.show_all), indent=2))


def build_parser() -> argparse.ArgumentParser:
    from gitdash.theme import render_legend

    legend = render_legend().plain.rstrip("\n")
    parser = argparse.ArgumentParser(
        prog="git-status-dash",
        description="Monitor git repository status — find repos and show what needs pushing or pulling.",
        epilog=(
            "examples:\n  git-status-dash --report\n  git-status-dash -d ~/projects -a\n\n"
            f"status:\n{legend}"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="Directory to scan for git repos (default: current directory)",
    )
    parser.add_argument(
        "-d", "--directory",
        metavar="DIR",
        help="Directory to scan (overrides PATH)",
    )
    parser.add_argument(
        "-r", "--report",
        action="store_true",
        help="Print a brief report instead of the dashboard",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the scan as JSON",
    )
    parser.add_argument(
        "-a", "--all",
        action="store_true",
        help="Show all repositories, including synced ones",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=UNLIMITED,
        metavar="N",
        help="Limit recursion depth (default: unlimited)",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        metavar="N",
        help="Concurrent git probes (default: 2x CPUs, max 16)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        metavar="SECONDS",
        help=f"Per-repository timeout (default: {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--ceiling",
        type=float,
        default=DEFAULT_CEILING,
        metavar="SECONDS",
        help=f"Give up on slow repositories after this long, 0 to wait forever (default: {DEFAULT_CEILING:g})",
    )
    parser.add_argument(
        "--skip",
        nargs="+",
        metavar="NAME",
        help="Extra directory names to skip",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log skipped directories, degraded queries and timeouts",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"git-status-dash {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the git-status-dash CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = ScanConfig.from_args(args)
    except ConfigError as e:
        parser.error(str(e))
    if not os.path.isdir(config.root):
        parser.error(f"not a directory: {config.root}")

    try:
        if args.json_output:
            print_json(config)
        elif args.report:
            print_report(config)
        else:
            from gitdash.tui import run_tui
            run_tui(config)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
