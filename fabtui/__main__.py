"""Command line entry point: ``fabtui [--socket PATH] [-p PROJECT]... [-a AGENT]``."""

from __future__ import annotations

import argparse
import sys
import tempfile
import traceback
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from rich.console import Console
from rich.control import Control

from fabtui.app import SupervisorApp
from fabtui.daemon import DaemonClient
from fabtui.errors import setup_logging
from fabtui.theme import get_available_theme_names

CRASH_LOG = Path(tempfile.gettempdir()) / "fabtui-crash.log"

# Value of a bare --theme
LIST_THEMES = "__list__"


def _version() -> str:
    try:
        return version("fabtui")
    except PackageNotFoundError:
        from fabtui import __version__

        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fabtui", description="Supervise fab agents from the terminal"
    )
    parser.add_argument("--version", "-V", action="version", version=f"fabtui {_version()}")
    parser.add_argument(
        "--socket",
        default=None,
        help="daemon socket (default: $FAB_SOCKET, then config, then ~/.fab/fab.sock)",
    )
    parser.add_argument(
        "--project",
        "-p",
        action="append",
        default=[],
        help="only show agents of this project; repeat for several",
    )
    parser.add_argument("--agent", "-a", default="", help="agent to select on startup")
    parser.add_argument(
        "--theme",
        "-t",
        nargs="?",
        const=LIST_THEMES,
        default=None,
        help="theme for this session; without a value, list the themes and exit",
    )
    return parser


def check_theme(name: str) -> None:
    """Return if `name` is a known theme, otherwise list the themes and exit."""
    names = sorted(get_available_theme_names())
    if name in names:
        return
    if name != LIST_THEMES:
        print(f"Unknown theme '{name}'.")
    print("Available themes:")
    for theme in names:
        print(f"  {theme}")
    sys.exit(0 if name == LIST_THEMES else 1)


def _write_crash_log() -> None:
    with CRASH_LOG.open("w", encoding="utf-8") as f:
        traceback.print_exc(file=f)
    traceback.print_exc()
    print(f"Traceback saved to {CRASH_LOG}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if args.theme:
        check_theme(args.theme)

    setup_logging()
    Console().control(Control.title("fab"))

    app = SupervisorApp(
        DaemonClient(args.socket) if args.socket else None,
        projects=args.project,
        initial_agent_id=args.agent,
        theme_override=args.theme,
    )
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    except Exception:
        _write_crash_log()
        sys.exit(1)


if __name__ == "__main__":
    main()
