"""pagewatch CLI — open a page headlessly and mirror its diagnostics.

Usage:
    pagewatch <url> "[commands]"
    pagewatch --help

Examples:
    pagewatch https://example.com                       # Console + errors while loading
    pagewatch https://example.com "click .some-button"  # Click, then report
    pagewatch localhost:3000 "wait 2s click #save"      # Sequence of commands
"""

from __future__ import annotations

import os
import sys

from pagewatch.config import SessionConfig
from pagewatch.core import BrowserNotRunning, CDPError
from pagewatch.logging_utils import configure_logging
from pagewatch.output import OutputSink
from pagewatch.session import run


# ── Colors (disable with NO_COLOR env var) ──

_NO_COLOR = os.environ.get("NO_COLOR") or not sys.stdout.isatty()


def _dim(s: str) -> str:
    return s if _NO_COLOR else f"\033[2m{s}\033[0m"


def _bold(s: str) -> str:
    return s if _NO_COLOR else f"\033[1m{s}\033[0m"


def _cyan(s: str) -> str:
    return s if _NO_COLOR else f"\033[36m{s}\033[0m"


def _red(s: str) -> str:
    return s if _NO_COLOR else f"\033[31m{s}\033[0m"


# ── Help text ──

COMMANDS = [
    ("wait <time>", "Waits for a specified time (e.g., 5s, 1000ms)."),
    ("click <selector>", "Clicks an element."),
]


class UsageError(Exception):
    """Bad command line; reported on stderr with exit code 1."""

    pass


def print_main_help() -> None:
    """Print the usage text."""
    print()
    print(f"{_bold('Usage:')} pagewatch <url> \"[commands]\"")
    print()
    print("A command-line tool to automate browser actions.")
    print("Console output, page errors, failed requests and non-OK responses")
    print("are mirrored to this terminal.")
    print()
    print(_cyan("Commands:"))
    for cmd, desc in COMMANDS:
        print(f"  {cmd:<18}{desc}")
    print()
    print(_cyan("Example:"))
    print('  pagewatch https://example.com "click .some-button wait 5s"')
    print()
    print(_dim("Env: CDP_URL — attach to a running browser instead of launching one"))
    print(_dim("     PAGEWATCH_CHROME — browser binary (default: auto-detect)"))
    print(_dim("     PAGEWATCH_HEADLESS=0 — show the browser window"))
    print(_dim("     PAGEWATCH_LOG_LEVEL — internal log level (default: WARNING)"))
    print(_dim("     NO_COLOR — disable colored output"))
    print()


def parse_args(args: list[str]) -> tuple[str, str | None]:
    """Return (url, commands) from the positional arguments.

    Raises:
        UsageError: an unknown option was given or the URL is missing.
    """
    positional: list[str] = []
    for arg in args:
        if arg.startswith("-") and len(arg) > 1:
            raise UsageError(f"Unknown option: {arg}")
        positional.append(arg)

    url = positional[0] if positional else ""
    if not url:
        raise UsageError("Please provide a URL.")
    commands = positional[1] if len(positional) > 1 else None
    return url, commands


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = sys.argv[1:] if argv is None else argv

    # No args or help flag
    if not args or any(a in ("--help", "-h") for a in args):
        print_main_help()
        return

    if any(a in ("--version", "-V") for a in args):
        from pagewatch import __version__
        print(f"pagewatch {__version__}")
        return

    try:
        url, commands = parse_args(args)
    except UsageError as e:
        print(str(e), file=sys.stderr)
        print(_dim("Run 'pagewatch --help' for usage."), file=sys.stderr)
        sys.exit(1)

    configure_logging()

    try:
        run(url, commands, config=SessionConfig.load(), sink=OutputSink())
    except BrowserNotRunning as e:
        print(_red("✗ Browser not running\n"), file=sys.stderr)
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except (CDPError, FileNotFoundError, TimeoutError) as e:
        print(_red(f"✗ {e}"), file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
