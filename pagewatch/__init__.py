"""pagewatch — mirror a web page's console and errors to your terminal.

Opens a URL in headless Chrome/Chromium over CDP, optionally runs a short
command sequence (``wait``, ``click``), and prints every console message,
uncaught error, failed request and non-OK response as it happens.

Quick start:
    $ pagewatch https://example.com "click .some-button wait 5s"

Or from Python:
    from pagewatch import run

    run("https://example.com", "click .some-button wait 5s")
"""

from pagewatch.commands import CommandExecutor, tokenize
from pagewatch.core import Browser, Page
from pagewatch.events import DiagnosticEvent, EventBridge
from pagewatch.session import run, run_session

__version__ = "0.1.0"
__all__ = [
    "Browser",
    "CommandExecutor",
    "DiagnosticEvent",
    "EventBridge",
    "Page",
    "run",
    "run_session",
    "tokenize",
]
