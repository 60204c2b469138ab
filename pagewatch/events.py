"""Diagnostic events and the bridge that collects them.

EventBridge subscribes to a Browser and a Page (anything with an
``on(event, handler)`` method) and turns every signal into an immutable
DiagnosticEvent. Events go onto one FIFO queue; a single consumer task
formats them through the OutputSink.

Console arguments live in the page and have to be fetched. Each console
call is resolved concurrently and then published only after the console
call fired before it, so console lines keep their firing order. Every
other signal is queued the moment it fires and never waits on a console
lookup.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from pagewatch.js_expressions import RESOLVE_ARG_JS

if TYPE_CHECKING:
    from pagewatch.output import OutputSink

# Seconds one console argument may take to resolve (a pending promise never does).
ARG_TIMEOUT = 5.0


class Category(str, Enum):
    CONSOLE_LOG = "console-log"
    CONSOLE_INFO = "console-info"
    CONSOLE_WARN = "console-warn"
    CONSOLE_ERROR = "console-error"
    CONSOLE_DEBUG = "console-debug"
    PAGE_ERROR = "page-error"
    UNHANDLED_REJECTION = "unhandled-rejection"
    REQUEST_FAILED = "request-failed"
    RESPONSE_ERROR = "response-error"
    BROWSER_DISCONNECTED = "browser-disconnected"
    PAGE_CRASH = "page-crash"

    @property
    def is_console(self) -> bool:
        return self.value.startswith("console-")


# console.* type → category; anything not listed is a plain log line.
CONSOLE_CATEGORIES: dict[str, Category] = {
    "error": Category.CONSOLE_ERROR,
    "assert": Category.CONSOLE_ERROR,
    "warn": Category.CONSOLE_WARN,
    "warning": Category.CONSOLE_WARN,
    "info": Category.CONSOLE_INFO,
    "debug": Category.CONSOLE_DEBUG,
}


class Unresolvable:
    """Placeholder for a console argument that could not be fetched."""

    def __repr__(self) -> str:
        return "[unserializable]"


UNRESOLVABLE = Unresolvable()


@dataclass(frozen=True)
class SourceLocation:
    url: str = ""
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class DiagnosticEvent:
    """One normalized diagnostic signal, ready to print."""

    category: Category
    parts: tuple[Any, ...] = ()
    location: SourceLocation | None = None
    timestamp: float = field(default_factory=time.time)


QueueItem = Optional[DiagnosticEvent]


def console_category(msg_type: str) -> Category:
    return CONSOLE_CATEGORIES.get(msg_type, Category.CONSOLE_LOG)


def _error_text(error: Any) -> str:
    """Stack trace if there is one, else the message."""
    return getattr(error, "stack", "") or getattr(error, "message", "") or str(error)


async def resolve_args(args: Iterable[Any], *, timeout: float = ARG_TIMEOUT) -> tuple[Any, ...]:
    """Fetch every console argument concurrently, keeping their order.

    A failing or slow argument becomes UNRESOLVABLE; the others are unaffected.
    """
    settled = await asyncio.gather(
        *(asyncio.wait_for(arg.evaluate(RESOLVE_ARG_JS), timeout) for arg in args),
        return_exceptions=True,
    )
    parts: list[Any] = []
    for result in settled:
        if isinstance(result, BaseException):
            logger.debug("Console argument could not be resolved: {!r}", result)
            parts.append(UNRESOLVABLE)
        else:
            parts.append(result)
    return tuple(parts)


class EventBridge:
    """Funnels browser and page signals into one output stream.

    Args:
        sink: Where formatted events are written.

    Example:
        bridge = EventBridge(sink)
        bridge.attach_browser(browser)
        bridge.attach_page(page)      # before page.goto()
        bridge.start()
        ...
        await bridge.aclose()         # flush everything still pending
    """

    def __init__(self, sink: OutputSink) -> None:
        self.sink = sink
        self._queue: asyncio.Queue[QueueItem] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._console_tail: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self._closed = False

    # ── Subscriptions ──

    def attach_browser(self, browser: Any) -> None:
        browser.on("disconnected", self._on_disconnected)

    def attach_page(self, page: Any) -> None:
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("unhandledrejection", self._on_unhandled_rejection)
        page.on("requestfailed", self._on_request_failed)
        page.on("response", self._on_response)
        page.on("error", self._on_crash)

    # ── Lifecycle ──

    def start(self) -> None:
        """Start the consumer task that prints queued events."""
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._drain())

    async def aclose(self) -> None:
        """Wait for pending console lookups, then print everything queued."""
        if self._closed:
            return
        while self._pending:
            await asyncio.wait(set(self._pending))
        self._closed = True
        self._queue.put_nowait(None)
        if self._consumer is None:
            await self._drain()
        else:
            await self._consumer

    def publish(self, event: DiagnosticEvent) -> None:
        """Queue a finished event for printing."""
        if self._closed:
            logger.debug("Bridge closed; dropping {!r}", event)
            return
        self._queue.put_nowait(event)

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            try:
                self.sink.emit(event)
            except Exception:
                logger.exception("Failed to write diagnostic event")

    # ── Signal handlers ──

    def _on_console(self, msg: Any) -> None:
        if self._closed:
            logger.debug("Bridge closed; dropping console {}", msg.type)
            return
        resolving = asyncio.ensure_future(self._console_event(msg))
        task = asyncio.ensure_future(self._publish_after(self._console_tail, resolving))
        self._console_tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish_after(
        self, previous: asyncio.Task | None, resolving: asyncio.Future[DiagnosticEvent]
    ) -> None:
        if previous is not None:
            await asyncio.wait({previous})
        try:
            event = await resolving
        except Exception:
            logger.exception("Dropping console event that failed to build")
            return
        self.publish(event)

    async def _console_event(self, msg: Any) -> DiagnosticEvent:
        loc = msg.location
        parts = await resolve_args(msg.args)
        return DiagnosticEvent(
            category=console_category(msg.type),
            parts=parts,
            location=SourceLocation(loc.url or "", loc.line_number or 0, loc.column_number or 0),
            timestamp=msg.timestamp,
        )

    def _on_page_error(self, error: Any) -> None:
        self.publish(DiagnosticEvent(Category.PAGE_ERROR, (_error_text(error),)))

    def _on_unhandled_rejection(self, error: Any) -> None:
        self.publish(DiagnosticEvent(Category.UNHANDLED_REJECTION, (_error_text(error),)))

    def _on_request_failed(self, request: Any) -> None:
        self.publish(
            DiagnosticEvent(Category.REQUEST_FAILED, (f"{request.url} {request.failure}",))
        )

    def _on_response(self, response: Any) -> None:
        if response.ok:
            return
        self.publish(
            DiagnosticEvent(
                Category.RESPONSE_ERROR,
                (f"{response.status} {response.status_text} {response.url}",),
            )
        )

    def _on_crash(self, error: Any) -> None:
        self.publish(DiagnosticEvent(Category.PAGE_CRASH, (_error_text(error),)))

    def _on_disconnected(self, _payload: Any = None) -> None:
        self.publish(
            DiagnosticEvent(Category.BROWSER_DISCONNECTED, ("Browser was disconnected.",))
        )
