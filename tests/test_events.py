from __future__ import annotations

import asyncio

import pytest

from fakes import FakeHandle, FakePage
from pagewatch.core import ConsoleLocation, ConsoleMessage, EventEmitter, PageError, Request, Response
from pagewatch.events import (
    UNRESOLVABLE,
    Category,
    EventBridge,
    console_category,
    resolve_args,
)
from pagewatch.js_expressions import RESOLVE_ARG_JS

STACK = "Error: boom\n    at willError (https://x.test/app.js:2:9)"


def console(msg_type: str, *args: FakeHandle, line: int = 7, column: int = 3) -> ConsoleMessage:
    return ConsoleMessage(
        type=msg_type,
        location=ConsoleLocation("https://x.test/app.js", line, column),
        args=list(args),
    )


@pytest.mark.parametrize(
    ("msg_type", "category"),
    [
        ("log", Category.CONSOLE_LOG),
        ("error", Category.CONSOLE_ERROR),
        ("warn", Category.CONSOLE_WARN),
        ("warning", Category.CONSOLE_WARN),
        ("info", Category.CONSOLE_INFO),
        ("debug", Category.CONSOLE_DEBUG),
        ("table", Category.CONSOLE_LOG),
    ],
)
def test_console_category(msg_type: str, category: Category) -> None:
    assert console_category(msg_type) is category


@pytest.mark.asyncio
async def test_resolve_args_keeps_order_and_isolates_failures() -> None:
    handles = [
        FakeHandle(STACK, delay=0.02),
        FakeHandle(error=RuntimeError("Object reference chain is too long")),
        FakeHandle({"a": 1}),
    ]

    parts = await resolve_args(handles)

    assert parts == (STACK, UNRESOLVABLE, {"a": 1})
    assert all(h.functions == [RESOLVE_ARG_JS] for h in handles)


@pytest.mark.asyncio
async def test_resolve_args_runs_concurrently() -> None:
    handles = [FakeHandle(i, delay=0.05) for i in range(5)]
    loop = asyncio.get_running_loop()

    started = loop.time()
    await resolve_args(handles)

    assert loop.time() - started < 0.2


@pytest.mark.asyncio
async def test_console_event_with_error_and_object(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("console", console("error", FakeHandle(STACK), FakeHandle({"a": 1})))
    await bridge.aclose()

    assert captured.err.getvalue() == f"[error] https://x.test/app.js:7:3 {STACK} {{ a: 1 }}\n"


@pytest.mark.asyncio
async def test_console_event_survives_failing_argument(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("console", console("log", FakeHandle(STACK), FakeHandle(error=RuntimeError("gone"))))
    await bridge.aclose()

    assert captured.out.getvalue() == f"[log] https://x.test/app.js:7:3 {STACK} [unserializable]\n"


@pytest.mark.asyncio
async def test_console_events_print_in_firing_order(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("console", console("log", FakeHandle("first", delay=0.05), line=0))
    page.emit("console", console("log", FakeHandle("second"), line=0))
    await bridge.aclose()

    assert captured.out.getvalue().splitlines() == [
        "[log] https://x.test/app.js first",
        "[log] https://x.test/app.js second",
    ]


@pytest.mark.asyncio
async def test_page_and_network_signals(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("pageerror", PageError(message="Error: boom", stack=STACK))
    page.emit("unhandledrejection", PageError(message="This is an unhandled promise rejection"))
    page.emit("requestfailed", Request(url="https://x.test/a.js", failure="net::ERR_FAILED"))
    page.emit("response", Response(url="https://x.test/", status=200, status_text="OK"))
    page.emit("response", Response(url="https://x.test/missing", status=404, status_text="Not Found"))
    page.emit("error", PageError(message="Page crashed!"))
    await bridge.aclose()

    assert captured.out.getvalue() == ""
    assert captured.err.getvalue().splitlines() == [
        "[page-error] Error: boom",
        "    at willError (https://x.test/app.js:2:9)",
        "[unhandled-rejection] This is an unhandled promise rejection",
        "[request-failed] https://x.test/a.js net::ERR_FAILED",
        "[response-error] 404 Not Found https://x.test/missing",
        "[page-crash] Page crashed!",
    ]


@pytest.mark.asyncio
async def test_browser_disconnect(captured) -> None:
    browser = EventEmitter()
    bridge = EventBridge(captured.sink)
    bridge.attach_browser(browser)
    bridge.start()

    browser.emit("disconnected")
    await bridge.aclose()

    assert captured.err.getvalue() == "[browser-disconnected] Browser was disconnected.\n"


@pytest.mark.asyncio
async def test_events_after_close_are_dropped(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()
    await bridge.aclose()

    page.emit("pageerror", PageError(message="late"))
    page.emit("console", console("log", FakeHandle("late")))
    await asyncio.sleep(0)

    assert captured.err.getvalue() == ""
    assert captured.out.getvalue() == ""


@pytest.mark.asyncio
async def test_aclose_without_start_flushes(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)

    page.emit("pageerror", PageError(message="queued"))
    await bridge.aclose()

    assert captured.err.getvalue() == "[page-error] queued\n"


@pytest.mark.asyncio
async def test_slow_console_lookup_does_not_hold_back_other_signals(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("console", console("log", FakeHandle("slow", delay=0.3), line=0))
    page.emit("pageerror", PageError(message="Error: boom"))
    await asyncio.sleep(0.05)

    assert captured.err.getvalue() == "[page-error] Error: boom\n"
    assert captured.out.getvalue() == ""

    await bridge.aclose()
    assert captured.out.getvalue() == "[log] https://x.test/app.js slow\n"


@pytest.mark.asyncio
async def test_console_order_holds_while_other_signals_pass(captured) -> None:
    page = FakePage()
    bridge = EventBridge(captured.sink)
    bridge.attach_page(page)
    bridge.start()

    page.emit("console", console("warn", FakeHandle("first", delay=0.1), line=0))
    page.emit("requestfailed", Request(url="https://x.test/a.js", failure="net::ERR_FAILED"))
    page.emit("console", console("error", FakeHandle("second"), line=0))
    await bridge.aclose()

    assert captured.err.getvalue().splitlines() == [
        "[request-failed] https://x.test/a.js net::ERR_FAILED",
        "[warn] https://x.test/app.js first",
        "[error] https://x.test/app.js second",
    ]


@pytest.mark.asyncio
async def test_never_settling_argument_times_out() -> None:
    parts = await resolve_args([FakeHandle("pending", delay=5), FakeHandle(1)], timeout=0.05)

    assert parts == (UNRESOLVABLE, 1)
