"""Core async CDP connection, Browser and Page classes.

This is the browser collaborator. Browser launches (or attaches to) a
Chrome/Chromium and hands out Page objects; each Page turns raw CDP events
into a small set of named page events that callers subscribe to with on().

    import asyncio
    from pagewatch import Browser

    async def demo():
        browser = await Browser.launch()
        try:
            page = await browser.new_page()
            page.on("console", lambda msg: print(msg.type, msg.location))
            await page.goto("https://example.com")
            await page.click("a")
        finally:
            await browser.close()

    asyncio.run(demo())
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess
import sys
import tempfile
import time
from collections.abc import Callable, Iterable
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.error import URLError
from urllib.parse import urlsplit, urlunsplit
from urllib.request import urlopen

from loguru import logger
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from pagewatch.js_expressions import click_target_js

# waitUntil name → Page.lifecycleEvent name
LIFECYCLE_EVENTS: dict[str, str] = {
    "load": "load",
    "domcontentloaded": "DOMContentLoaded",
    "networkidle0": "networkIdle",
    "networkidle2": "networkAlmostIdle",
}

DEFAULT_CHROME_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-networking",
    "--disable-sync",
]


# ── Errors ──


class CDPError(Exception):
    """Error from the Chrome DevTools Protocol."""

    pass


class NavigationError(CDPError):
    """Raised when Page.goto fails or does not settle in time."""

    pass


class ClickError(CDPError):
    """Raised when a click target is missing or not clickable."""

    pass


class BrowserNotRunning(Exception):
    """Raised when CDP endpoint is unreachable."""

    def __init__(self, cdp_url: str) -> None:
        self.cdp_url = cdp_url
        port = cdp_url.rsplit(":", 1)[-1].split("/")[0]
        super().__init__(
            f"Cannot connect to browser at {cdp_url}\n\n"
            f"Make sure Chrome/Chromium is running with remote debugging enabled:\n"
            f"  chrome --remote-debugging-port={port}\n\n"
            f"Or unset CDP_URL to let pagewatch launch its own headless browser."
        )


# ── Values decoded from the page ──


class Undefined:
    """JavaScript ``undefined``; distinct from ``null`` (None)."""

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = Undefined()


class BigInt(int):
    """A JavaScript BigInt value."""

    def __repr__(self) -> str:
        return f"{int(self)}n"


def _unserializable(raw: str) -> Any:
    if raw == "NaN":
        return float("nan")
    if raw == "Infinity":
        return float("inf")
    if raw == "-Infinity":
        return float("-inf")
    if raw == "-0":
        return -0.0
    if raw.endswith("n"):
        try:
            return BigInt(int(raw[:-1]))
        except ValueError:
            pass
    raise CDPError(f"Unknown unserializable value: {raw}")


def value_from_remote(remote: dict[str, Any]) -> Any:
    """Decode a CDP RemoteObject that was returned by value."""
    if "unserializableValue" in remote:
        return _unserializable(remote["unserializableValue"])
    if remote.get("type") == "undefined":
        return UNDEFINED
    if "value" in remote:
        return remote["value"]
    raise CDPError(
        f"Could not serialize {remote.get('description') or remote.get('type', 'value')}"
    )


def _call_argument(remote: dict[str, Any]) -> dict[str, Any]:
    """Turn a RemoteObject into a Runtime.CallArgument."""
    if "objectId" in remote:
        return {"objectId": remote["objectId"]}
    if "unserializableValue" in remote:
        return {"unserializableValue": remote["unserializableValue"]}
    if remote.get("type") == "undefined":
        return {}
    return {"value": remote.get("value")}


def _exception_text(details: dict[str, Any]) -> str:
    exception = details.get("exception") or {}
    if "value" in exception and exception.get("type") != "object":
        return str(exception["value"])
    return exception.get("description") or details.get("text") or "Evaluation failed"


# ── Event emitter ──

Handler = Callable[[Any], Any]


class EventEmitter:
    """Minimal synchronous event emitter.

    Handlers run in registration order. A failing handler is logged and
    skipped so it can never break the CDP read loop.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> None:
        """Subscribe ``handler`` to ``event``."""
        self._handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for {!r} failed", event)


# ── CDP connection (async) ──


class CDPConnection(EventEmitter):
    """One websocket to the browser endpoint.

    Commands are matched to responses by id. Target sessions are attached
    in flattened mode, so their events arrive on this same socket tagged
    with a ``sessionId`` and are routed to the matching CDPSession.
    Browser-level events are emitted on the connection itself; when the
    socket closes, every pending command fails with CDPError and a
    ``disconnected`` event is emitted.
    """

    def __init__(self, ws: Any, timeout: float = 30.0) -> None:
        super().__init__()
        self._ws = ws
        self.timeout = timeout
        self._id = 0
        self._pending: dict[int, asyncio.Future[dict]] = {}
        self._sessions: dict[str, CDPSession] = {}
        self._reader: asyncio.Task | None = None
        self.closed = False

    @classmethod
    async def connect(cls, ws_url: str, timeout: float = 30.0) -> CDPConnection:
        """Open the websocket and start reading."""
        ws = await ws_connect(ws_url, max_size=None, ping_interval=None, open_timeout=timeout)
        connection = cls(ws, timeout=timeout)
        connection.start()
        return connection

    def start(self) -> None:
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop())

    def create_session(self, session_id: str, target_id: str = "") -> CDPSession:
        session = CDPSession(self, session_id, target_id)
        self._sessions[session_id] = session
        return session

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict:
        """Send a CDP command and wait for its result."""
        if self.closed:
            raise CDPError(f"{method}: connection closed")
        self._id += 1
        msg_id = self._id
        msg: dict[str, Any] = {"id": msg_id, "method": method, "params": params or {}}
        if session_id:
            msg["sessionId"] = session_id

        future: asyncio.Future[dict] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        limit = self.timeout if timeout is None else timeout
        logger.debug("CDP -> {} #{} {}", method, msg_id, session_id or "browser")
        try:
            await self._ws.send(json.dumps(msg))
            return await asyncio.wait_for(future, limit)
        except asyncio.TimeoutError:
            raise CDPError(f"{method} timed out after {limit:g}s") from None
        except ConnectionClosed as exc:
            raise CDPError(f"{method}: connection closed") from exc
        finally:
            self._pending.pop(msg_id, None)

    async def close(self) -> None:
        with suppress(Exception):
            await self._ws.close()
        if self._reader is not None:
            with suppress(asyncio.CancelledError):
                await self._reader
        self._on_closed()

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.debug("Dropping non-JSON CDP frame")
                    continue
                if isinstance(msg, dict):
                    self._dispatch(msg)
        except ConnectionClosed as exc:
            logger.debug("CDP socket closed: {}", exc)
        finally:
            self._on_closed()

    def _dispatch(self, msg: dict[str, Any]) -> None:
        if "id" in msg:
            future = self._pending.get(msg["id"])
            if future is None or future.done():
                return
            if "error" in msg:
                error = msg["error"]
                future.set_exception(CDPError(error.get("message", str(error))))
            else:
                future.set_result(msg.get("result", {}))
            return

        method = msg.get("method")
        if not isinstance(method, str):
            return
        params = msg.get("params") or {}
        session_id = msg.get("sessionId")
        if session_id:
            session = self._sessions.get(session_id)
            if session is not None:
                session.emit(method, params)
            return
        if method == "Target.detachedFromTarget":
            session = self._sessions.pop(params.get("sessionId", ""), None)
            if session is not None:
                session._on_detached()
        self.emit(method, params)

    def _on_closed(self) -> None:
        if self.closed:
            return
        self.closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_exception(CDPError("Connection closed"))
        self._pending.clear()
        for session in list(self._sessions.values()):
            session._on_detached()
        self._sessions.clear()
        self.emit("disconnected")


class CDPSession(EventEmitter):
    """A flattened target session multiplexed on a CDPConnection."""

    def __init__(self, connection: CDPConnection, session_id: str, target_id: str = "") -> None:
        super().__init__()
        self.connection = connection
        self.session_id = session_id
        self.target_id = target_id
        self.detached = False

    async def send(
        self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None
    ) -> dict:
        if self.detached:
            raise CDPError(f"{method}: target closed")
        return await self.connection.send(
            method, params, session_id=self.session_id, timeout=timeout
        )

    def _on_detached(self) -> None:
        if self.detached:
            return
        self.detached = True
        self.emit("detached")


# ── Page event payloads ──


@dataclass(frozen=True)
class ConsoleLocation:
    """Where a console call happened (0-based line/column, as CDP reports)."""

    url: str = ""
    line_number: int = 0
    column_number: int = 0


class JSHandle:
    """Reference to a value living in the page."""

    def __init__(
        self, session: CDPSession, remote: dict[str, Any], context_id: int | None = None
    ) -> None:
        self._session = session
        self.remote_object = remote
        self._context_id = context_id

    async def evaluate(self, function_declaration: str) -> Any:
        """Call ``function_declaration`` with this value and return the result by value.

        Raises:
            CDPError: the function threw or the result is not serializable.
        """
        params: dict[str, Any] = {
            "functionDeclaration": function_declaration,
            "arguments": [_call_argument(self.remote_object)],
            "returnByValue": True,
            "awaitPromise": True,
        }
        if "objectId" in self.remote_object:
            params["objectId"] = self.remote_object["objectId"]
        elif self._context_id is not None:
            params["executionContextId"] = self._context_id
        else:
            raise CDPError("Cannot evaluate a handle without an execution context")
        result = await self._session.send("Runtime.callFunctionOn", params)
        if "exceptionDetails" in result:
            raise CDPError(_exception_text(result["exceptionDetails"]))
        return value_from_remote(result.get("result") or {})

    def __repr__(self) -> str:
        return f"JSHandle({self.remote_object.get('type', '?')})"


@dataclass
class ConsoleMessage:
    """A console.* call made by the page."""

    type: str
    location: ConsoleLocation
    args: list[JSHandle] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PageError:
    """An uncaught exception, unhandled rejection or crash reported by the page."""

    message: str
    stack: str = ""


@dataclass(frozen=True)
class Request:
    url: str
    method: str = "GET"
    failure: str = ""


@dataclass(frozen=True)
class Response:
    url: str
    status: int
    status_text: str = ""

    @property
    def ok(self) -> bool:
        """True for 2xx statuses; status 0 (no HTTP response) also counts as OK."""
        return self.status == 0 or 200 <= self.status <= 299


def _response(data: dict[str, Any]) -> Response:
    return Response(
        url=data.get("url", ""),
        status=int(data.get("status", 0)),
        status_text=data.get("statusText", ""),
    )


def _page_error(details: dict[str, Any]) -> PageError:
    exception = details.get("exception") or {}
    description = exception.get("description") or ""
    if exception.get("subtype") == "error" and description:
        return PageError(message=description.split("\n", 1)[0], stack=description)
    if "value" in exception:
        return PageError(message=str(exception["value"]))
    return PageError(message=description or details.get("text") or "Unknown error")


# ── Page ──


class Page(EventEmitter):
    """A browser tab attached over a flattened CDP session.

    Events emitted (payload in parentheses):
        console (ConsoleMessage), pageerror (PageError),
        unhandledrejection (PageError), requestfailed (Request),
        response (Response), error (PageError, page crash).
    """

    def __init__(self, session: CDPSession, target_id: str, *, timeout: float = 30.0) -> None:
        super().__init__()
        self._session = session
        self.target_id = target_id
        self.timeout = timeout
        self._requests: dict[str, Request] = {}
        self._lifecycle: asyncio.Queue[dict] | None = None

        session.on("Runtime.consoleAPICalled", self._on_console)
        session.on("Runtime.exceptionThrown", self._on_exception)
        session.on("Network.requestWillBeSent", self._on_request)
        session.on("Network.loadingFailed", self._on_loading_failed)
        session.on("Network.loadingFinished", self._forget_request)
        session.on("Network.responseReceived", self._on_response)
        session.on("Inspector.targetCrashed", self._on_crashed)
        session.on("Page.lifecycleEvent", self._on_lifecycle)
        session.on("detached", self._on_detached)

    async def initialize(self) -> None:
        """Enable the CDP domains the page events come from."""
        for method in ("Page.enable", "Runtime.enable", "Network.enable", "Inspector.enable"):
            await self._session.send(method)
        await self._session.send("Page.setLifecycleEventsEnabled", {"enabled": True})

    # ── Navigation ──

    async def goto(
        self, url: str, *, wait_until: str = "networkidle2", timeout: float | None = None
    ) -> None:
        """Navigate and wait for the ``wait_until`` lifecycle milestone.

        Args:
            url: Absolute URL to load.
            wait_until: One of load, domcontentloaded, networkidle0, networkidle2.
            timeout: Seconds to wait; defaults to the page timeout.

        Raises:
            NavigationError: the navigation failed or did not settle in time.
        """
        event_name = LIFECYCLE_EVENTS.get(wait_until)
        if event_name is None:
            raise ValueError(f"Unknown wait_until value: {wait_until}")
        limit = self.timeout if timeout is None else timeout

        queue: asyncio.Queue[dict] = asyncio.Queue()
        self._lifecycle = queue
        try:
            try:
                result = await self._session.send("Page.navigate", {"url": url}, timeout=limit)
            except CDPError as exc:
                raise NavigationError(str(exc)) from exc
            if result.get("errorText"):
                raise NavigationError(f"{result['errorText']} at {url}")

            loader_id = result.get("loaderId")
            if not loader_id:
                # Same-document navigation; nothing to wait for.
                return
            try:
                await asyncio.wait_for(
                    self._wait_lifecycle(queue, result.get("frameId"), loader_id, event_name),
                    limit,
                )
            except asyncio.TimeoutError:
                raise NavigationError(
                    f"Navigation timeout of {int(limit * 1000)} ms exceeded"
                ) from None
        finally:
            self._lifecycle = None

    async def _wait_lifecycle(
        self, queue: asyncio.Queue[dict], frame_id: str | None, loader_id: str, name: str
    ) -> None:
        while True:
            event = await queue.get()
            if event.get("detached"):
                raise NavigationError("Navigating frame was detached")
            if (
                event.get("name") == name
                and event.get("loaderId") == loader_id
                and (frame_id is None or event.get("frameId") == frame_id)
            ):
                return

    # ── Interaction ──

    async def click(self, selector: str) -> None:
        """Click the first element matching ``selector`` at its center.

        Raises:
            ClickError: no element matches, it has no visible box, or the
                selector is invalid.
        """
        result = await self._session.send(
            "Runtime.evaluate",
            {"expression": click_target_js(selector), "returnByValue": True},
        )
        if "exceptionDetails" in result:
            raise ClickError(_exception_text(result["exceptionDetails"]))
        info = json.loads((result.get("result") or {}).get("value") or "{}")
        if info.get("error") == "missing":
            raise ClickError(f"No element found for selector: {selector}")
        if "x" not in info or "y" not in info:
            raise ClickError("Node is either not visible or not an HTMLElement")

        x, y = info["x"], info["y"]
        # Move first so hover handlers fire like a real pointer.
        await self._session.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
        for kind in ("mousePressed", "mouseReleased"):
            await self._session.send(
                "Input.dispatchMouseEvent",
                {"type": kind, "x": x, "y": y, "button": "left", "clickCount": 1},
            )

    async def close(self) -> None:
        await self._session.connection.send("Target.closeTarget", {"targetId": self.target_id})

    # ── CDP event translation ──

    def _on_console(self, params: dict[str, Any]) -> None:
        frames = (params.get("stackTrace") or {}).get("callFrames") or []
        top = frames[0] if frames else {}
        location = ConsoleLocation(
            url=top.get("url", ""),
            line_number=top.get("lineNumber", 0),
            column_number=top.get("columnNumber", 0),
        )
        context_id = params.get("executionContextId")
        args = [JSHandle(self._session, arg, context_id) for arg in params.get("args", [])]
        msg_type = params.get("type", "log")
        if msg_type == "warning":
            msg_type = "warn"
        timestamp = params.get("timestamp")
        self.emit(
            "console",
            ConsoleMessage(
                type=msg_type,
                location=location,
                args=args,
                timestamp=timestamp / 1000 if timestamp else time.time(),
            ),
        )

    def _on_exception(self, params: dict[str, Any]) -> None:
        details = params.get("exceptionDetails") or {}
        error = _page_error(details)
        if details.get("text", "").startswith("Uncaught (in promise)"):
            self.emit("unhandledrejection", error)
        else:
            self.emit("pageerror", error)

    def _on_request(self, params: dict[str, Any]) -> None:
        # Each redirect hop is only reported here, on the follow-up request.
        if params.get("redirectResponse"):
            self.emit("response", _response(params["redirectResponse"]))
        request = params.get("request") or {}
        self._requests[params.get("requestId", "")] = Request(
            url=request.get("url", ""), method=request.get("method", "GET")
        )

    def _forget_request(self, params: dict[str, Any]) -> None:
        self._requests.pop(params.get("requestId", ""), None)

    def _on_loading_failed(self, params: dict[str, Any]) -> None:
        known = self._requests.pop(params.get("requestId", ""), None) or Request(url="")
        self.emit(
            "requestfailed",
            Request(url=known.url, method=known.method, failure=params.get("errorText", "")),
        )

    def _on_response(self, params: dict[str, Any]) -> None:
        self.emit("response", _response(params.get("response") or {}))

    def _on_crashed(self, _params: Any) -> None:
        self.emit("error", PageError(message="Page crashed!"))
        self._on_detached(None)

    def _on_lifecycle(self, params: dict[str, Any]) -> None:
        if self._lifecycle is not None:
            self._lifecycle.put_nowait(params)

    def _on_detached(self, _payload: Any) -> None:
        if self._lifecycle is not None:
            self._lifecycle.put_nowait({"detached": True})

    def __repr__(self) -> str:
        return f"Page(target_id={self.target_id!r})"


# ── Browser ──


class Browser(EventEmitter):
    """A Chrome/Chromium reachable over CDP.

    Use Browser.launch() for a private headless instance (closed and
    cleaned up by close()), or Browser.connect() to attach to a browser
    you started yourself with --remote-debugging-port (close() then only
    closes the tabs this object opened).

    Emits ``disconnected`` when the CDP socket goes away, including
    after close() of a launched browser. Detaching from an attached
    browser leaves it running, so that close() emits nothing.
    """

    def __init__(
        self,
        connection: CDPConnection,
        *,
        process: asyncio.subprocess.Process | None = None,
        user_data_dir: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__()
        self._connection = connection
        self._process = process
        self._user_data_dir = user_data_dir
        self.timeout = timeout
        self._pages: list[Page] = []
        self._detaching = False
        connection.on("disconnected", self._on_disconnected)

    @property
    def connected(self) -> bool:
        return not self._connection.closed

    # ── Launch / attach ──

    @classmethod
    async def launch(
        cls,
        *,
        chrome_path: str | None = None,
        headless: bool = True,
        extra_args: Iterable[str] = (),
        timeout: float = 30.0,
        protocol_timeout: float = 30.0,
    ) -> Browser:
        """Launch Chrome/Chromium with a throwaway profile.

        The browser picks a free debugging port and reports it through the
        DevToolsActivePort file in its profile directory.

        Args:
            chrome_path: Path to Chrome/Chromium binary. Auto-detected if
                         not provided.
            headless: Run without a visible window (default: True).
            extra_args: Additional command-line switches.
            timeout: Seconds to wait for DevTools to come up.
            protocol_timeout: Default timeout for each CDP command.

        Raises:
            FileNotFoundError: no browser binary was found.
            TimeoutError: DevTools did not come up in time.
            CDPError: the browser exited during startup.
        """
        chrome = chrome_path or _find_chrome()
        if not chrome:
            raise FileNotFoundError(
                "Chrome/Chromium not found. Install it or set PAGEWATCH_CHROME=...\n\n"
                "Install options:\n"
                "  macOS:   brew install --cask google-chrome\n"
                "  Ubuntu:  sudo apt install chromium-browser\n"
                "  Fedora:  sudo dnf install chromium"
            )

        data_dir = tempfile.mkdtemp(prefix="pagewatch-profile-")
        cmd = [
            chrome,
            "--remote-debugging-port=0",
            f"--user-data-dir={data_dir}",
            *DEFAULT_CHROME_ARGS,
        ]
        if headless:
            cmd.append("--headless=new")
        cmd.extend(extra_args)
        cmd.append("about:blank")
        logger.debug("Launching browser: {}", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        except OSError:
            shutil.rmtree(data_dir, ignore_errors=True)
            raise

        try:
            ws_url = await _wait_for_devtools(proc, Path(data_dir), timeout)
            connection = await CDPConnection.connect(ws_url, timeout=protocol_timeout)
        except BaseException:
            await _terminate(proc)
            shutil.rmtree(data_dir, ignore_errors=True)
            raise
        return cls(connection, process=proc, user_data_dir=data_dir, timeout=protocol_timeout)

    @classmethod
    async def connect(cls, cdp_url: str, *, timeout: float = 30.0) -> Browser:
        """Attach to a running browser's CDP HTTP endpoint (e.g. http://127.0.0.1:9222)."""
        cdp_url = cdp_url.rstrip("/")
        try:
            data = await asyncio.to_thread(_fetch_json, f"{cdp_url}/json/version")
        except (URLError, OSError, ValueError):
            raise BrowserNotRunning(cdp_url) from None
        ws_url = data.get("webSocketDebuggerUrl", "")
        if not ws_url:
            raise CDPError("Browser did not expose webSocketDebuggerUrl")
        # The browser reports its own bind address; reuse the host we reached it on.
        parts = urlsplit(ws_url)
        ws_url = urlunsplit(parts._replace(netloc=urlsplit(cdp_url).netloc))
        connection = await CDPConnection.connect(ws_url, timeout=timeout)
        return cls(connection, timeout=timeout)

    # ── Pages ──

    async def new_page(self) -> Page:
        """Open a blank tab and attach to it."""
        created = await self._connection.send("Target.createTarget", {"url": "about:blank"})
        target_id = created["targetId"]
        attached = await self._connection.send(
            "Target.attachToTarget", {"targetId": target_id, "flatten": True}
        )
        session = self._connection.create_session(attached["sessionId"], target_id)
        page = Page(session, target_id, timeout=self.timeout)
        await page.initialize()
        self._pages.append(page)
        return page

    async def close(self) -> None:
        """Release the browser: quit a launched one, or close our tabs on an attached one."""
        if self._process is None:
            for page in self._pages:
                with suppress(CDPError):
                    await page.close()
            self._detaching = True
            await self._connection.close()
            return
        try:
            with suppress(CDPError):
                await self._connection.send("Browser.close", timeout=5.0)
            await self._connection.close()
        finally:
            await _terminate(self._process)
            if self._user_data_dir:
                shutil.rmtree(self._user_data_dir, ignore_errors=True)

    def _on_disconnected(self, _payload: Any) -> None:
        if not self._detaching:
            self.emit("disconnected")

    def __repr__(self) -> str:
        mode = "launched" if self._process is not None else "attached"
        return f"Browser({mode}, connected={self.connected})"


# ── Helpers ──


def _fetch_json(url: str) -> Any:
    with urlopen(url, timeout=5) as resp:
        return json.loads(resp.read())


async def _wait_for_devtools(
    proc: asyncio.subprocess.Process, data_dir: Path, timeout: float
) -> str:
    """Poll DevToolsActivePort until the browser reports its websocket URL."""
    port_file = data_dir / "DevToolsActivePort"
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if proc.returncode is not None:
            raise CDPError(f"Browser exited with code {proc.returncode} during startup")
        try:
            lines = port_file.read_text().splitlines()
        except OSError:
            lines = []
        if len(lines) >= 2 and lines[0].strip().isdigit():
            return f"ws://127.0.0.1:{lines[0].strip()}{lines[1].strip()}"
        await asyncio.sleep(0.1)
    raise TimeoutError(f"Browser started but DevTools was not ready after {timeout:g}s.")


async def _terminate(proc: asyncio.subprocess.Process, timeout: float = 5.0) -> None:
    if proc.returncode is not None:
        return
    with suppress(ProcessLookupError):
        proc.terminate()
    try:
        await asyncio.wait_for(proc.wait(), timeout)
    except asyncio.TimeoutError:
        with suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


def _find_chrome() -> str | None:
    """Auto-detect Chrome/Chromium binary path."""
    candidates: list[str] = []

    if sys.platform == "darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Chromium.app/Contents/MacOS/Chromium",
            "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
            "/Applications/Brave Browser.app/Contents/MacOS/Brave Browser",
            "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        ]
    elif sys.platform == "linux":
        candidates = [
            "google-chrome",
            "google-chrome-stable",
            "chromium",
            "chromium-browser",
            "brave-browser",
            "microsoft-edge",
        ]
    elif sys.platform == "win32":
        candidates = [
            os.path.expandvars(r"%ProgramFiles%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%ProgramFiles(x86)%\Google\Chrome\Application\chrome.exe"),
            os.path.expandvars(r"%LocalAppData%\Google\Chrome\Application\chrome.exe"),
        ]

    for c in candidates:
        if os.path.isfile(c):
            return c
        # Bare names are looked up on PATH
        if os.path.sep not in c:
            found = shutil.which(c)
            if found:
                return found

    return None
