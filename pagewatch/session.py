"""One pagewatch run: open a page, mirror its diagnostics, run commands, clean up."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from pagewatch.commands import CommandExecutor, Outcome
from pagewatch.config import SessionConfig
from pagewatch.core import Browser, CDPError
from pagewatch.events import EventBridge
from pagewatch.output import OutputSink

BrowserFactory = Callable[[SessionConfig], Awaitable[Browser]]


async def open_browser(config: SessionConfig) -> Browser:
    """Attach to ``config.cdp_url`` if set, otherwise launch a private browser."""
    if config.cdp_url:
        return await Browser.connect(config.cdp_url, timeout=config.protocol_timeout)
    return await Browser.launch(
        chrome_path=config.chrome_path,
        headless=config.headless,
        extra_args=config.extra_args,
        timeout=config.launch_timeout,
        protocol_timeout=config.protocol_timeout,
    )


async def run_session(
    url: str,
    commands: str | None = None,
    *,
    config: SessionConfig | None = None,
    sink: OutputSink | None = None,
    browser_factory: BrowserFactory | None = None,
) -> list[Outcome]:
    """Navigate to ``url``, run ``commands``, and print every diagnostic on the way.

    The event bridge is attached before navigation so nothing the page logs
    is missed. A failed navigation skips the commands but still waits out
    the grace period and closes the browser. Returns the command outcomes.

    Raises:
        FileNotFoundError, TimeoutError, BrowserNotRunning, CDPError: the
            browser could not be started or reached.
    """
    config = config or SessionConfig()
    sink = sink or OutputSink()
    factory = browser_factory or open_browser

    sink.info(f"Navigating to {url}...")
    browser = await factory(config)
    bridge = EventBridge(sink)
    bridge.attach_browser(browser)
    bridge.start()

    outcomes: list[Outcome] = []
    try:
        try:
            page = await browser.new_page()
            bridge.attach_page(page)
            await page.goto(url, wait_until=config.wait_until, timeout=config.navigation_timeout)
            if commands:
                outcomes = await CommandExecutor(page, sink).run(commands)
        except CDPError as exc:
            sink.error(f"Failed to navigate to {url}: {exc}")
        # Let in-flight diagnostics (console argument lookups) settle.
        await asyncio.sleep(config.grace_period)
    finally:
        try:
            await browser.close()
        finally:
            await bridge.aclose()
            logger.debug("Session for {} finished", url)
    return outcomes


def run(
    url: str,
    commands: str | None = None,
    *,
    config: SessionConfig | None = None,
    sink: OutputSink | None = None,
) -> list[Outcome]:
    """Blocking wrapper around run_session()."""
    return asyncio.run(run_session(url, commands, config=config, sink=sink))
