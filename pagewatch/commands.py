"""The command mini-language: ``wait <time>`` and ``click <selector>``.

    executor = CommandExecutor(page, sink)
    await executor.run("click .cookie-accept wait 2s click #login")

Commands run one at a time, in order. A bad or failing command is reported
and skipped; it never stops the ones after it.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from pagewatch.output import OutputSink

TIME_PATTERN = re.compile(r"^(\d+)(ms|s)$", re.ASCII)


def tokenize(commands: str) -> list[str]:
    """Split a command string on runs of whitespace. No quoting or escaping."""
    return commands.split()


class OutcomeKind(str, Enum):
    OK = "ok"
    SYNTAX_ERROR = "syntax-error"
    RUNTIME_ERROR = "runtime-error"


@dataclass(frozen=True)
class Outcome:
    """Result of one command: what happened and how far the cursor moves."""

    kind: OutcomeKind
    advance: int
    reason: str = ""
    cause: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    @classmethod
    def success(cls, advance: int) -> Outcome:
        return cls(OutcomeKind.OK, advance)

    @classmethod
    def syntax_error(cls, reason: str, advance: int) -> Outcome:
        return cls(OutcomeKind.SYNTAX_ERROR, advance, reason)

    @classmethod
    def runtime_error(cls, reason: str, cause: BaseException, advance: int) -> Outcome:
        return cls(OutcomeKind.RUNTIME_ERROR, advance, reason, cause)


def parse_delay(arg: str) -> int | None:
    """``5s`` → 5000, ``1000ms`` → 1000, anything else → None."""
    match = TIME_PATTERN.match(arg)
    if not match:
        return None
    value = int(match.group(1))
    return value * 1000 if match.group(2) == "s" else value


class CommandExecutor:
    """Runs a command string against a page.

    Args:
        page: Anything with an async ``click(selector)``.
        sink: Where ``[wait]``/``[click]`` announcements and errors go.
        sleep: Coroutine used for ``wait`` (seconds); swappable in tests.
    """

    def __init__(
        self,
        page: Any,
        sink: OutputSink,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.page = page
        self.sink = sink
        self._sleep = sleep
        self._handlers: dict[str, Callable[[str | None], Awaitable[Outcome]]] = {
            "wait": self._wait,
            "click": self._click,
        }

    async def run(self, commands: str) -> list[Outcome]:
        tokens = tokenize(commands)
        outcomes: list[Outcome] = []
        i = 0
        while i < len(tokens):
            outcome = await self.step(tokens, i)
            self._report(outcome)
            outcomes.append(outcome)
            i += outcome.advance
        return outcomes

    async def step(self, tokens: list[str], i: int) -> Outcome:
        """Decode and execute the command at ``tokens[i]``."""
        verb = tokens[i]
        arg = tokens[i + 1] if i + 1 < len(tokens) else None
        handler = self._handlers.get(verb)
        if handler is None:
            return Outcome.syntax_error(f"Unknown command: {verb}", 1)
        return await handler(arg)

    def _report(self, outcome: Outcome) -> None:
        if outcome.ok:
            return
        logger.debug("Command {}: {}", outcome.kind.value, outcome.reason)
        self.sink.error(f"[error] {outcome.reason}")

    # ── Verbs ──

    async def _wait(self, arg: str | None) -> Outcome:
        if arg is None:
            return Outcome.syntax_error(
                "wait command needs a time argument (e.g., 5s, 1000ms).", 1
            )
        delay = parse_delay(arg)
        if delay is None:
            return Outcome.syntax_error(
                f"Invalid time format for wait: {arg}. "
                "Use 's' for seconds or 'ms' for milliseconds.",
                2,
            )
        self.sink.info(f"[wait] {delay}ms")
        await self._sleep(delay / 1000)
        return Outcome.success(2)

    async def _click(self, selector: str | None) -> Outcome:
        if selector is None:
            return Outcome.syntax_error("click command needs a selector argument.", 1)
        self.sink.info(f"[click] {selector}")
        try:
            await self.page.click(selector)
        except Exception as exc:
            return Outcome.runtime_error(f'Failed to click "{selector}": {exc}', exc, 2)
        return Outcome.success(2)
