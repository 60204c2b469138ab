"""Rendering diagnostic events as single tagged lines.

Values are printed the way Node's util.inspect prints them with colors off
and no depth limit: ``{ a: 1, list: [ 1, 'two' ] }``. Top-level strings are
printed raw, as console.log does.
"""

from __future__ import annotations

import math
import re
import sys
from decimal import Decimal
from typing import Any, TextIO

from pagewatch.core import BigInt, Undefined
from pagewatch.events import Category, DiagnosticEvent, Unresolvable

SEVERITY: dict[Category, str] = {
    Category.CONSOLE_LOG: "log",
    Category.CONSOLE_INFO: "info",
    Category.CONSOLE_WARN: "warn",
    Category.CONSOLE_ERROR: "error",
    Category.CONSOLE_DEBUG: "debug",
    Category.PAGE_ERROR: Category.PAGE_ERROR.value,
    Category.UNHANDLED_REJECTION: Category.UNHANDLED_REJECTION.value,
    Category.REQUEST_FAILED: Category.REQUEST_FAILED.value,
    Category.RESPONSE_ERROR: Category.RESPONSE_ERROR.value,
    Category.BROWSER_DISCONNECTED: Category.BROWSER_DISCONNECTED.value,
    Category.PAGE_CRASH: Category.PAGE_CRASH.value,
}

# Severities printed on stdout; everything else goes to stderr.
_STDOUT_SEVERITIES = {"log", "info", "debug"}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def severity(category: Category) -> str:
    return SEVERITY[category]


def _quote(text: str) -> str:
    # util.inspect prefers ', then ", then ` so the quote never needs escaping.
    quote = "'"
    if "'" in text:
        if '"' not in text:
            quote = '"'
        elif "`" not in text and "${" not in text:
            quote = "`"
    escaped = text.replace("\\", "\\\\")
    if quote == "'":
        escaped = escaped.replace("'", "\\'")
    escaped = escaped.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f"{quote}{escaped}{quote}"


def _number(value: float) -> str:
    """Format a double the way JavaScript's Number#toString does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign = "-" if value < 0 else ""
    # repr() gives the shortest round-tripping digits, as JavaScript does.
    shortest = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in shortest.digits)
    k = len(digits)
    n = shortest.exponent + k
    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if n - 1 >= 0 else '-'}{abs(n - 1)}"
    return sign + text


def render_value(value: Any, *, top: bool = True) -> str:
    """Render one resolved value as a single line."""
    if isinstance(value, Unresolvable):
        return repr(value)
    if isinstance(value, str):
        return value if top else _quote(value)
    if value is None:
        return "null"
    if isinstance(value, Undefined):
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, BigInt):
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        return "[ " + ", ".join(render_value(v, top=False) for v in value) + " ]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = []
        for key, item in value.items():
            key = str(key)
            label = key if _IDENTIFIER.match(key) else _quote(key)
            items.append(f"{label}: {render_value(item, top=False)}")
        return "{ " + ", ".join(items) + " }"
    return str(value)


def format_location(event: DiagnosticEvent) -> str:
    loc = event.location
    if loc is None:
        return ""
    suffix = f":{loc.line}:{loc.column}" if loc.line else ""
    return f"{loc.url}{suffix}"


def format_event(event: DiagnosticEvent) -> str:
    """``[severity] url:line:col part part ...`` on one line."""
    pieces = [f"[{severity(event.category)}]"]
    location = format_location(event)
    if location:
        pieces.append(location)
    pieces.extend(render_value(part) for part in event.parts)
    return " ".join(pieces)


class OutputSink:
    """Explicit handle for everything the tool prints.

    Defaults to the process's stdout/stderr, looked up at write time so
    test capture (and redirection) keeps working. Pass StringIO objects to
    capture output.
    """

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = out
        self._err = err

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def info(self, line: str) -> None:
        print(line, file=self.out, flush=True)

    def error(self, line: str) -> None:
        print(line, file=self.err, flush=True)

    def emit(self, event: DiagnosticEvent) -> None:
        line = format_event(event)
        if event.category.is_console and severity(event.category) in _STDOUT_SEVERITIES:
            self.info(line)
        else:
            self.error(line)
