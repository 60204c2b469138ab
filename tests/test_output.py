from __future__ import annotations

import pytest

from pagewatch.core import UNDEFINED, BigInt
from pagewatch.events import UNRESOLVABLE, Category, DiagnosticEvent, SourceLocation
from pagewatch.output import SEVERITY, format_event, render_value, severity


def test_every_category_has_a_severity() -> None:
    assert set(SEVERITY) == set(Category)


@pytest.mark.parametrize(
    ("category", "tag"),
    [
        (Category.CONSOLE_ERROR, "error"),
        (Category.CONSOLE_WARN, "warn"),
        (Category.CONSOLE_INFO, "info"),
        (Category.CONSOLE_DEBUG, "debug"),
        (Category.CONSOLE_LOG, "log"),
        (Category.PAGE_ERROR, "page-error"),
        (Category.RESPONSE_ERROR, "response-error"),
        (Category.BROWSER_DISCONNECTED, "browser-disconnected"),
    ],
)
def test_severity_tags(category: Category, tag: str) -> None:
    assert severity(category) == tag


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("plain text", "plain text"),
        (None, "null"),
        (UNDEFINED, "undefined"),
        (True, "true"),
        (42, "42"),
        (1.5, "1.5"),
        (3.0, "3"),
        (float("nan"), "NaN"),
        (float("-inf"), "-Infinity"),
        (-0.0, "-0"),
        (BigInt(12), "12n"),
        ([], "[]"),
        ({}, "{}"),
        ([1, "two", None], "[ 1, 'two', null ]"),
        ({"a": 1, "b-c": "it's"}, "{ a: 1, 'b-c': \"it's\" }"),
        ({"deep": {"er": {"est": [{"x": [1]}]}}}, "{ deep: { er: { est: [ { x: [ 1 ] } ] } } }"),
        (UNRESOLVABLE, "[unserializable]"),
    ],
)
def test_render_value(value, expected: str) -> None:
    assert render_value(value) == expected


def test_render_keeps_key_order() -> None:
    assert render_value({"z": 1, "a": 2, "m": 3}) == "{ z: 1, a: 2, m: 3 }"


def test_nested_strings_are_escaped() -> None:
    assert render_value(["line\nbreak"]) == "[ 'line\\nbreak' ]"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("plain", "'plain'"),
        ("it's", "\"it's\""),
        ("it's \"quoted\"", "`it's \"quoted\"`"),
        ("it's \"quoted\" `twice`", "'it\\'s \"quoted\" `twice`'"),
    ],
)
def test_nested_string_quote_choice(text: str, expected: str) -> None:
    assert render_value([text]) == f"[ {expected} ]"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1e-07, "1e-7"),
        (1e-06, "0.000001"),
        (0.00001, "0.00001"),
        (1.5e-10, "1.5e-10"),
        (123456.789, "123456.789"),
        (1e21, "1e+21"),
        (2.5e25, "2.5e+25"),
        (-0.1, "-0.1"),
        (1e20, "100000000000000000000"),
    ],
)
def test_numbers_match_javascript(value: float, expected: str) -> None:
    assert render_value(value) == expected


def test_location_suffix_omitted_for_line_zero() -> None:
    event = DiagnosticEvent(
        Category.CONSOLE_LOG, ("hi",), SourceLocation("https://x.test/", 0, 5)
    )
    assert format_event(event) == "[log] https://x.test/ hi"


def test_location_suffix_with_line_and_column() -> None:
    event = DiagnosticEvent(
        Category.CONSOLE_ERROR, ("Error: boom",), SourceLocation("https://example.com", 7, 3)
    )
    assert format_event(event) == "[error] https://example.com:7:3 Error: boom"


def test_event_without_location_or_parts() -> None:
    assert format_event(DiagnosticEvent(Category.CONSOLE_LOG)) == "[log]"
    assert format_event(DiagnosticEvent(Category.CONSOLE_LOG, (), SourceLocation())) == "[log]"


def test_sink_routes_by_severity(captured) -> None:
    captured.sink.emit(DiagnosticEvent(Category.CONSOLE_INFO, ("hello",)))
    captured.sink.emit(DiagnosticEvent(Category.CONSOLE_DEBUG, ("dbg",)))
    captured.sink.emit(DiagnosticEvent(Category.CONSOLE_WARN, ("careful",)))
    captured.sink.emit(DiagnosticEvent(Category.REQUEST_FAILED, ("https://x.test/ net::ERR_FAILED",)))

    assert captured.out.getvalue().splitlines() == ["[info] hello", "[debug] dbg"]
    assert captured.err.getvalue().splitlines() == [
        "[warn] careful",
        "[request-failed] https://x.test/ net::ERR_FAILED",
    ]
