from __future__ import annotations

import io
from types import SimpleNamespace

import pytest

from pagewatch.output import OutputSink


@pytest.fixture
def captured() -> SimpleNamespace:
    out, err = io.StringIO(), io.StringIO()
    return SimpleNamespace(sink=OutputSink(out=out, err=err), out=out, err=err)
