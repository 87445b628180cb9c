"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from tests.fixtures.fake_runner import FakeRunner


@pytest.fixture(autouse=True)
def isolate_toggle_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's toggle overrides out of test runs."""
    monkeypatch.delenv("VERIFYALL_BACKTRACE", raising=False)
    monkeypatch.delenv("VERIFYALL_NO_BYTECODE", raising=False)
    monkeypatch.delenv("VERIFYALL_ROOT", raising=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Runner double where every command succeeds and no optional tool is installed."""
    return FakeRunner()


@pytest.fixture
def console_buffer() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(console_buffer: io.StringIO) -> Console:
    """Console writing plain text into console_buffer."""
    return Console(file=console_buffer, width=200, color_system=None, force_terminal=False)
