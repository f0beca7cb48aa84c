"""Root pytest configuration for all tests."""

from __future__ import annotations

import asyncio
import io
import json
import sys
from pathlib import Path

import pytest

from core.config import BridgeConfig
from state.session import SessionManager
from transport.stdio import EventWriter

FAKE_CLAUDE = Path(__file__).parent / "fake_claude.py"


# =============================================================================
# Helpers
# =============================================================================


def make_reader(*lines, raw: bytes = b"") -> asyncio.StreamReader:
    """StreamReader pre-fed with lines (str or dict) and already at EOF."""
    reader = asyncio.StreamReader()
    for line in lines:
        if isinstance(line, dict):
            line = json.dumps(line)
        reader.feed_data(line.encode() + b"\n")
    if raw:
        reader.feed_data(raw)
    reader.feed_eof()
    return reader


def output_events(buffer: io.BytesIO) -> list[dict]:
    """Parse every line written to an EventWriter buffer."""
    data = buffer.getvalue().decode()
    assert data == "" or data.endswith("\n")
    return [json.loads(line) for line in data.splitlines()]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_claude(tmp_path) -> Path:
    """Executable wrapper that runs fake_claude.py with this interpreter."""
    wrapper = tmp_path / "claude"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_CLAUDE}" "$@"\n')
    wrapper.chmod(0o755)
    return wrapper


@pytest.fixture
def invocation_log(tmp_path) -> Path:
    return tmp_path / "invocations.jsonl"


@pytest.fixture
def make_config(fake_claude, invocation_log):
    """Build a config pointing at the fake CLI for a given scenario."""
    def _make(scenario: str = "chat", **overrides) -> BridgeConfig:
        env = {"FAKE_CLAUDE_SCENARIO": scenario, "FAKE_CLAUDE_LOG": str(invocation_log)}
        return BridgeConfig(executable=str(fake_claude), env=env, **overrides)
    return _make


@pytest.fixture
def session() -> SessionManager:
    return SessionManager()


@pytest.fixture
def output() -> io.BytesIO:
    return io.BytesIO()


@pytest.fixture
def writer(output) -> EventWriter:
    return EventWriter(output)


def read_invocations(path: Path) -> list[dict]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines()]
