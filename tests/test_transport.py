"""Tests for the stdio event writer and telemetry helpers."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from core.events import DoneEvent, ErrorEvent, TextChunkEvent
from core.telemetry import configure_logging, telemetry
from transport.stdio import EventWriter, read_lines


class _CountingBuffer:
    def __init__(self):
        self.chunks = []
        self.flushes = 0

    def write(self, data):
        self.chunks.append(data)

    def flush(self):
        self.flushes += 1


class TestEventWriter:

    @pytest.mark.asyncio
    async def test_one_flush_per_line(self):
        buffer = _CountingBuffer()
        writer = EventWriter(buffer)

        await writer.write(TextChunkEvent(text="a"))
        await writer.write(DoneEvent())

        assert buffer.chunks == [b'{"event":"text_chunk","text":"a"}\n', b'{"event":"done"}\n']
        assert buffer.flushes == 2

    @pytest.mark.asyncio
    async def test_concurrent_writers_do_not_interleave(self, writer, output):
        await asyncio.gather(*(writer.write(ErrorEvent(message="x" * 1000 + str(i))) for i in range(50)))

        lines = output.getvalue().decode().splitlines()
        assert len(lines) == 50
        assert all(json.loads(line)["event"] == "error" for line in lines)

    @pytest.mark.asyncio
    async def test_unicode_is_utf8(self, writer, output):
        await writer.write(TextChunkEvent(text="héllo ✓"))

        assert json.loads(output.getvalue().decode("utf-8"))["text"] == "héllo ✓"


class TestReadLines:

    @staticmethod
    async def collect(reader):
        return [raw async for raw in read_lines(reader)]

    @pytest.mark.asyncio
    async def test_oversized_line_is_reported_once(self):
        reader = asyncio.StreamReader(limit=16)
        task = asyncio.create_task(self.collect(reader))

        reader.feed_data(b"short\n" + b"x" * 40)
        await asyncio.sleep(0.01)
        reader.feed_data(b"x" * 40 + b"tail\nnext\nlast")
        reader.feed_eof()

        assert await asyncio.wait_for(task, timeout=1) == [b"short\n", None, b"next\n", b"last"]

    @pytest.mark.asyncio
    async def test_oversized_line_cut_by_eof(self):
        reader = asyncio.StreamReader(limit=16)
        reader.feed_data(b"ok\n" + b"x" * 40)
        reader.feed_eof()

        assert await self.collect(reader) == [b"ok\n", None]


class TestTelemetry:

    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_logs_go_to_stderr_as_json(self, capsys):
        configure_logging("INFO", "json")

        logging.getLogger("engines.test").info("hello from stdlib")
        telemetry.log_metric("agent.cost_usd", 0.5, duration_ms=10)

        captured = capsys.readouterr()
        assert captured.out == ""
        records = [json.loads(line) for line in captured.err.splitlines()]
        assert records[0]["event"] == "hello from stdlib"
        assert records[0]["level"] == "info"
        assert records[1]["metric_name"] == "agent.cost_usd"
        assert records[1]["value"] == 0.5

    @pytest.mark.asyncio
    async def test_trace_task_reraises(self, capsys):
        configure_logging("INFO", "json")

        with pytest.raises(RuntimeError):
            async with telemetry.trace_task("agent_run", pid=1):
                raise RuntimeError("boom")

        records = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
        assert [r["event"] for r in records] == ["agent_run.start", "agent_run.failed"]
        assert records[1]["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_trace_task_reports_cancellation(self, capsys):
        configure_logging("INFO", "json")

        async def traced():
            async with telemetry.bind(pid=7).trace_task("agent_run"):
                await asyncio.sleep(10)

        task = asyncio.create_task(traced())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        records = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
        assert [r["event"] for r in records] == ["agent_run.start", "agent_run.cancelled"]
        assert all(r["pid"] == 7 for r in records)

    def test_log_event_level(self, capsys):
        configure_logging("INFO", "json")

        telemetry.log_event("agent.spawned", pid=11, resume=None)
        telemetry.log_event("run.retired", level="debug", pid=11)

        [record] = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
        assert record["event"] == "agent.spawned"
        assert record["pid"] == 11
