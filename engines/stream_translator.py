"""Translate claude CLI stream-json output into bridge events"""
import asyncio
import json
import logging

from pydantic import ValidationError

from core.bus import EventChannel
from core.events import (
    CostEvent, DoneEvent, ErrorEvent, InitEvent, TextChunkEvent, TextEvent,
    ToolResultEvent, ToolUseEvent,
)
from core.telemetry import telemetry
from state.session import SessionManager
from transport.stdio import read_lines

from .stream_schema import (
    AssistantMessage, ResultMessage, StreamEventMessage, SystemMessage,
    ToolResultMessage, decode_message,
)

logger = logging.getLogger(__name__)

STDERR_PREFIX = "[stderr] "


class StreamTranslator:
    """
    Reads one agent process run.

    stdout and stderr are consumed concurrently and both publish into the
    same channel. Text deltas are accumulated across lines of the run and
    flushed as a single TextEvent at the end of each content block.
    """

    def __init__(self, session: SessionManager, channel: EventChannel):
        self.session = session
        self.channel = channel
        self.accumulated_text = ""
        self.dropped_lines = 0

    async def run(self, stdout: asyncio.StreamReader, stderr: asyncio.StreamReader):
        """Consume both streams until they end, then finish the channel"""
        try:
            await asyncio.gather(self.read_stdout(stdout), self.read_stderr(stderr))
        finally:
            if self.dropped_lines:
                telemetry.log_metric("agent.dropped_lines", self.dropped_lines)
            self.channel.finish()

    async def read_stderr(self, stream: asyncio.StreamReader):
        """Forward every non-empty diagnostic line as an error event"""
        try:
            async for raw in read_lines(stream):
                if raw is None:
                    logger.warning("Skipping oversized agent stderr line")
                    continue
                line = raw.decode(errors="replace").rstrip("\r\n")
                if line:
                    await self.channel.publish(ErrorEvent(message=f"{STDERR_PREFIX}{line}"))
        except OSError as e:
            logger.warning(f"Error reading agent stderr: {e}")

    async def read_stdout(self, stream: asyncio.StreamReader):
        """Dispatch each protocol line; always leaves the session inactive"""
        try:
            async for raw in read_lines(stream):
                if raw is None:
                    self._drop(b"", "line exceeds the read limit")
                    continue
                await self.handle_line(raw)
        except OSError as e:
            logger.error(f"Error reading agent stdout: {e}")
        finally:
            await self.session.set_inactive()

    async def handle_line(self, raw: bytes):
        """Decode one stdout line and publish the resulting events"""
        try:
            line = raw.decode().rstrip("\r\n")
        except UnicodeDecodeError as e:
            self._drop(raw, e)
            return
        if not line:
            return

        try:
            obj = json.loads(line)
        except (ValueError, RecursionError) as e:
            # ValueError covers JSONDecodeError and over-long integer literals
            self._drop(raw, e)
            return

        try:
            message = decode_message(obj)
        except (ValidationError, RecursionError) as e:
            self._drop(raw, e)
            return

        if isinstance(message, SystemMessage):
            await self._on_system(message)
        elif isinstance(message, StreamEventMessage):
            await self._on_stream_event(message)
        elif isinstance(message, AssistantMessage):
            for block in message.tool_uses:
                await self.channel.publish(ToolUseEvent(tool=block.name, id=block.id, input=block.input))
        elif isinstance(message, ToolResultMessage):
            await self.channel.publish(ToolResultEvent(
                tool=message.tool_name,
                id=message.tool_use_id,
                success=not message.is_error,
                content=message.content_text,
            ))
        elif isinstance(message, ResultMessage):
            await self._on_result(message)

    def _drop(self, raw: bytes, reason):
        self.dropped_lines += 1
        logger.debug(f"Skipping undecodable agent line ({reason}): {raw[:100]!r}")

    async def _on_system(self, message: SystemMessage):
        if not message.is_init:
            return
        await self.session.set_active(message.session_id, message.model)
        await self.channel.publish(InitEvent(
            session_id=message.session_id,
            model=message.model,
            tools=message.tools,
        ))

    async def _on_stream_event(self, message: StreamEventMessage):
        text = message.text_delta
        if text is not None:
            self.accumulated_text += text
            await self.channel.publish(TextChunkEvent(text=text))
        elif message.is_block_stop and self.accumulated_text:
            block, self.accumulated_text = self.accumulated_text, ""
            await self.channel.publish(TextEvent(text=block))

    async def _on_result(self, message: ResultMessage):
        await self.channel.publish(CostEvent(
            total_usd=message.total_cost_usd,
            duration_ms=message.duration_ms,
            input_tokens=message.input_tokens,
            output_tokens=message.usage.output_tokens,
        ))
        if message.is_error:
            await self.channel.publish(ErrorEvent(message=message.result))
        await self.session.set_inactive()
        await self.channel.publish(DoneEvent())
