"""Line-delimited JSON transport over the host's stdin/stdout"""
import asyncio
import logging
import sys
from typing import AsyncIterator, BinaryIO, Optional, Union

from core.events import Event

logger = logging.getLogger(__name__)

# Control commands are small, but allow the same headroom as agent output
READ_LIMIT = 10 * 1024 * 1024


class EventWriter:
    """
    Serializes events to the output stream one complete line at a time.

    Accepts either an asyncio StreamWriter or a plain binary file object.
    Every line is flushed before the next write may start.
    """

    def __init__(self, stream: Union[asyncio.StreamWriter, BinaryIO]):
        self.stream = stream
        self._lock = asyncio.Lock()

    async def write(self, event: Event):
        line = event.to_json_line().encode()
        async with self._lock:
            self.stream.write(line)
            if isinstance(self.stream, asyncio.StreamWriter):
                await self.stream.drain()
            else:
                self.stream.flush()


async def read_lines(stream: asyncio.StreamReader) -> AsyncIterator[Optional[bytes]]:
    """
    Yield raw lines (terminator included) until EOF.

    A line longer than the stream limit is discarded through its newline and
    yielded as None, so the caller can report it while the pipe keeps draining.
    A final line without a terminator is yielded as is.
    """
    oversized = False
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if e.partial and not oversized:
                yield e.partial
            elif oversized:
                yield None
            return
        except asyncio.LimitOverrunError as e:
            # Nothing up to e.consumed holds a newline; drop it and keep going
            await stream.readexactly(e.consumed)
            oversized = True
            continue

        if oversized:
            oversized = False
            yield None
        else:
            yield raw


async def open_stdin_lines(limit: int = READ_LIMIT) -> AsyncIterator[Optional[str]]:
    """
    Yield decoded input lines without their line terminator.

    Pipes and terminals are read through the event loop; anything else
    (e.g. a redirected regular file) is read on a worker thread. A line
    over the read limit is yielded as None.
    """
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)

    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    except ValueError:
        logger.info("stdin is not a pipe, reading on a worker thread")
        while True:
            raw = await asyncio.to_thread(sys.stdin.buffer.readline)
            if not raw:
                return
            yield raw.decode(errors="replace").rstrip("\r\n")

    async for raw in read_lines(reader):
        if raw is None:
            logger.warning(f"Input line exceeds {limit} bytes")
            yield None
            continue
        yield raw.decode(errors="replace").rstrip("\r\n")


async def open_stdout_writer() -> EventWriter:
    """EventWriter on stdout, non-blocking when stdout is a pipe"""
    loop = asyncio.get_running_loop()
    stream: Optional[Union[asyncio.StreamWriter, BinaryIO]] = None

    try:
        transport, protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        stream = asyncio.StreamWriter(transport, protocol, None, loop)
    except ValueError:
        logger.info("stdout is not a pipe, using blocking writes")
        stream = sys.stdout.buffer

    return EventWriter(stream)
