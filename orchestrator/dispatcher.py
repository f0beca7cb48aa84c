"""Request dispatcher - drives agent runs from control commands"""
import asyncio
import logging
from typing import AsyncIterable, Optional

from core.bus import EventChannel
from core.commands import (
    AbortCommand, ChatCommand, ChatParams, Command, ContinueCommand,
    ResumeCommand, StatusCommand, parse_command,
)
from core.config import BridgeConfig
from core.errors import BridgeError, ProtocolDecodeError, StateError
from core.events import DoneEvent, ErrorEvent, StatusEvent
from core.telemetry import telemetry
from engines.claude_process import ClaudeProcess
from state.session import SessionManager
from transport.stdio import EventWriter

from .forwarder import EventForwarder
from .slot import ProcessSlot

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """
    Top-level control loop.

    Responsibilities:
    - Decode one control command per input line
    - Keep at most one agent process running (Idle / Running)
    - Retire the previous run before starting another
    - Answer status from the shared session state
    """

    def __init__(
        self,
        config: BridgeConfig,
        session: SessionManager,
        writer: EventWriter
    ):
        self.config = config
        self.session = session
        self.writer = writer
        self.slot = ProcessSlot()
        self.forwarder_task: Optional[asyncio.Task] = None

    async def run(self, lines: AsyncIterable[Optional[str]]):
        """Process commands until input ends, then let the last run finish"""
        async for line in lines:
            await self.handle_line(line)

        if await self.slot.occupied():
            logger.info("Input closed, waiting for active run")
        await self.join()

    async def handle_line(self, line: Optional[str]):
        """Handle one input line; None stands for a line over the read limit"""
        if line is None:
            await self._reject("line exceeds the read limit")
            return
        if not line.strip():
            return

        try:
            command = parse_command(line)
        except ProtocolDecodeError as e:
            await self._reject(str(e))
            return

        await self.dispatch(command)

    async def _reject(self, detail: str):
        logger.warning(f"Invalid request: {detail}")
        await self.writer.write(ErrorEvent(message=f"Invalid request: {detail}"))

    async def dispatch(self, command: Command):
        logger.debug(f"Dispatching {command.method}")

        if isinstance(command, ChatCommand):
            await self._start(command.params, None)

        elif isinstance(command, ResumeCommand):
            params = ChatParams(prompt="", cwd=command.params.cwd)
            await self._start(params, command.params.session_id)

        elif isinstance(command, ContinueCommand):
            try:
                await self._continue(command)
            except StateError as e:
                await self.writer.write(ErrorEvent(message=str(e)))

        elif isinstance(command, AbortCommand):
            if await self._retire():
                await self.writer.write(DoneEvent())

        elif isinstance(command, StatusCommand):
            state = await self.session.get_state()
            await self.writer.write(StatusEvent(active=state.active, session_id=state.session_id))

    async def _continue(self, command: ContinueCommand):
        session_id = await self.session.get_session_id()
        if session_id is None:
            raise StateError("No active session to continue")

        params = ChatParams(prompt=command.params.prompt, context=command.params.context)
        await self._start(params, session_id)

    async def _start(self, params: ChatParams, resume_session_id: Optional[str]):
        """Retire the current run, then spawn and forward a new one"""
        await self._retire()

        channel = EventChannel(maxsize=self.config.queue_maxsize)
        try:
            process = await ClaudeProcess.spawn(
                params, resume_session_id, self.session, channel, self.config
            )
        except BridgeError as e:
            logger.error(f"Spawn failed: {e}")
            await self.writer.write(ErrorEvent(message=str(e)))
            return

        await self.slot.install(process)
        self.forwarder_task = EventForwarder(channel, self.writer, self.slot, process).start()

    async def _retire(self) -> bool:
        """
        Stop the active run, if any.

        Returns:
            True if a running process was aborted
        """
        process = await self.slot.take()

        if process is not None:
            telemetry.log_event("run.retired", pid=process.pid)
            try:
                await process.abort()
            except Exception as e:
                logger.warning(f"Error aborting Claude Code process: {e}")
            if self.forwarder_task is not None:
                self.forwarder_task.cancel()

        await self.join()
        return process is not None

    async def join(self):
        """Wait for the current forwarder task to end"""
        task, self.forwarder_task = self.forwarder_task, None
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            # Only swallow the forwarder's cancellation, not our own
            if not task.cancelled():
                raise
        except Exception as e:
            logger.error(f"Event forwarder failed: {e}", exc_info=True)

    async def shutdown(self):
        """Abort any active run (termination signal)"""
        if await self._retire():
            logger.info("Aborted active run on shutdown")
