"""Claude Code CLI process supervisor"""
import asyncio
import logging
import os
from typing import List, Optional

from core.bus import EventChannel
from core.commands import ChatParams
from core.config import BridgeConfig
from core.errors import PipeError, SpawnError
from core.telemetry import telemetry
from state.session import SessionManager

from .stream_translator import StreamTranslator

logger = logging.getLogger(__name__)

# Seconds to wait for a killed process to be reaped
KILL_TIMEOUT = 5.0


def build_command(executable: str, params: ChatParams, resume_session_id: Optional[str] = None) -> List[str]:
    """Build the claude CLI invocation for one run"""
    cmd_args = [
        executable,
        "-p",
        "--output-format",
        "stream-json",
        "--verbose",  # Required for stream-json
        "--include-partial-messages",
    ]

    if params.model is not None:
        cmd_args.extend(["--model", params.model])

    if params.allowed_tools is not None:
        cmd_args.extend(["--allowed-tools", ",".join(params.allowed_tools)])

    if params.append_system_prompt is not None:
        cmd_args.extend(["--append-system-prompt", params.append_system_prompt])

    if params.permission_mode is not None:
        cmd_args.extend(["--permission-mode", params.permission_mode])

    if resume_session_id is not None:
        cmd_args.extend(["--resume", resume_session_id])

    return cmd_args


def compose_prompt(params: ChatParams) -> str:
    """Prompt text for stdin, context block first when present"""
    if params.context is not None:
        return f"{params.context}\n\n{params.prompt}"
    return params.prompt


class ClaudeProcess:
    """One running claude CLI process and the translator reading its output"""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        translator: StreamTranslator,
        session: SessionManager
    ):
        self.process = process
        self.translator = translator
        self.session = session
        self.reader_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @classmethod
    async def spawn(
        cls,
        params: ChatParams,
        resume_session_id: Optional[str],
        session: SessionManager,
        channel: EventChannel,
        config: BridgeConfig
    ) -> "ClaudeProcess":
        """
        Start the CLI, hand it the prompt and begin translating its output.

        Args:
            params: Chat parameters (cwd, model, tools, prompt...)
            resume_session_id: Session to resume, None for a new conversation
            session: Shared session state
            channel: Channel receiving translated events
            config: Bridge configuration

        Raises:
            SpawnError: executable missing or not startable
            PipeError: a standard pipe is missing or stdin could not be written
        """
        cmd_args = build_command(config.executable, params, resume_session_id)
        cwd = params.cwd or config.default_cwd

        env = os.environ.copy()
        env.update(config.env)

        if resume_session_id:
            logger.info(f"Resuming Claude Code session: {resume_session_id}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd_args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=cwd,
                limit=config.stream_limit
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn claude: {e}") from e

        telemetry.log_event("agent.spawned", pid=process.pid, resume=resume_session_id, cwd=cwd)

        translator = StreamTranslator(session, channel)
        handle = cls(process, translator, session)

        try:
            await handle._write_prompt(compose_prompt(params))
        except PipeError:
            await handle._kill()
            raise

        handle.reader_task = asyncio.create_task(
            translator.run(process.stdout, process.stderr)
        )
        return handle

    async def _write_prompt(self, prompt_text: str):
        stdin = self.process.stdin
        if stdin is None:
            raise PipeError("No stdin")
        if self.process.stdout is None:
            raise PipeError("No stdout")
        if self.process.stderr is None:
            raise PipeError("No stderr")

        try:
            if prompt_text:
                stdin.write(prompt_text.encode())
                await stdin.drain()
            # The CLI reads a single shot of input
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise PipeError(f"Failed to write to stdin: {e}") from e

    async def _kill(self):
        try:
            self.process.kill()
        except ProcessLookupError:
            logger.debug(f"Claude Code process already exited: PID {self.process.pid}")
        try:
            # wait() also needs the output pipes closed, which a stalled reader prevents
            await asyncio.wait_for(self.process.wait(), timeout=KILL_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Claude Code process not reaped after kill: PID {self.process.pid}")

    async def abort(self):
        """Force-terminate the process; safe to call more than once"""
        telemetry.log_event("agent.aborted", pid=self.process.pid, returncode=self.process.returncode)
        try:
            await self._kill()
        finally:
            if self.reader_task and not self.reader_task.done():
                self.reader_task.cancel()
                try:
                    await self.reader_task
                except asyncio.CancelledError:
                    pass
            await self.session.set_inactive()

    async def wait(self) -> int:
        """Wait for natural exit and reap the process"""
        returncode = await self.process.wait()
        logger.info(f"Claude Code process completed: PID {self.process.pid} (exit {returncode})")
        return returncode
