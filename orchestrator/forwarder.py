"""Forwards one run's events to the bridge output"""
import asyncio
import logging

from core.bus import EventChannel
from core.events import CostEvent, DoneEvent
from core.telemetry import telemetry
from engines.claude_process import ClaudeProcess
from transport.stdio import EventWriter

from .slot import ProcessSlot

logger = logging.getLogger(__name__)


class EventForwarder:
    """
    Drains a run's channel in order and writes each event as one line.

    Stops at the first DoneEvent and retires its process: takes it out of
    the slot, writes `done`, then reaps it. If the slot no longer holds the
    process, an abort got there first and writes `done` itself. A channel
    that ends without DoneEvent (the process died or closed stdout) is
    retired the same way, minus the `done`.
    """

    def __init__(
        self,
        channel: EventChannel,
        writer: EventWriter,
        slot: ProcessSlot,
        process: ClaudeProcess
    ):
        self.channel = channel
        self.writer = writer
        self.slot = slot
        self.process = process
        self.telemetry = telemetry.bind(pid=process.pid)
        self.saw_done = False

    def start(self) -> asyncio.Task:
        return asyncio.create_task(self.run())

    async def run(self):
        try:
            async with self.telemetry.trace_task("agent_run"):
                async for event in self.channel:
                    if isinstance(event, DoneEvent):
                        self.saw_done = True
                        break

                    await self.writer.write(event)

                    if isinstance(event, CostEvent):
                        self.telemetry.log_metric(
                            "agent.cost_usd",
                            event.total_usd,
                            duration_ms=event.duration_ms,
                            input_tokens=event.input_tokens,
                            output_tokens=event.output_tokens
                        )

                if not self.saw_done:
                    logger.warning(f"Agent output ended without a result: PID {self.process.pid}")

                if not await self.slot.release(self.process):
                    return

                if self.saw_done:
                    await self.writer.write(DoneEvent())
                await self.process.wait()
        finally:
            self.channel.close()
