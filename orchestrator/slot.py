"""Single active-process slot"""
import asyncio
from typing import Optional

from engines.claude_process import ClaudeProcess


class ProcessSlot:
    """Holds at most one ClaudeProcess; every access is a short locked section"""

    def __init__(self):
        self._process: Optional[ClaudeProcess] = None
        self._lock = asyncio.Lock()

    async def install(self, process: ClaudeProcess):
        async with self._lock:
            if self._process is not None:
                raise RuntimeError("Active process slot is occupied")
            self._process = process

    async def take(self) -> Optional[ClaudeProcess]:
        """Empty the slot, returning whatever was in it"""
        async with self._lock:
            process, self._process = self._process, None
            return process

    async def release(self, process: ClaudeProcess) -> bool:
        """Empty the slot only if it still holds this process"""
        async with self._lock:
            if self._process is not process:
                return False
            self._process = None
            return True

    async def occupied(self) -> bool:
        async with self._lock:
            return self._process is not None
