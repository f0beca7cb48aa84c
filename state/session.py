"""Session state shared between the dispatcher and running agent processes"""
import asyncio
import logging
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class SessionState(BaseModel):
    """Snapshot of the logical conversation"""
    session_id: Optional[str] = None
    active: bool = False
    model: Optional[str] = None


class SessionManager:
    """
    Owns the single SessionState.

    All access goes through the lock; readers get copies. session_id and
    model survive set_inactive() so a later continue can resume.
    """

    def __init__(self):
        self._state = SessionState()
        self._lock = asyncio.Lock()

    async def set_active(self, session_id: str, model: str):
        async with self._lock:
            self._state.session_id = session_id
            self._state.model = model
            self._state.active = True
        logger.info(f"Session active: {session_id} ({model})")

    async def set_inactive(self):
        async with self._lock:
            self._state.active = False

    async def get_state(self) -> SessionState:
        async with self._lock:
            return self._state.model_copy()

    async def get_session_id(self) -> Optional[str]:
        async with self._lock:
            return self._state.session_id
