"""Event types emitted on the bridge output stream"""
from pydantic import BaseModel, Field
from typing import Literal, Optional, Any, List


class Event(BaseModel):
    """Base event type"""
    event: str

    def to_json_line(self) -> str:
        """Serialize as one JSON line terminated by a single newline"""
        return self.model_dump_json() + "\n"


class InitEvent(Event):
    """Agent process reported its session"""
    event: Literal["init"] = "init"
    session_id: str
    model: str
    tools: List[str] = Field(default_factory=list)


class TextChunkEvent(Event):
    """Incremental text slice"""
    event: Literal["text_chunk"] = "text_chunk"
    text: str


class TextEvent(Event):
    """Completed, coalesced text block"""
    event: Literal["text"] = "text"
    text: str


class ToolUseEvent(Event):
    """Agent started a tool call"""
    event: Literal["tool_use"] = "tool_use"
    tool: str
    id: str
    input: Any = None


class ToolResultEvent(Event):
    """Tool call finished"""
    event: Literal["tool_result"] = "tool_result"
    tool: str
    id: str
    success: bool
    content: str


class CostEvent(Event):
    """Usage and cost for a finished run"""
    event: Literal["cost"] = "cost"
    total_usd: float
    duration_ms: int
    input_tokens: int
    output_tokens: int


class DoneEvent(Event):
    """Terminal event, exactly one per run"""
    event: Literal["done"] = "done"


class ErrorEvent(Event):
    """Non-terminal error"""
    event: Literal["error"] = "error"
    message: str


class StatusEvent(Event):
    """Session status snapshot"""
    event: Literal["status"] = "status"
    active: bool
    session_id: Optional[str] = None
