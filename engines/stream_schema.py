"""
Schema of the claude CLI stream-json output.

Each line is one JSON object tagged by "type". Only the fields the bridge
reads are modelled. Every field has a default, and a value of the wrong
JSON type is treated as if it were absent, so a drifting field degrades to
its default instead of dropping the whole line:

    system        subtype ""  session_id ""  model "unknown"  tools []
    stream_event  event.type ""  event.delta.type ""  event.delta.text None
    assistant     message.content []  (tool_use: name "unknown", id "", input null)
    tool_result   tool/name "unknown"  tool_use_id ""  is_error False
                  content/output ""
    result        total_cost_usd 0.0  duration_ms 0  is_error False
                  result "Unknown error"
                  usage.input_tokens 0  usage.cache_read_input_tokens 0
                  usage.output_tokens 0
"""
import json
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter


def _string_or(default):
    def coerce(value):
        return value if isinstance(value, str) else default
    return coerce


def _count(value):
    # Non-negative integers only; floats, bools and negatives fall back to 0
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 0


def _number(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _flag(value):
    return value if isinstance(value, bool) else False


def _object(value):
    return value if isinstance(value, dict) else {}


def _strings(value):
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _objects(value):
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, dict) else {} for item in value]


Text = Annotated[str, BeforeValidator(_string_or(""))]
OptionalText = Annotated[Optional[str], BeforeValidator(_string_or(None))]
Count = Annotated[int, BeforeValidator(_count)]
Number = Annotated[float, BeforeValidator(_number)]
Flag = Annotated[bool, BeforeValidator(_flag)]
Strings = Annotated[List[str], BeforeValidator(_strings)]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SystemMessage(_Lenient):
    type: Literal["system"]
    subtype: Text = ""
    session_id: Text = ""
    model: Annotated[str, BeforeValidator(_string_or("unknown"))] = "unknown"
    tools: Strings = Field(default_factory=list)

    @property
    def is_init(self) -> bool:
        return self.subtype == "init"


class TextDelta(_Lenient):
    type: Text = ""
    text: OptionalText = None


class StreamPayload(_Lenient):
    type: Text = ""
    delta: Annotated[TextDelta, BeforeValidator(_object)] = Field(default_factory=TextDelta)


class StreamEventMessage(_Lenient):
    type: Literal["stream_event"]
    event: Annotated[StreamPayload, BeforeValidator(_object)] = Field(default_factory=StreamPayload)

    @property
    def text_delta(self) -> Optional[str]:
        """Text of a content_block_delta/text_delta, None for anything else"""
        if self.event.type == "content_block_delta" and self.event.delta.type == "text_delta":
            return self.event.delta.text
        return None

    @property
    def is_block_stop(self) -> bool:
        return self.event.type == "content_block_stop"


class ContentBlock(_Lenient):
    type: Text = ""
    name: Annotated[str, BeforeValidator(_string_or("unknown"))] = "unknown"
    id: Text = ""
    input: Any = None


class AssistantBody(_Lenient):
    content: Annotated[List[ContentBlock], BeforeValidator(_objects)] = Field(default_factory=list)


class AssistantMessage(_Lenient):
    type: Literal["assistant"]
    message: Annotated[AssistantBody, BeforeValidator(_object)] = Field(default_factory=AssistantBody)

    @property
    def tool_uses(self) -> List[ContentBlock]:
        return [block for block in self.message.content if block.type == "tool_use"]


class ToolResultMessage(_Lenient):
    type: Literal["tool_result", "tool_use_result"]
    tool: Any = None
    name: Any = None
    tool_use_id: Text = ""
    is_error: Flag = False
    content: Any = None
    output: Any = None

    @property
    def tool_name(self) -> str:
        # "name" is only consulted when "tool" is missing altogether
        value = self.tool if "tool" in self.model_fields_set else self.name
        return value if isinstance(value, str) else "unknown"

    @property
    def content_text(self) -> str:
        if "content" in self.model_fields_set:
            value = self.content
        elif "output" in self.model_fields_set:
            value = self.output
        else:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class Usage(_Lenient):
    input_tokens: Count = 0
    cache_read_input_tokens: Count = 0
    output_tokens: Count = 0


class ResultMessage(_Lenient):
    type: Literal["result"]
    total_cost_usd: Number = 0.0
    duration_ms: Count = 0
    is_error: Flag = False
    result: Annotated[str, BeforeValidator(_string_or("Unknown error"))] = "Unknown error"
    usage: Annotated[Usage, BeforeValidator(_object)] = Field(default_factory=Usage)

    @property
    def input_tokens(self) -> int:
        return self.usage.input_tokens + self.usage.cache_read_input_tokens


AgentMessage = Annotated[
    Union[SystemMessage, StreamEventMessage, AssistantMessage, ToolResultMessage, ResultMessage],
    Field(discriminator="type"),
]

KNOWN_TYPES = frozenset({
    "system", "stream_event", "assistant", "tool_result", "tool_use_result", "result",
})

_message_adapter: TypeAdapter[AgentMessage] = TypeAdapter(AgentMessage)


def decode_message(obj: Any) -> Optional[AgentMessage]:
    """
    Decode an already-parsed JSON value into a typed agent message.

    Returns None for values the bridge does not act on: non-objects and
    objects whose "type" is missing or unknown.
    """
    if not isinstance(obj, dict):
        return None
    msg_type = obj.get("type")
    if not isinstance(msg_type, str) or msg_type not in KNOWN_TYPES:
        return None
    return _message_adapter.validate_python(obj)
