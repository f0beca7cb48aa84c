"""Control commands read from the bridge input stream"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from core.errors import ProtocolDecodeError


class ChatParams(BaseModel):
    """Parameters for starting a conversation"""
    prompt: str
    cwd: Optional[str] = None
    context: Optional[str] = None
    model: Optional[str] = None
    allowed_tools: Optional[List[str]] = None
    append_system_prompt: Optional[str] = None
    permission_mode: Optional[str] = None


class ResumeParams(BaseModel):
    """Parameters for re-entering an existing session"""
    session_id: str
    cwd: Optional[str] = None


class ContinueParams(BaseModel):
    """Parameters for appending a prompt to the tracked session"""
    prompt: str
    context: Optional[str] = None


class ChatCommand(BaseModel):
    method: Literal["chat"] = "chat"
    params: ChatParams


class ResumeCommand(BaseModel):
    method: Literal["resume"] = "resume"
    params: ResumeParams


class ContinueCommand(BaseModel):
    method: Literal["continue"] = "continue"
    params: ContinueParams


class AbortCommand(BaseModel):
    method: Literal["abort"] = "abort"
    params: Optional[Dict[str, Any]] = None


class StatusCommand(BaseModel):
    method: Literal["status"] = "status"
    params: Optional[Dict[str, Any]] = None


Command = Annotated[
    Union[ChatCommand, ResumeCommand, ContinueCommand, AbortCommand, StatusCommand],
    Field(discriminator="method"),
]

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(line: str) -> Command:
    """
    Decode one control command line.

    Raises:
        ProtocolDecodeError: line is not valid JSON or does not match
            any known command shape
    """
    try:
        return _command_adapter.validate_json(line)
    except ValidationError as e:
        # One compact line per problem, e.g. "params.prompt: Field required"
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'request'}: {err['msg']}"
            for err in e.errors()
        )
        raise ProtocolDecodeError(details) from e
