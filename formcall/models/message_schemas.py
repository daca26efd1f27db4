"""
Pydantic models for the call websocket protocol.

This module defines the handshake parameters sent by the client when a call
starts, and structured models for every JSON message exchanged afterwards in
either direction, providing type validation and documentation.
"""

import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from formcall.config.constants import LOGGER_NAME
from formcall.errors import ErrorCode
from formcall.models.form_schema import FormSchema

logger = logging.getLogger(LOGGER_NAME)


# Handshake
class CallParams(BaseModel):
    """Parameters sent by the client as the first payload of a call."""

    formSchema: Optional[FormSchema] = Field(
        None, description="Shape of the form the agent should fill"
    )

    @field_validator("formSchema")
    def validate_form_schema(cls, v):
        """Validate that field ids are unique and warn about duplicate names."""
        if v is None:
            return v
        ids = [field.id for field in v.fields]
        if len(ids) != len(set(ids)):
            raise ValueError("Form field ids must be unique")
        names = [field.name for field in v.fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            logger.warning(
                f"Form schema has duplicate field names, updates go to the first match: {duplicates}"
            )
        return v

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the wire, omitting unset optional values."""
        return self.model_dump(mode="json", exclude_none=True)


# Base Models
class BaseMessage(BaseModel):
    """Base model for all websocket messages after the handshake."""

    type: str = Field(..., description="Message type identifier")


# Server -> client
class CallReadyMessage(BaseMessage):
    """The server accepted the handshake and the conversation can begin."""

    type: Literal["call.ready"] = "call.ready"


class CallErrorMessage(BaseMessage):
    """The server rejected the call."""

    type: Literal["call.error"] = "call.error"
    code: ErrorCode = Field(..., description="Error code")
    reason: str = Field(..., description="Human-readable reason")


class CallEndMessage(BaseMessage):
    """The agent signalled the end of the call."""

    type: Literal["call.end"] = "call.end"


class UserSpeechStartMessage(BaseMessage):
    type: Literal["user.speechStart"] = "user.speechStart"


class UserSpeechEndMessage(BaseMessage):
    type: Literal["user.speechEnd"] = "user.speechEnd"


class UserTranscriptMessage(BaseMessage):
    """Text recognized from the user's speech."""

    type: Literal["user.transcript"] = "user.transcript"
    text: str


class AssistantSpeechStartMessage(BaseMessage):
    type: Literal["assistant.speechStart"] = "assistant.speechStart"


class AssistantSpeechEndMessage(BaseMessage):
    type: Literal["assistant.speechEnd"] = "assistant.speechEnd"


class AssistantMessage(BaseMessage):
    """Text answer produced by the agent."""

    type: Literal["assistant.message"] = "assistant.message"
    text: str


class ToolCallMessage(BaseMessage):
    """A tool invocation made by the agent, forwarded to the client."""

    type: Literal["tool.call"] = "tool.call"
    toolName: str = Field(..., description="Name of the invoked tool")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    output: Any = Field(default_factory=dict, description="Tool acknowledgement")

    @field_validator("toolName")
    def validate_tool_name(cls, v):
        """Validate that tool name is not empty."""
        if not v.strip():
            raise ValueError("Tool name cannot be empty")
        return v


# Client -> server
class UserTextMessage(BaseMessage):
    """A user utterance that is already text."""

    type: Literal["user.text"] = "user.text"
    text: str

    @field_validator("text")
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Text cannot be empty")
        return v


class CallPauseMessage(BaseMessage):
    type: Literal["call.pause"] = "call.pause"


class CallResumeMessage(BaseMessage):
    type: Literal["call.resume"] = "call.resume"


class CallHangupMessage(BaseMessage):
    type: Literal["call.hangup"] = "call.hangup"


# Union type for all messages sent by the server
ServerMessage = Annotated[
    Union[
        CallReadyMessage,
        CallErrorMessage,
        CallEndMessage,
        UserSpeechStartMessage,
        UserSpeechEndMessage,
        UserTranscriptMessage,
        AssistantSpeechStartMessage,
        AssistantSpeechEndMessage,
        AssistantMessage,
        ToolCallMessage,
    ],
    Field(discriminator="type"),
]

# Union type for all messages sent by the client after the handshake
ClientMessage = Annotated[
    Union[
        UserTextMessage,
        CallPauseMessage,
        CallResumeMessage,
        CallHangupMessage,
    ],
    Field(discriminator="type"),
]

_server_message_adapter = TypeAdapter(ServerMessage)
_client_message_adapter = TypeAdapter(ClientMessage)


def parse_server_message(data: str) -> ServerMessage:
    """Parse a JSON text frame received from the server."""
    return _server_message_adapter.validate_json(data)


def parse_client_message(data: str) -> ClientMessage:
    """Parse a JSON text frame received from the client."""
    return _client_message_adapter.validate_json(data)
