"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the subset of Realtime API events the
conversational agent sends and consumes in text modality.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Role of a participant in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class RealtimeTool(BaseModel):
    """Function tool declaration inside a session.update event."""
    type: str = "function"
    name: str
    description: str
    parameters: Dict[str, Any]


class RealtimeSessionConfig(BaseModel):
    """Session configuration sent with session.update."""
    modalities: List[str] = Field(default_factory=lambda: ["text"])
    instructions: str
    tools: List[RealtimeTool] = Field(default_factory=list)
    tool_choice: str = "auto"


class RealtimeFunctionCall(BaseModel):
    """Payload of a response.function_call_arguments.done event."""
    type: str = "response.function_call_arguments.done"
    name: str
    call_id: str
    arguments: str = "{}"


class RealtimeTextDone(BaseModel):
    """Payload of a response.text.done event."""
    type: str = "response.text.done"
    text: str


class RealtimeErrorMessage(BaseModel):
    """Error event from the Realtime API."""
    type: str = "error"
    error: Dict[str, Any]

    @property
    def message(self) -> Optional[str]:
        return self.error.get("message")
