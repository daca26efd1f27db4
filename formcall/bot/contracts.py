"""
Contracts of the external collaborators used by the call server.

Speech recognition, speech synthesis and the language model itself live outside
this application. The call server only depends on the abstract interfaces below;
concrete providers implement them.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

from formcall.config.constants import LOGGER_NAME, TOOL_END_CALL
from formcall.events import EventEmitter

logger = logging.getLogger(LOGGER_NAME)

# Agent event names
EVENT_MESSAGE = "message"
EVENT_TOOL_CALL = "tool_call"
EVENT_END_CALL = "end_call"
EVENT_ERROR = "error"

# Speech-to-text event names
EVENT_TRANSCRIPT = "transcript"
EVENT_SPEECH_START = "speech_start"
EVENT_SPEECH_END = "speech_end"


@dataclass
class AgentTool:
    """A capability the agent may invoke during the conversation."""

    name: str
    description: str
    parameters: Dict[str, Any]
    callback: Callable[..., Any]
    emit_output: bool = False


class SpeechToText(ABC):
    """Consumes an audio stream and produces transcribed text events."""

    def __init__(self):
        self.events = EventEmitter()

    def on_transcript(self, listener: Callable[[str], Any]) -> Callable[[], None]:
        return self.events.on(EVENT_TRANSCRIPT, listener)

    @abstractmethod
    async def process_audio(self, chunk: bytes) -> None:
        """Feed a chunk of captured audio."""

    async def close(self) -> None:
        self.events.clear()


class TextToSpeech(ABC):
    """Consumes text and produces an audio stream."""

    @abstractmethod
    def speak(self, text: str) -> AsyncIterator[bytes]:
        """Synthesize text, yielding audio chunks as they become available."""

    async def close(self) -> None:
        pass


class ConversationalAgent(ABC):
    """
    A language-model agent driven by a system instruction and a tool set.

    The agent emits assistant messages, tool invocations whose output should be
    forwarded, the end-of-call signal, and an error event carrying a CallError
    when the agent can no longer answer. Listeners are registered through
    ``events`` and released by ``close``.
    """

    def __init__(self, instructions: str):
        self.instructions = instructions
        self.tools: Dict[str, AgentTool] = {}
        self.events = EventEmitter()

    def add_tool(self, tool: AgentTool) -> None:
        """Register a tool, replacing any previous tool of the same name."""
        self.tools[tool.name] = tool
        logger.debug(f"Registered agent tool: {tool.name}")

    async def connect(self) -> None:
        """Open any connection the agent needs before the conversation starts."""

    @abstractmethod
    async def answer(self, text: str) -> None:
        """Process a user utterance and produce the assistant's answer."""

    @abstractmethod
    async def greet(self) -> None:
        """Produce the assistant's opening message."""

    async def invoke_tool(self, name: str, arguments: str) -> Any:
        """
        Run a tool invocation requested by the model.

        Args:
            name: Name of the tool
            arguments: JSON-encoded arguments as produced by the model

        Returns:
            The tool output, to be returned to the model
        """
        tool = self.tools.get(name)
        if tool is None:
            logger.warning(f"Agent invoked unknown tool: {name}")
            return {"error": f"Unknown tool: {name}"}

        try:
            parameters = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError:
            logger.warning(f"Invalid arguments for tool {name}: {arguments}")
            return {"error": "Invalid JSON arguments"}
        if not isinstance(parameters, dict):
            logger.warning(f"Arguments for tool {name} are not an object: {arguments}")
            return {"error": "Tool arguments must be a JSON object"}

        try:
            output = tool.callback(**parameters)
        except TypeError as e:
            logger.warning(f"Tool {name} rejected its arguments: {e}")
            return {"error": f"Invalid arguments for {name}"}
        logger.info(f"Tool {name} invoked with {parameters}")

        if tool.emit_output:
            await self.events.emit_async(EVENT_TOOL_CALL, name, parameters, output)
        if name == TOOL_END_CALL:
            await self.events.emit_async(EVENT_END_CALL)
        return output

    async def close(self) -> None:
        self.events.clear()
