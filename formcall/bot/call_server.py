"""
Per-connection call server.

A CallServer is created for every websocket connection once its handshake has
been validated. It builds the agent instructions and tools from the received
form schema, relays user input to the agent, and forwards the agent's messages,
tool invocations and end-of-call signal to the client. An agent failure ends
the call with an error message.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from fastapi import WebSocket
from pydantic import BaseModel, ValidationError

from formcall.bot.contracts import (
    EVENT_END_CALL,
    EVENT_ERROR,
    EVENT_MESSAGE,
    EVENT_SPEECH_END,
    EVENT_SPEECH_START,
    EVENT_TOOL_CALL,
    ConversationalAgent,
    SpeechToText,
    TextToSpeech,
)
from formcall.bot.instructions import build_instructions
from formcall.bot.tools import register_tools
from formcall.config.constants import (
    LOGGER_NAME,
    MESSAGE_TYPE_CALL_HANGUP,
    MESSAGE_TYPE_CALL_PAUSE,
    MESSAGE_TYPE_CALL_RESUME,
    MESSAGE_TYPE_USER_TEXT,
)
from formcall.errors import CallError
from formcall.handlers.session_handlers import handle_error
from formcall.models.message_schemas import (
    AssistantMessage,
    AssistantSpeechEndMessage,
    AssistantSpeechStartMessage,
    CallEndMessage,
    CallParams,
    CallReadyMessage,
    ClientMessage,
    ToolCallMessage,
    UserSpeechEndMessage,
    UserSpeechStartMessage,
    UserTranscriptMessage,
    parse_client_message,
)

logger = logging.getLogger(LOGGER_NAME)

AgentFactory = Callable[[str], ConversationalAgent]


class CallServer:
    """
    Serves a single voice form call.

    Speech-to-text and text-to-speech are optional: without them the client
    sends user text directly and receives assistant text only.
    """

    def __init__(
        self,
        websocket: WebSocket,
        params: CallParams,
        agent_factory: AgentFactory,
        stt: Optional[SpeechToText] = None,
        tts: Optional[TextToSpeech] = None,
        generate_first_message: bool = True,
        auto_end_call: bool = True,
    ):
        self.websocket = websocket
        self.params = params
        self.agent_factory = agent_factory
        self.stt = stt
        self.tts = tts
        self.generate_first_message = generate_first_message
        self.auto_end_call = auto_end_call
        self.agent: Optional[ConversationalAgent] = None
        self.paused = False
        self.hung_up = False
        self.disconnected = False
        self._closed = False
        self._unsubscribers: List[Callable[[], None]] = []

        self.handlers: Dict[str, Callable[[ClientMessage], Awaitable[None]]] = {
            MESSAGE_TYPE_USER_TEXT: self._handle_user_text,
            MESSAGE_TYPE_CALL_PAUSE: self._handle_pause,
            MESSAGE_TYPE_CALL_RESUME: self._handle_resume,
            MESSAGE_TYPE_CALL_HANGUP: self._handle_hangup,
        }

    @property
    def fields(self):
        return self.params.formSchema.fields if self.params.formSchema else []

    async def send(self, message: BaseModel) -> None:
        await self.websocket.send_text(message.model_dump_json())

    async def start(self) -> None:
        """Set up the agent for this call and tell the client it is ready."""
        instructions = build_instructions(self.fields)
        self.agent = self.agent_factory(instructions)
        tools = register_tools(self.agent, self.fields, auto_end_call=self.auto_end_call)
        logger.info(f"Agent configured with tools: {[tool.name for tool in tools]}")

        self._unsubscribers = [
            self.agent.events.on(EVENT_MESSAGE, self._on_assistant_message),
            self.agent.events.on(EVENT_TOOL_CALL, self._on_tool_call),
            self.agent.events.on(EVENT_END_CALL, self._on_end_call),
            self.agent.events.on(EVENT_ERROR, self._on_agent_error),
        ]
        if self.stt:
            self._unsubscribers += [
                self.stt.on_transcript(self._on_transcript),
                self.stt.events.on(EVENT_SPEECH_START, self._on_speech_start),
                self.stt.events.on(EVENT_SPEECH_END, self._on_speech_end),
            ]

        await self.agent.connect()
        await self.send(CallReadyMessage())
        logger.info("Call ready")

        if self.generate_first_message:
            await self.agent.greet()

    async def run(self) -> None:
        """Process client messages until the client hangs up or disconnects."""
        while not self.hung_up:
            message = await self.websocket.receive()
            if message.get("type") == "websocket.disconnect":
                logger.info("Client disconnected")
                self.disconnected = True
                break

            audio = message.get("bytes")
            if audio is not None:
                await self._handle_audio(audio)
                continue

            data = message.get("text")
            if data is None:
                continue
            try:
                typed_message = parse_client_message(data)
            except ValidationError as e:
                logger.error(f"Message validation error: {e}")
                continue

            handler = self.handlers.get(typed_message.type)
            if handler:
                await handler(typed_message)
            else:
                logger.warning(f"Unhandled message type received: {typed_message.type}")

    async def _handle_audio(self, chunk: bytes) -> None:
        if self.paused or not self.stt:
            return
        await self.stt.process_audio(chunk)

    async def _handle_user_text(self, message) -> None:
        if self.paused:
            logger.debug("Ignoring user text while paused")
            return
        await self._on_transcript(message.text)

    async def _handle_pause(self, message) -> None:
        self.paused = True
        logger.info("Call paused by client")

    async def _handle_resume(self, message) -> None:
        self.paused = False
        logger.info("Call resumed by client")

    async def _handle_hangup(self, message) -> None:
        self.hung_up = True
        logger.info("Client hung up")

    async def _on_transcript(self, text: str) -> None:
        await self.send(UserTranscriptMessage(text=text))
        await self.agent.answer(text)

    async def _on_speech_start(self) -> None:
        await self.send(UserSpeechStartMessage())

    async def _on_speech_end(self) -> None:
        await self.send(UserSpeechEndMessage())

    async def _on_assistant_message(self, text: str) -> None:
        await self.send(AssistantMessage(text=text))
        if not self.tts:
            return
        await self.send(AssistantSpeechStartMessage())
        async for chunk in self.tts.speak(text):
            await self.websocket.send_bytes(chunk)
        await self.send(AssistantSpeechEndMessage())

    async def _on_tool_call(self, tool_name: str, parameters: dict, output) -> None:
        await self.send(
            ToolCallMessage(toolName=tool_name, parameters=parameters, output=output)
        )

    async def _on_end_call(self) -> None:
        logger.info("Agent ended the call")
        await self.send(CallEndMessage())

    async def _on_agent_error(self, error: CallError) -> None:
        if self.hung_up:
            return
        logger.error(f"Agent failed with {error.code.value}: {error.message}")
        self.hung_up = True
        self.disconnected = True
        await handle_error(self.websocket, error)

    async def close(self) -> None:
        """Release the agent and speech collaborators exactly once."""
        if self._closed:
            return
        self._closed = True

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        if self.agent:
            await self.agent.close()
        if self.stt:
            await self.stt.close()
        if self.tts:
            await self.tts.close()
        logger.info("Call server closed")
