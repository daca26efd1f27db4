"""
Client-side lifecycle of a voice form call.

This module provides the CallSession, the state machine a client drives to
start, pause, resume and stop a call. It owns the transport to the call server,
mirrors the server's speech events into an activity flag, records the
conversation transcript, routes tool invocations to the ToolCallBridge and the
end-of-call signal to the GracefulTerminationController.

Example:
    session = CallSession("ws://localhost:8081/call", editor, microphone=mic, speaker=speaker)
    session.events.on("state_change", render)
    await session.start()
    ...
    await session.stop()
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from formcall.client.audio import Microphone, Speaker
from formcall.client.notifications import ErrorNotifier
from formcall.client.termination import GracefulTerminationController
from formcall.client.tool_bridge import EVENT_TOOL_CALL, ToolCallBridge
from formcall.config.constants import END_CALL_DELAY, END_CALL_PLAYBACK_TIMEOUT, LOGGER_NAME
from formcall.errors import CallConnectionError, CallError, MissingUrlError, error_from_code
from formcall.events import EventEmitter
from formcall.models.conversation import ConversationLog
from formcall.models.form_schema import FormEditor
from formcall.models.message_schemas import (
    AssistantMessage,
    AssistantSpeechEndMessage,
    AssistantSpeechStartMessage,
    CallEndMessage,
    CallErrorMessage,
    CallParams,
    ServerMessage,
    ToolCallMessage,
    UserSpeechEndMessage,
    UserSpeechStartMessage,
    UserTranscriptMessage,
)
from formcall.models.openai_schemas import MessageRole
from formcall.services.call_client import CallClient

logger = logging.getLogger(LOGGER_NAME)

EVENT_STATE_CHANGE = "state_change"
EVENT_ERROR = "error"

TransportFactory = Callable[[str], CallClient]


class CallPhase(str, Enum):
    IDLE = "Idle"
    STARTING = "Starting"
    CONNECTED = "Connected"
    STOPPED = "Stopped"
    ERRORED = "Errored"


class Activity(str, Enum):
    LISTENING = "Listening"
    USER_SPEAKING = "UserSpeaking"
    PROCESSING = "Processing"
    ASSISTANT_SPEAKING = "AssistantSpeaking"


class CallState(BaseModel):
    """Snapshot of a session's state, emitted on every transition."""

    phase: CallPhase = CallPhase.IDLE
    activity: Optional[Activity] = None
    paused: bool = False
    mic_muted: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class CallSession:
    """
    State machine of a single client's call.

    A session object can run many calls one after the other: start() from
    Stopped or Errored begins a fresh call with a new transport and a new
    transcript.
    """

    def __init__(
        self,
        url: str,
        editor: FormEditor,
        transport_factory: TransportFactory = CallClient,
        microphone: Optional[Microphone] = None,
        speaker: Optional[Speaker] = None,
        notifier: Optional[ErrorNotifier] = None,
        end_call_delay: float = END_CALL_DELAY,
        playback_timeout: Optional[float] = END_CALL_PLAYBACK_TIMEOUT,
    ):
        """
        Initialize the call session.

        Args:
            url: Websocket URL of the call server
            editor: The form editor whose schema is sent and filled
            transport_factory: Creates the transport for each call
            microphone: Optional audio capture device
            speaker: Optional audio playback device
            notifier: Optional notifier that displays call errors
            end_call_delay: Seconds to wait after the end-of-call signal
            playback_timeout: Upper bound on waiting for playback after the delay
        """
        self.url = url
        self.editor = editor
        self.transport_factory = transport_factory
        self.microphone = microphone
        self.speaker = speaker
        self.notifier = notifier
        self.events = EventEmitter()

        self.phase = CallPhase.IDLE
        self.activity: Optional[Activity] = None
        self.paused = False
        self.mic_muted = False
        self.error: Optional[CallError] = None

        self.conversation = ConversationLog()
        self.bridge = ToolCallBridge(editor, self.conversation)
        self.termination = GracefulTerminationController(
            self.stop,
            speaker=speaker,
            delay=end_call_delay,
            playback_timeout=playback_timeout,
        )

        self.transport: Optional[CallClient] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._unsubscribe_mic: Optional[Callable[[], None]] = None
        self._released = True

    @property
    def state(self) -> CallState:
        return CallState(
            phase=self.phase,
            activity=self.activity,
            paused=self.paused,
            mic_muted=self.mic_muted,
            error_code=self.error.code.value if self.error else None,
            error_message=self.error.message if self.error else None,
        )

    def _set_phase(self, phase: CallPhase) -> None:
        if self.phase != phase:
            logger.info(f"Call phase {self.phase.value} -> {phase.value}")
        self.phase = phase
        self._notify()

    def _notify(self) -> None:
        self.events.emit(EVENT_STATE_CHANGE, self.state)

    async def start(self) -> None:
        """
        Start a call.

        Ignored while a call is starting or connected. Failures leave the
        session Errored rather than raising.
        """
        if self.phase in (CallPhase.STARTING, CallPhase.CONNECTED):
            logger.debug(f"Ignoring start while {self.phase.value}")
            return

        self.error = None
        self.activity = None
        self.paused = False
        self.mic_muted = False
        self.conversation = ConversationLog()
        self.bridge = ToolCallBridge(self.editor, self.conversation)
        self._released = False
        self._set_phase(CallPhase.STARTING)

        try:
            if not self.url:
                raise MissingUrlError("Server URL is missing")

            transport = self.transport_factory(self.url)
            self.transport = transport
            await transport.connect()
            if self.phase != CallPhase.STARTING:
                await transport.close()
                return
            await transport.send_params(CallParams(formSchema=self.editor.schema))
            await transport.wait_until_ready()
            if self.phase != CallPhase.STARTING:
                await transport.close()
                return

            if self.microphone:
                self._unsubscribe_mic = self.microphone.on_chunk(self._on_mic_chunk)
                self.microphone.start()
        except CallError as e:
            await self._fail(e)
            return

        self._enter_connected()

    def _enter_connected(self) -> None:
        self.activity = Activity.LISTENING
        self.editor.lock()
        self.bridge.attach(self.events)
        self._listen_task = asyncio.create_task(self._listen())
        self._set_phase(CallPhase.CONNECTED)

    async def _listen(self) -> None:
        try:
            await self.transport.listen(self._handle_message, self._handle_audio)
        except CallError as e:
            await self._fail(e)
            return
        if self.phase == CallPhase.CONNECTED and not self.termination.pending:
            await self._fail(CallConnectionError("Connection closed by server"))

    async def _handle_message(self, message: ServerMessage) -> None:
        if isinstance(message, UserSpeechStartMessage):
            self._set_activity(Activity.USER_SPEAKING)
        elif isinstance(message, UserSpeechEndMessage):
            self._set_activity(Activity.PROCESSING)
        elif isinstance(message, AssistantSpeechStartMessage):
            self._set_activity(Activity.ASSISTANT_SPEAKING)
        elif isinstance(message, AssistantSpeechEndMessage):
            self._set_activity(Activity.LISTENING)
        elif isinstance(message, UserTranscriptMessage):
            self.conversation.add_message(MessageRole.USER, message.text)
        elif isinstance(message, AssistantMessage):
            self.conversation.add_message(MessageRole.ASSISTANT, message.text)
        elif isinstance(message, ToolCallMessage):
            self.events.emit(EVENT_TOOL_CALL, message)
        elif isinstance(message, CallEndMessage):
            self.termination.handle_end_call()
        elif isinstance(message, CallErrorMessage):
            await self._fail(error_from_code(message.code.value, message.reason))
        else:
            logger.debug(f"Ignoring message of type {message.type}")

    def _handle_audio(self, chunk: bytes) -> None:
        if self.speaker and not self.paused:
            self.speaker.play(chunk)

    async def _on_mic_chunk(self, chunk: bytes) -> None:
        if self.phase != CallPhase.CONNECTED or self.paused or self.mic_muted:
            return
        try:
            await self.transport.send_audio(chunk)
        except CallError as e:
            logger.debug(f"Dropped microphone chunk: {e.message}")

    def _set_activity(self, activity: Activity) -> None:
        if self.phase != CallPhase.CONNECTED:
            return
        self.activity = activity
        self._notify()

    async def send_text(self, text: str) -> None:
        """Send a typed user utterance."""
        if self.phase != CallPhase.CONNECTED:
            return
        await self.transport.send_text(text)

    async def pause(self) -> None:
        if self.phase != CallPhase.CONNECTED or self.paused:
            return
        self.paused = True
        if self.microphone:
            self.microphone.mute()
        await self.transport.send_pause()
        self._notify()

    async def resume(self) -> None:
        if self.phase != CallPhase.CONNECTED or not self.paused:
            return
        self.paused = False
        if self.microphone and not self.mic_muted:
            self.microphone.unmute()
        await self.transport.send_resume()
        self._notify()

    def mute_mic(self) -> None:
        if self.mic_muted:
            return
        self.mic_muted = True
        if self.microphone:
            self.microphone.mute()
        self._notify()

    def unmute_mic(self) -> None:
        if not self.mic_muted:
            return
        self.mic_muted = False
        if self.microphone and not self.paused:
            self.microphone.unmute()
        self._notify()

    async def stop(self) -> None:
        """Stop the call. Safe to call from any state, any number of times."""
        self.termination.cancel()
        if self.phase in (CallPhase.IDLE, CallPhase.STOPPED, CallPhase.ERRORED):
            await self._release()
            return
        await self._release()
        self.activity = None
        self.paused = False
        self._set_phase(CallPhase.STOPPED)

    async def _fail(self, error: CallError) -> None:
        if self.phase in (CallPhase.STOPPED, CallPhase.ERRORED, CallPhase.IDLE):
            logger.debug(f"Ignoring {error.code.value} error after the call ended")
            return
        logger.error(f"Call failed with {error.code.value}: {error.message}")
        self.termination.cancel()
        await self._release()
        self.error = error
        self.activity = None
        self.paused = False
        self._set_phase(CallPhase.ERRORED)
        if self.notifier:
            self.notifier.notify(error)
        self.events.emit(EVENT_ERROR, error)

    async def _release(self) -> None:
        """Release transport, microphone and speaker exactly once per call."""
        if self._released:
            return
        self._released = True

        self.bridge.detach()
        if self._unsubscribe_mic is not None:
            self._unsubscribe_mic()
            self._unsubscribe_mic = None

        task = self._listen_task
        self._listen_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        transport = self.transport
        self.transport = None
        if transport is not None:
            if self.phase == CallPhase.CONNECTED:
                try:
                    await transport.send_hangup()
                except CallError as e:
                    logger.debug(f"Could not send hangup: {e.message}")
            await transport.close()

        if self.microphone:
            self.microphone.stop()
        if self.speaker:
            self.speaker.stop()
        self.editor.unlock()

    def status_message(self) -> str:
        """Human-readable status line of the session."""
        if self.phase == CallPhase.ERRORED and self.error:
            return f"Error: {self.error.message or self.error.code.value}"
        if self.phase == CallPhase.STARTING:
            return "Starting call..."
        if self.phase == CallPhase.CONNECTED:
            if self.paused:
                return "Call paused"
            if self.activity == Activity.USER_SPEAKING:
                return "You are speaking..."
            if self.activity == Activity.LISTENING:
                return "Listening for your voice"
            if self.activity == Activity.PROCESSING:
                return "Processing your message"
            if self.activity == Activity.ASSISTANT_SPEAKING:
                return "Assistant is speaking"
            return "Connected and ready"
        return "Ready to start voice conversation"
