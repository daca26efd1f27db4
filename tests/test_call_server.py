import json
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket

from formcall.bot.call_server import CallServer
from formcall.bot.contracts import (
    EVENT_SPEECH_END,
    EVENT_SPEECH_START,
    ConversationalAgent,
    SpeechToText,
    TextToSpeech,
)
from formcall.errors import CallConnectionError, ServerError
from formcall.models.form_schema import default_schema
from formcall.models.message_schemas import CallParams


class FakeAgent(ConversationalAgent):
    """Agent that records what it was asked and echoes a canned reply."""

    def __init__(self, instructions):
        super().__init__(instructions)
        self.answers = []
        self.greeted = False
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    async def answer(self, text):
        self.answers.append(text)
        await self.events.emit_async("message", f"You said {text}")

    async def greet(self):
        self.greeted = True

    async def close(self):
        self.closed = True
        await super().close()


class FakeSpeechToText(SpeechToText):
    def __init__(self):
        super().__init__()
        self.chunks = []

    async def process_audio(self, chunk):
        self.chunks.append(chunk)


class FakeTextToSpeech(TextToSpeech):
    async def speak(self, text):
        yield b"audio-1"
        yield b"audio-2"


def sent_messages(websocket):
    return [json.loads(c[0][0]) for c in websocket.send_text.call_args_list]


def text_frame(payload):
    return {"type": "websocket.receive", "text": json.dumps(payload)}


@pytest.fixture
def websocket():
    return AsyncMock(spec=WebSocket)


@pytest.fixture
def agents():
    created = []

    def factory(instructions):
        agent = FakeAgent(instructions)
        created.append(agent)
        return agent

    factory.created = created
    return factory


@pytest.mark.asyncio
class TestCallServer:

    async def test_start_configures_agent_and_sends_ready(self, websocket, agents):
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)

        await server.start()

        agent = agents.created[0]
        assert 'name: "firstName"' in agent.instructions
        assert set(agent.tools) == {"updateFormField", "endCall"}
        assert agent.connected
        assert agent.greeted
        assert sent_messages(websocket) == [{"type": "call.ready"}]

    async def test_start_without_schema_uses_generic_instructions(self, websocket, agents):
        server = CallServer(
            websocket, CallParams(), agent_factory=agents, generate_first_message=False, auto_end_call=False
        )

        await server.start()

        agent = agents.created[0]
        assert agent.instructions.endswith("through conversation.")
        assert agent.tools == {}
        assert not agent.greeted

    async def test_user_text_is_answered(self, websocket, agents):
        websocket.receive.side_effect = [
            text_frame({"type": "user.text", "text": "Paris"}),
            text_frame({"type": "call.hangup"}),
        ]
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await server.run()

        assert agents.created[0].answers == ["Paris"]
        assert sent_messages(websocket)[1:] == [
            {"type": "user.transcript", "text": "Paris"},
            {"type": "assistant.message", "text": "You said Paris"},
        ]
        assert server.hung_up

    async def test_paused_call_ignores_user_text(self, websocket, agents):
        websocket.receive.side_effect = [
            text_frame({"type": "call.pause"}),
            text_frame({"type": "user.text", "text": "ignored"}),
            text_frame({"type": "call.resume"}),
            text_frame({"type": "user.text", "text": "heard"}),
            {"type": "websocket.disconnect", "code": 1000},
        ]
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await server.run()

        assert agents.created[0].answers == ["heard"]
        assert server.disconnected

    async def test_invalid_message_is_skipped(self, websocket, agents):
        websocket.receive.side_effect = [
            {"type": "websocket.receive", "text": "{not json"},
            text_frame({"type": "call.unknown"}),
            text_frame({"type": "call.hangup"}),
        ]
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await server.run()

        assert server.hung_up

    async def test_tool_call_is_forwarded(self, websocket, agents):
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await agents.created[0].invoke_tool("updateFormField", '{"fieldName": "city", "value": "Paris"}')

        assert sent_messages(websocket)[-1] == {
            "type": "tool.call",
            "toolName": "updateFormField",
            "parameters": {"fieldName": "city", "value": "Paris"},
            "output": {},
        }

    async def test_end_call_is_forwarded(self, websocket, agents):
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await agents.created[0].invoke_tool("endCall", "{}")

        assert sent_messages(websocket)[-1] == {"type": "call.end"}

    async def test_audio_goes_to_speech_to_text(self, websocket, agents):
        stt = FakeSpeechToText()
        websocket.receive.side_effect = [
            {"type": "websocket.receive", "bytes": b"chunk"},
            text_frame({"type": "call.hangup"}),
        ]
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents, stt=stt)
        await server.start()

        await server.run()

        assert stt.chunks == [b"chunk"]

    async def test_speech_events_and_transcripts(self, websocket, agents):
        stt = FakeSpeechToText()
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents, stt=stt)
        await server.start()

        await stt.events.emit_async(EVENT_SPEECH_START)
        await stt.events.emit_async(EVENT_SPEECH_END)
        await stt.events.emit_async("transcript", "Ada")

        assert [m["type"] for m in sent_messages(websocket)[1:]] == [
            "user.speechStart",
            "user.speechEnd",
            "user.transcript",
            "assistant.message",
        ]

    async def test_assistant_speech_is_synthesized(self, websocket, agents):
        server = CallServer(
            websocket,
            CallParams(formSchema=default_schema()),
            agent_factory=agents,
            tts=FakeTextToSpeech(),
        )
        await server.start()

        await agents.created[0].events.emit_async("message", "Hello")

        assert [m["type"] for m in sent_messages(websocket)[1:]] == [
            "assistant.message",
            "assistant.speechStart",
            "assistant.speechEnd",
        ]
        assert [c[0][0] for c in websocket.send_bytes.call_args_list] == [b"audio-1", b"audio-2"]

    async def test_close_is_idempotent(self, websocket, agents):
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await server.close()
        await server.close()

        agent = agents.created[0]
        assert agent.closed
        assert agent.events.listener_count("message") == 0

    async def test_agent_failure_ends_call_with_error(self, websocket, agents):
        server = CallServer(websocket, CallParams(formSchema=default_schema()), agent_factory=agents)
        await server.start()

        await agents.created[0].events.emit_async("error", CallConnectionError("Assistant connection lost"))
        await agents.created[0].events.emit_async("error", ServerError("again"))

        assert sent_messages(websocket)[1:] == [
            {"type": "call.error", "code": "Connection", "reason": "Assistant connection lost"}
        ]
        websocket.close.assert_awaited_once_with(code=1011, reason="Connection")
        assert server.hung_up
        assert server.disconnected
