import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, InvalidStatus, InvalidURI
from websockets.frames import Close

from formcall.errors import (
    AuthError,
    BadRequestError,
    CallConnectionError,
    HandshakeTimeoutError,
    MissingUrlError,
    NotFoundError,
    ServerError,
)
from formcall.models.form_schema import default_schema
from formcall.models.message_schemas import AssistantMessage, CallParams, ToolCallMessage
from formcall.services.call_client import CallClient


def invalid_status(status):
    response = MagicMock()
    response.status_code = status
    return InvalidStatus(response)


def sent(ws):
    return [c[0][0] for c in ws.send.call_args_list]


@pytest.fixture
def client():
    client = CallClient("ws://localhost:8081/call")
    client.websocket = AsyncMock()
    return client


@pytest.mark.asyncio
class TestConnect:

    async def test_connect_success(self):
        mock_ws = AsyncMock()
        client = CallClient("ws://localhost:8081/call")

        with patch("websockets.connect", new=AsyncMock(return_value=mock_ws)) as mock_connect:
            await client.connect()

        mock_connect.assert_called_once_with("ws://localhost:8081/call")
        assert client.websocket == mock_ws

    async def test_close_during_connect_drops_connection(self):
        mock_ws = AsyncMock()
        client = CallClient("ws://localhost:8081/call")
        gate = asyncio.Event()

        async def slow_connect(url):
            await gate.wait()
            return mock_ws

        with patch("websockets.connect", new=slow_connect):
            pending = asyncio.create_task(client.connect())
            await asyncio.sleep(0)
            await client.close()
            gate.set()
            await pending

        mock_ws.close.assert_awaited_once()
        assert client.websocket is None

    async def test_missing_url(self):
        with pytest.raises(MissingUrlError):
            await CallClient("").connect()

    @pytest.mark.parametrize(
        "status, error_cls",
        [(401, AuthError), (403, AuthError), (404, NotFoundError), (400, BadRequestError), (502, ServerError)],
    )
    async def test_http_status_classification(self, status, error_cls):
        client = CallClient("ws://localhost:8081/call")
        with patch("websockets.connect", new=AsyncMock(side_effect=invalid_status(status))):
            with pytest.raises(error_cls):
                await client.connect()

    async def test_invalid_uri(self):
        client = CallClient("localhost")
        with patch("websockets.connect", new=AsyncMock(side_effect=InvalidURI("localhost", "no scheme"))):
            with pytest.raises(BadRequestError):
                await client.connect()

    async def test_refused(self):
        client = CallClient("ws://localhost:1/call")
        with patch("websockets.connect", new=AsyncMock(side_effect=ConnectionRefusedError())):
            with pytest.raises(CallConnectionError):
                await client.connect()


@pytest.mark.asyncio
class TestHandshake:

    async def test_send_params(self, client):
        await client.send_params(CallParams(formSchema=default_schema()))

        payload = json.loads(sent(client.websocket)[0])
        assert list(payload) == ["formSchema"]
        assert len(payload["formSchema"]["fields"]) == 6

    async def test_wait_until_ready(self, client):
        client.websocket.recv.side_effect = [b"\x00", '{"type": "call.ready"}']

        await client.wait_until_ready()

    async def test_wait_until_ready_rejected(self, client):
        client.websocket.recv.side_effect = [
            '{"type": "call.error", "code": "MissingParams", "reason": "late"}'
        ]

        with pytest.raises(HandshakeTimeoutError) as exc_info:
            await client.wait_until_ready()
        assert exc_info.value.message == "late"

    async def test_wait_until_ready_connection_closed(self, client):
        client.websocket.recv.side_effect = ConnectionClosedError(Close(1006, ""), None)

        with pytest.raises(CallConnectionError):
            await client.wait_until_ready()

    async def test_send_without_connection(self):
        with pytest.raises(CallConnectionError):
            await CallClient("ws://localhost:8081/call").send_hangup()


@pytest.mark.asyncio
class TestListen:

    async def test_dispatches_messages_and_audio(self, client):
        client.websocket.__aiter__.return_value = [
            '{"type": "assistant.message", "text": "Hi"}',
            b"audio",
            '{"type": "bogus"}',
            '{"type": "tool.call", "toolName": "updateFormField", "parameters": {}}',
        ]
        messages = []
        audio = []

        await client.listen(messages.append, audio.append)

        assert isinstance(messages[0], AssistantMessage)
        assert isinstance(messages[1], ToolCallMessage)
        assert audio == [b"audio"]

    async def test_awaits_async_handlers(self, client):
        client.websocket.__aiter__.return_value = ['{"type": "call.end"}']
        handler = AsyncMock()

        await client.listen(handler)

        handler.assert_awaited_once()

    async def test_clean_close_returns(self, client):
        client.websocket.__aiter__.side_effect = ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)

        await client.listen(MagicMock())

    async def test_connection_lost_raises(self, client):
        client.websocket.__aiter__.side_effect = ConnectionClosedError(Close(1006, ""), None)

        with pytest.raises(CallConnectionError):
            await client.listen(MagicMock())


@pytest.mark.asyncio
async def test_control_messages(client):
    await client.send_text("Ada")
    await client.send_pause()
    await client.send_resume()
    await client.send_hangup()
    await client.send_audio(b"chunk")

    messages = sent(client.websocket)
    assert [json.loads(m)["type"] for m in messages[:4]] == [
        "user.text",
        "call.pause",
        "call.resume",
        "call.hangup",
    ]
    assert messages[4] == b"chunk"


@pytest.mark.asyncio
async def test_close_is_idempotent(client):
    ws = client.websocket

    await client.close()
    await client.close()

    ws.close.assert_called_once()
    assert client.websocket is None
