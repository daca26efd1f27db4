"""
WebSocket transport for the client side of a call.

This module provides the client used by a CallSession to reach the call server:
it opens the websocket, sends the call parameters as the first payload, waits
for the server to accept the call, and then delivers server messages and
assistant audio to the session. Transport failures are translated into the
CallError taxonomy.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    InvalidStatus,
    InvalidURI,
    WebSocketException,
)

from formcall.config.constants import (
    LOGGER_NAME,
    MESSAGE_TYPE_CALL_ERROR,
    MESSAGE_TYPE_CALL_READY,
)
from formcall.errors import (
    BadRequestError,
    CallConnectionError,
    MissingUrlError,
    error_from_code,
    error_from_http_status,
)
from formcall.models.message_schemas import (
    CallHangupMessage,
    CallParams,
    CallPauseMessage,
    CallResumeMessage,
    ServerMessage,
    UserTextMessage,
    parse_server_message,
)

logger = logging.getLogger(LOGGER_NAME)

MessageHandler = Callable[[ServerMessage], Union[None, Awaitable[None]]]
AudioHandler = Callable[[bytes], Union[None, Awaitable[None]]]


class CallClient:
    """
    Client for the call websocket.

    A client serves exactly one call: create a new one for every start.
    """

    def __init__(self, url: str):
        """
        Initialize the call client.

        Args:
            url: The websocket URL of the call endpoint
        """
        self.url = url
        self.websocket = None
        self._closed = False

    async def connect(self) -> None:
        """
        Establish the connection to the call server.

        Raises:
            CallError: Classified connection failure
        """
        if not self.url:
            raise MissingUrlError("Server URL is missing")
        try:
            self.websocket = await websockets.connect(self.url)
        except InvalidStatus as e:
            status = e.response.status_code
            logger.error(f"Call server rejected the connection with HTTP {status}")
            raise error_from_http_status(status, f"HTTP {status}")
        except InvalidURI as e:
            logger.error(f"Invalid call server URL: {e}")
            raise BadRequestError(f"Invalid server URL: {self.url}")
        except (OSError, WebSocketException) as e:
            logger.error(f"Failed to connect to call server: {e}")
            raise CallConnectionError(str(e))

        if self._closed:
            # close() ran while the handshake was in flight
            logger.info("Call client closed during connect, dropping connection")
            websocket, self.websocket = self.websocket, None
            try:
                await websocket.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error while closing call connection: {e}")
            return
        logger.info(f"Connected to call server at {self.url}")

    async def _send(self, payload: str) -> None:
        if not self.websocket:
            raise CallConnectionError("Not connected")
        try:
            await self.websocket.send(payload)
        except ConnectionClosed as e:
            raise CallConnectionError(f"Connection closed: {e}")

    async def send_params(self, params: CallParams) -> None:
        """Send the handshake payload. Must be the first message of the call."""
        await self._send(json.dumps(params.to_payload()))
        field_count = len(params.formSchema.fields) if params.formSchema else 0
        logger.info(f"Sent call parameters with {field_count} form field(s)")

    async def wait_until_ready(self) -> None:
        """
        Wait for the server to accept the call.

        Raises:
            CallError: If the server rejects the call or the connection drops
        """
        while True:
            message = await self._recv()
            if isinstance(message, bytes):
                continue
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                logger.warning(f"Received invalid JSON: {message[:100]}...")
                continue
            message_type = data.get("type")
            if message_type == MESSAGE_TYPE_CALL_READY:
                logger.info("Call accepted by server")
                return
            if message_type == MESSAGE_TYPE_CALL_ERROR:
                logger.error(f"Call rejected: {data}")
                raise error_from_code(data.get("code", ""), data.get("reason", ""))
            logger.debug(f"Ignoring {message_type} before call is ready")

    async def _recv(self) -> Any:
        if not self.websocket:
            raise CallConnectionError("Not connected")
        try:
            return await self.websocket.recv()
        except ConnectionClosed as e:
            raise CallConnectionError(f"Connection closed: {e}")

    async def send_text(self, text: str) -> None:
        await self._send(UserTextMessage(text=text).model_dump_json())

    async def send_audio(self, chunk: bytes) -> None:
        if not self.websocket:
            return
        await self._send(chunk)

    async def send_pause(self) -> None:
        await self._send(CallPauseMessage().model_dump_json())

    async def send_resume(self) -> None:
        await self._send(CallResumeMessage().model_dump_json())

    async def send_hangup(self) -> None:
        await self._send(CallHangupMessage().model_dump_json())

    async def listen(
        self,
        message_handler: MessageHandler,
        audio_handler: Optional[AudioHandler] = None,
    ) -> None:
        """
        Deliver server messages until the connection closes.

        Returns normally when the connection is closed cleanly.

        Raises:
            CallConnectionError: If the connection drops
        """
        if not self.websocket:
            raise CallConnectionError("Not connected")

        try:
            async for message in self.websocket:
                if isinstance(message, bytes):
                    if audio_handler:
                        result = audio_handler(message)
                        if result is not None:
                            await result
                    continue
                try:
                    typed_message = parse_server_message(message)
                except ValidationError as e:
                    logger.error(f"Invalid message from server: {e}")
                    continue
                result = message_handler(typed_message)
                if result is not None:
                    await result
        except ConnectionClosedOK:
            logger.info("Call connection closed by server")
        except ConnectionClosed as e:
            logger.warning(f"Call connection lost: {e}")
            raise CallConnectionError(f"Connection lost: {e}")

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.websocket:
            try:
                await self.websocket.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error while closing call connection: {e}")
            logger.info("Closed call connection")
        self.websocket = None
