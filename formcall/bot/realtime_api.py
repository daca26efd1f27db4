import asyncio
import json
import logging
import os
import time
import traceback
from typing import Any, Dict, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from formcall.bot.contracts import EVENT_ERROR, EVENT_MESSAGE, ConversationalAgent
from formcall.config.constants import DEFAULT_REALTIME_MODEL, LOGGER_NAME, TOOL_END_CALL
from formcall.errors import AuthError, CallConnectionError, CallError, ServerError
from formcall.models.openai_schemas import (
    RealtimeErrorMessage,
    RealtimeFunctionCall,
    RealtimeSessionConfig,
    RealtimeTextDone,
    RealtimeTool,
)

logger = logging.getLogger(LOGGER_NAME)

REALTIME_URL = "wss://api.openai.com/v1/realtime"
CONNECTION_TIMEOUT = 30  # seconds

WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB
WS_PING_INTERVAL = 5  # 5 seconds between pings


class RealtimeAgent(ConversationalAgent):
    """
    Conversational agent backed by the OpenAI Realtime API in text modality.

    User turns are sent as conversation items, assistant text is emitted as
    message events, and function calls are dispatched to the registered tools
    with their output returned to the model.
    """

    def __init__(
        self,
        instructions: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ):
        super().__init__(instructions)
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL)
        self.ws = None
        self._recv_task: Optional[asyncio.Task] = None
        self._pending_tool_outputs = False
        self._call_ended = False
        self._is_closing = False
        logger.info(f"RealtimeAgent initialized with model: {self.model}")

    def session_config(self) -> RealtimeSessionConfig:
        """Build the session configuration from the instructions and tools."""
        return RealtimeSessionConfig(
            instructions=self.instructions,
            tools=[
                RealtimeTool(
                    name=tool.name,
                    description=tool.description,
                    parameters=tool.parameters,
                )
                for tool in self.tools.values()
            ],
        )

    async def connect(self) -> None:
        """
        Connect to the Realtime API and configure the session.

        Raises:
            AuthError: If no API key is configured
            CallConnectionError: If the connection cannot be established
        """
        if not self.api_key:
            logger.error("OPENAI_API_KEY environment variable not set")
            raise AuthError("OPENAI_API_KEY environment variable not set")

        url = f"{REALTIME_URL}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(
                f"WebSocket connection established in {time.time() - connection_start:.2f} seconds"
            )
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)")
            raise CallConnectionError("Timeout connecting to the agent")
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            raise CallConnectionError(f"Failed to connect to the agent: {e}")

        await self._send_event(
            {"type": "session.update", "session": self.session_config().model_dump()}
        )
        self._recv_task = asyncio.create_task(self._recv_loop())
        logger.info("Successfully connected to OpenAI Realtime API")

    async def _send_event(self, event: Dict[str, Any]) -> None:
        if self.ws is None:
            logger.warning(f"Cannot send {event.get('type')} - agent not connected")
            return
        await self.ws.send(json.dumps(event))
        logger.debug(f"Sent realtime event: {event.get('type')}")

    async def answer(self, text: str) -> None:
        await self._send_event(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "message",
                    "role": "user",
                    "content": [{"type": "input_text", "text": text}],
                },
            }
        )
        await self._send_event({"type": "response.create"})

    async def greet(self) -> None:
        await self._send_event({"type": "response.create"})

    async def _recv_loop(self) -> None:
        """Receive events from the Realtime API until the connection closes."""
        try:
            async for message in self.ws:
                if isinstance(message, bytes):
                    logger.debug(f"Ignoring binary frame of {len(message)} bytes")
                    continue
                try:
                    event = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {message[:100]}...")
                    continue
                await self.handle_event(event)
        except ConnectionClosedOK:
            logger.info("Realtime connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"Realtime connection closed unexpectedly: {e}")
            await self._report_failure(CallConnectionError(f"Assistant connection lost: {e}"))
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in receive loop: {e}")
            logger.debug(f"Receive loop error details: {traceback.format_exc()}")
            await self._report_failure(ServerError(f"Assistant failed: {e}"))
            return

        if not self._call_ended:
            await self._report_failure(CallConnectionError("Assistant connection closed"))

    async def _report_failure(self, error: CallError) -> None:
        """Tell listeners the agent can no longer answer, unless it is being closed."""
        if self._is_closing:
            return
        await self.events.emit_async(EVENT_ERROR, error)

    async def handle_event(self, event: Dict[str, Any]) -> None:
        """Dispatch a single Realtime API event."""
        event_type = event.get("type")
        try:
            if event_type == "response.text.done":
                done = RealtimeTextDone(**event)
                if done.text.strip():
                    await self.events.emit_async(EVENT_MESSAGE, done.text)

            elif event_type == "response.function_call_arguments.done":
                call = RealtimeFunctionCall(**event)
                output = await self.invoke_tool(call.name, call.arguments)
                if call.name == TOOL_END_CALL:
                    self._call_ended = True
                await self._send_event(
                    {
                        "type": "conversation.item.create",
                        "item": {
                            "type": "function_call_output",
                            "call_id": call.call_id,
                            "output": json.dumps(output),
                        },
                    }
                )
                self._pending_tool_outputs = True

            elif event_type == "response.done":
                # The model continues talking after its tool outputs are in
                if self._pending_tool_outputs and not self._call_ended:
                    self._pending_tool_outputs = False
                    await self._send_event({"type": "response.create"})

            elif event_type == "error":
                error = RealtimeErrorMessage(**event)
                logger.error(f"Received error from OpenAI: {error.message}")

            else:
                logger.debug(f"Received message of type: {event_type}")
        except ValidationError as e:
            logger.error(f"Invalid {event_type} event: {e}")

    async def close(self) -> None:
        """Close the Realtime connection and cancel the receive task."""
        if self._is_closing:
            return
        logger.info("Closing OpenAI Realtime agent")
        self._is_closing = True

        if self._recv_task:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass

        if self.ws:
            await self.ws.close()
            self.ws = None
        await super().close()
