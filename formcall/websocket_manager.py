"""
WebSocket connection manager for voice form calls.

This module implements the server side of the call websocket protocol:
- Accept the connection
- Wait for and validate the call parameters (handshake)
- Hand the connection to a CallServer for the rest of the call
- Report errors and clean up when the call ends

Every connection is handled in its own coroutine with its own handshake
timeout, so a client that never sends parameters only holds its own connection.
"""

import logging
from typing import Callable, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from formcall.bot.call_server import AgentFactory, CallServer
from formcall.bot.contracts import SpeechToText, TextToSpeech
from formcall.config.constants import CLOSE_CODE_NORMAL, HANDSHAKE_TIMEOUT, LOGGER_NAME
from formcall.errors import CallError, ServerError
from formcall.handlers.session_handlers import handle_error, wait_for_params

logger = logging.getLogger(LOGGER_NAME)


class CallWebSocketManager:
    """Manages call websocket connections from handshake to teardown."""

    def __init__(
        self,
        agent_factory: AgentFactory,
        stt_factory: Optional[Callable[[], SpeechToText]] = None,
        tts_factory: Optional[Callable[[], TextToSpeech]] = None,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        generate_first_message: bool = True,
        auto_end_call: bool = True,
    ):
        self.agent_factory = agent_factory
        self.stt_factory = stt_factory
        self.tts_factory = tts_factory
        self.handshake_timeout = handshake_timeout
        self.generate_first_message = generate_first_message
        self.auto_end_call = auto_end_call
        self.active_calls = 0

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a call connection throughout its lifecycle."""
        await websocket.accept()
        logger.info("New voice connection established")

        try:
            params = await wait_for_params(websocket, timeout=self.handshake_timeout)
        except CallError as e:
            await handle_error(websocket, e)
            return

        server = CallServer(
            websocket,
            params,
            agent_factory=self.agent_factory,
            stt=self.stt_factory() if self.stt_factory else None,
            tts=self.tts_factory() if self.tts_factory else None,
            generate_first_message=self.generate_first_message,
            auto_end_call=self.auto_end_call,
        )
        self.active_calls += 1
        closed = False
        try:
            await server.start()
            await server.run()
            closed = server.disconnected
        except CallError as e:
            await handle_error(websocket, e)
            closed = True
        except WebSocketDisconnect:
            logger.info("Voice connection closed by client")
            closed = True
        except Exception as e:
            logger.error(f"Error setting up voice connection: {e}", exc_info=True)
            await handle_error(websocket, ServerError(str(e)))
            closed = True
        finally:
            self.active_calls -= 1
            await server.close()
            if not closed:
                await websocket.close(code=CLOSE_CODE_NORMAL)
            logger.info("Voice connection closed")
