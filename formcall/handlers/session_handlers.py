"""
Handles the parameter handshake that opens every call.

The client sends the call parameters, including the form schema, as the very
first payload on the websocket. The server suspends the connection until that
payload arrives and validates it before any conversation is set up. Invalid or
missing parameters end the call with an explicit error message.
"""

import asyncio
import logging

from fastapi import WebSocket
from pydantic import ValidationError

from formcall.config.constants import (
    CLOSE_CODE_BAD_PARAMS,
    HANDSHAKE_TIMEOUT,
    LOGGER_NAME,
)
from formcall.errors import (
    CallConnectionError,
    CallError,
    HandshakeTimeoutError,
    HandshakeValidationError,
)
from formcall.models.message_schemas import CallErrorMessage, CallParams

logger = logging.getLogger(LOGGER_NAME)

# Internal error close code for failures after the handshake
CLOSE_CODE_INTERNAL_ERROR = 1011


async def wait_for_params(
    websocket: WebSocket, timeout: float = HANDSHAKE_TIMEOUT
) -> CallParams:
    """
    Wait for the handshake payload and validate it.

    Args:
        websocket: The accepted websocket connection
        timeout: Seconds to wait for the payload

    Returns:
        The validated call parameters

    Raises:
        HandshakeTimeoutError: If no payload arrives within the timeout
        HandshakeValidationError: If the payload is not valid call parameters
        CallConnectionError: If the client disconnects before sending it
    """
    try:
        message = await asyncio.wait_for(websocket.receive(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"No call parameters received within {timeout}s")
        raise HandshakeTimeoutError("Call parameters were not received in time")

    if message.get("type") == "websocket.disconnect":
        raise CallConnectionError("Client disconnected before sending call parameters")

    data = message.get("text")
    if data is None:
        raise HandshakeValidationError("Call parameters must be sent as a JSON text message")

    try:
        params = CallParams.model_validate_json(data)
    except ValidationError as e:
        logger.error(f"Invalid call parameters: {e}")
        raise HandshakeValidationError(f"Invalid call parameters: {e.error_count()} error(s)")

    field_count = len(params.formSchema.fields) if params.formSchema else 0
    logger.info(f"Received call parameters with {field_count} form field(s)")
    return params


async def handle_error(websocket: WebSocket, error: CallError) -> None:
    """
    Report an error to the client and close the connection.

    Handshake errors close with the bad-parameters code, anything else with
    the internal error code.
    """
    response = CallErrorMessage(code=error.code, reason=error.message or error.code.value)
    if isinstance(error, (HandshakeValidationError, HandshakeTimeoutError)):
        close_code = CLOSE_CODE_BAD_PARAMS
    else:
        close_code = CLOSE_CODE_INTERNAL_ERROR

    logger.warning(f"Ending call with {error.code.value} error: {response.reason}")
    try:
        await websocket.send_text(response.model_dump_json())
        await websocket.close(code=close_code, reason=error.code.value)
    except (RuntimeError, OSError) as e:
        logger.info(f"Connection already closed while reporting error: {e}")
