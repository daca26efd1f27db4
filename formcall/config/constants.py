"""
Constants and configuration values used throughout the application.

This module defines constants that are shared by the server and the client side
of a call, providing a centralized location for the wire protocol vocabulary and
the timing defaults of the call lifecycle.
"""

import os

# Logger name used throughout the application
LOGGER_NAME = "form_call"

# Endpoint path of the call websocket
CALL_ENDPOINT = "/call"

# Default OpenAI model for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"

# Seconds the server waits for the handshake payload
HANDSHAKE_TIMEOUT = float(os.getenv("HANDSHAKE_TIMEOUT", "3"))

# Seconds between the end-of-call signal and the playback check
END_CALL_DELAY = 5.0

# Upper bound on waiting for playback to finish after an end-of-call signal
END_CALL_PLAYBACK_TIMEOUT = 60.0

# Seconds an error notification stays visible
ERROR_DISPLAY_SECONDS = 10.0

# Tool names
TOOL_UPDATE_FORM_FIELD = "updateFormField"
TOOL_END_CALL = "endCall"

# Websocket close codes
CLOSE_CODE_NORMAL = 1000
CLOSE_CODE_BAD_PARAMS = 4400

# Server -> client message types
MESSAGE_TYPE_CALL_READY = "call.ready"
MESSAGE_TYPE_CALL_ERROR = "call.error"

# Client -> server message types
MESSAGE_TYPE_USER_TEXT = "user.text"
MESSAGE_TYPE_CALL_PAUSE = "call.pause"
MESSAGE_TYPE_CALL_RESUME = "call.resume"
MESSAGE_TYPE_CALL_HANGUP = "call.hangup"
