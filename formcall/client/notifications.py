"""
Transient error notifications shown to the user.

Errors that end or prevent a call are displayed for a fixed duration with a
message chosen by error code, then dismissed automatically.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from formcall.config.constants import ERROR_DISPLAY_SECONDS, LOGGER_NAME
from formcall.errors import CallError, ErrorCode
from formcall.events import EventEmitter

logger = logging.getLogger(LOGGER_NAME)

EVENT_SHOW = "show"
EVENT_DISMISS = "dismiss"

ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.MIC: "Microphone access denied. Please enable microphone permissions and try again.",
    ErrorCode.CONNECTION: "Connection lost. Please check your internet connection and server status.",
    ErrorCode.UNAUTHORIZED: "Authentication failed. Please check your credentials.",
    ErrorCode.INTERNAL_SERVER: "Server error occurred. Please try again later.",
    ErrorCode.MISSING_URL: "Server URL is missing. Please check your configuration.",
    ErrorCode.MISSING_PARAMS: "The form could not be sent to the server. Please try again.",
    ErrorCode.BAD_REQUEST: "Invalid request. Please check your settings.",
    ErrorCode.NOT_FOUND: "Voice server not found. Please verify the server URL.",
}

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred."


def error_message(code: ErrorCode, message: str = "") -> str:
    """Human-readable message for an error code."""
    return ERROR_MESSAGES.get(code) or message or DEFAULT_ERROR_MESSAGE


class Notification(BaseModel):
    code: ErrorCode
    title: str
    message: str


class ErrorNotifier:
    """Shows at most one error notification at a time, auto-dismissed."""

    def __init__(self, display_seconds: float = ERROR_DISPLAY_SECONDS):
        self.display_seconds = display_seconds
        self.current: Optional[Notification] = None
        self.events = EventEmitter()
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None

    def on_show(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        return self.events.on(EVENT_SHOW, listener)

    def on_dismiss(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self.events.on(EVENT_DISMISS, listener)

    def notify(self, error: CallError) -> Notification:
        """Display an error, replacing any notification already shown."""
        notification = Notification(
            code=error.code,
            title=f"{error.code.value} Error",
            message=error_message(error.code, error.message),
        )
        self._cancel_timer()
        self.current = notification
        logger.info(f"Showing error notification: {notification.title}")
        self.events.emit(EVENT_SHOW, notification)

        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(self.display_seconds, self.dismiss)
        return notification

    def dismiss(self) -> None:
        self._cancel_timer()
        if self.current is None:
            return
        self.current = None
        self.events.emit(EVENT_DISMISS)

    def _cancel_timer(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
