"""
Client half of the tool-call bridge.

The agent fills the form by invoking updateFormField on the server. The server
forwards every invocation to the client, where the bridge applies the value to
the live form and records the invocation in the conversation transcript.
"""

import logging
from typing import Callable, Optional

from formcall.config.constants import LOGGER_NAME, TOOL_UPDATE_FORM_FIELD
from formcall.events import EventEmitter
from formcall.models.conversation import ConversationLog
from formcall.models.form_schema import FormEditor, FormField
from formcall.models.message_schemas import ToolCallMessage

logger = logging.getLogger(LOGGER_NAME)

EVENT_TOOL_CALL = "tool_call"
EVENT_FORM_UPDATE = "form_update"


class ToolCallBridge:
    """
    Applies agent tool invocations to the form and the transcript.

    Invocations are processed one by one in delivery order. Every invocation
    appends exactly one invocation entry and one result entry to the
    transcript, whether or not a field matched.
    """

    def __init__(self, editor: FormEditor, conversation: ConversationLog):
        self.editor = editor
        self.conversation = conversation
        self._events: Optional[EventEmitter] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self, events: EventEmitter) -> None:
        """Subscribe to the tool-call stream of a session."""
        if self.attached:
            return
        self._events = events
        self._unsubscribe = events.on(EVENT_TOOL_CALL, self.handle_tool_call)

    def detach(self) -> None:
        """Unsubscribe from the session's tool-call stream."""
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._events = None

    def handle_tool_call(self, message: ToolCallMessage) -> Optional[FormField]:
        """
        Apply a single tool invocation.

        Returns:
            The updated field, or None when nothing in the form changed
        """
        updated = None
        if message.toolName == TOOL_UPDATE_FORM_FIELD:
            updated = self._update_field(message.parameters)

        self.conversation.add_tool_call(message.toolName, message.parameters, {})

        if updated is not None and self._events is not None:
            self._events.emit(EVENT_FORM_UPDATE, updated)
        return updated

    def _update_field(self, parameters: dict) -> Optional[FormField]:
        field_name = parameters.get("fieldName")
        value = parameters.get("value")
        if not isinstance(field_name, str) or not isinstance(value, str):
            logger.warning(f"Ignoring malformed {TOOL_UPDATE_FORM_FIELD} parameters: {parameters}")
            return None

        field = self.editor.apply_tool_value(field_name, value)
        if field is None:
            logger.warning(f"No form field named {field_name!r}, dropping update")
            return None

        logger.info(f"Form field {field_name!r} updated by agent")
        return field
