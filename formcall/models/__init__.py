"""
Models module for data structures and state in the voice form call application.

Key components:
- form_schema: Pydantic models for form fields and the FormEditor that owns the
  live schema, enforcing the lock that protects the form's structure during a call.
- conversation: The append-only conversation transcript and its tagged entries.
- message_schemas: Pydantic models for the handshake parameters and every message
  of the call websocket protocol.
- openai_schemas: Type-safe models for the OpenAI Realtime API events used by the
  conversational agent.

Usage examples:
```python
from formcall.models import CallParams, FormEditor

editor = FormEditor()
editor.add_field()

params = CallParams(formSchema=editor.schema)
await websocket.send(json.dumps(params.to_payload()))
```
"""

from formcall.models.conversation import (
    ConversationEntry,
    ConversationLog,
    MessageEntry,
    ToolInvocationEntry,
    ToolResultEntry,
)
from formcall.models.form_schema import (
    DEFAULT_FIELDS,
    FieldType,
    FormEditor,
    FormField,
    FormSchema,
    default_schema,
)
from formcall.models.message_schemas import (
    AssistantMessage,
    AssistantSpeechEndMessage,
    AssistantSpeechStartMessage,
    BaseMessage,
    CallEndMessage,
    CallErrorMessage,
    CallHangupMessage,
    CallParams,
    CallPauseMessage,
    CallReadyMessage,
    CallResumeMessage,
    ClientMessage,
    ServerMessage,
    ToolCallMessage,
    UserSpeechEndMessage,
    UserSpeechStartMessage,
    UserTextMessage,
    UserTranscriptMessage,
)
from formcall.models.openai_schemas import MessageRole
