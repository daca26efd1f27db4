"""
Client module for taking part in a voice form call.

This module provides everything a client application needs to run a call
against the call server and keep its form in sync with the conversation.

Key components:
- call_session: The CallSession state machine (Idle, Starting, Connected,
  Stopped, Errored) with its activity, pause and mute flags.
- tool_bridge: Applies the agent's updateFormField invocations to the form and
  records them in the transcript.
- termination: Delays the end of a call until the assistant's last words have
  been played.
- notifications: Transient, auto-dismissed error notifications.
- audio: Abstract microphone and speaker devices supplied by the host application.

Usage examples:
```python
from formcall.client import CallSession
from formcall.models import FormEditor

editor = FormEditor()
session = CallSession("ws://localhost:8081/call", editor)
session.events.on("state_change", lambda state: print(session.status_message()))

await session.start()
await session.send_text("My name is Ada Lovelace")
...
await session.stop()
```
"""

from formcall.client.audio import Microphone, Speaker
from formcall.client.call_session import Activity, CallPhase, CallSession, CallState
from formcall.client.notifications import ErrorNotifier, Notification
from formcall.client.termination import GracefulTerminationController
from formcall.client.tool_bridge import ToolCallBridge

__all__ = [
    "Activity",
    "CallPhase",
    "CallSession",
    "CallState",
    "ErrorNotifier",
    "GracefulTerminationController",
    "Microphone",
    "Notification",
    "Speaker",
    "ToolCallBridge",
]
