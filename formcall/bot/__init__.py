"""
Bot module for driving the voice agent of a form call.

Key components:
- instructions: Builds the agent's system instruction from the form schema.
- tools: Declares the updateFormField and endCall tools registered with the agent.
- contracts: Abstract interfaces of the speech and language-model collaborators.
- realtime_api: A ConversationalAgent backed by the OpenAI Realtime API.
- call_server: Serves a single call, relaying between the client and the agent.

Usage examples:
```python
from formcall.bot import CallServer, RealtimeAgent

server = CallServer(websocket, params, agent_factory=RealtimeAgent)
await server.start()
try:
    await server.run()
finally:
    await server.close()
```
"""

from formcall.bot.call_server import CallServer
from formcall.bot.contracts import AgentTool, ConversationalAgent, SpeechToText, TextToSpeech
from formcall.bot.instructions import build_instructions
from formcall.bot.realtime_api import RealtimeAgent
from formcall.bot.tools import build_form_tools, register_tools

__all__ = [
    "AgentTool",
    "CallServer",
    "ConversationalAgent",
    "RealtimeAgent",
    "SpeechToText",
    "TextToSpeech",
    "build_form_tools",
    "build_instructions",
    "register_tools",
]
