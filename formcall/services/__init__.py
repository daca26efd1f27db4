"""
Services module for the client transport of a voice form call.

Key components:
- call_client: Client for the call WebSocket. It sends the handshake payload,
  waits for the server to accept the call, delivers server messages and
  assistant audio, and classifies connection failures into call errors.

Usage examples:
```python
from formcall.models import CallParams, default_schema
from formcall.services.call_client import CallClient

client = CallClient("ws://localhost:8081/call")
await client.connect()
await client.send_params(CallParams(formSchema=default_schema()))
await client.wait_until_ready()
await client.listen(print)
await client.close()
```
"""

# Services module initialization
