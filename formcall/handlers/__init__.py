"""
Handlers module for the call websocket protocol.

Key components:
- session_handlers: The parameter handshake that opens every call, and the
  error reporting that closes a call the server cannot serve.

Usage examples:
```python
from formcall.errors import CallError
from formcall.handlers.session_handlers import handle_error, wait_for_params

@app.websocket("/call")
async def call_endpoint(websocket: WebSocket):
    await websocket.accept()
    try:
        params = await wait_for_params(websocket)
    except CallError as e:
        await handle_error(websocket, e)
        return
```
"""

# Handlers module initialization
