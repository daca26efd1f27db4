"""
Voice Form Call - conversational form filling over a realtime voice session

This package lets a person fill out a structured form by talking to a voice
agent. The agent asks questions, extracts values and pushes them live into the
form while the call is established, paused, resumed and gracefully torn down
over a persistent WebSocket connection.

Architecture Overview:
- FastAPI server exposing the /call WebSocket endpoint
- Session parameter handshake that delivers the form's shape before the conversation
- Agent instructions and tools derived from the form's fields
- Client call session that mirrors the call lifecycle and applies tool calls to the form

Key Components:
- bot: Instruction generator, tool registration, agent adapters and the per-call server
- client: Call session state machine, tool-call bridge, termination controller, notifications
- config: Application-wide configuration, constants, and logging setup
- handlers: Handshake and error handling for the call WebSocket
- models: Form schema, conversation log and wire message definitions
- services: Client transport for the call WebSocket
- websocket_manager: Central handler for call connections

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - PORT: Port to run the server on (default 8081)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Point a client CallSession at ws://your-server:8081/call
"""
