"""
FastAPI server for voice form calls.

This module initializes and configures the FastAPI application that serves the
call websocket. A client opens the websocket, sends the form schema as the call
parameters, and then talks with an agent that fills the form through tool
invocations forwarded back over the same connection.
"""

import os
from datetime import datetime, timezone
from pathlib import Path

import dotenv
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from formcall.bot.realtime_api import RealtimeAgent
from formcall.config.constants import CALL_ENDPOINT
from formcall.config.logging_config import configure_logging
from formcall.websocket_manager import CallWebSocketManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

logger = configure_logging()

PORT = int(os.getenv("PORT", "8081"))
HOST = os.getenv("HOST", "0.0.0.0")
AUTO_END_CALL = os.getenv("AUTO_END_CALL", "true").lower() == "true"
GENERATE_FIRST_MESSAGE = os.getenv("GENERATE_FIRST_MESSAGE", "true").lower() == "true"

app = FastAPI(
    title="Voice Form Call",
    description="Fill out structured forms by talking to a voice agent",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

websocket_manager = CallWebSocketManager(
    agent_factory=RealtimeAgent,
    generate_first_message=GENERATE_FIRST_MESSAGE,
    auto_end_call=AUTO_END_CALL,
)


@app.websocket(CALL_ENDPOINT)
async def call_endpoint(websocket: WebSocket):
    """WebSocket endpoint for voice form calls.

    The first message must be the call parameters, {"formSchema": {"fields": [...]}}.
    Everything after it follows the call protocol defined in
    formcall.models.message_schemas.
    """
    await websocket_manager.handle_websocket(websocket)


@app.get("/health")
async def health_check():
    """Liveness endpoint for load balancers and monitoring tools."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Voice Form Call",
        "description": "Fill out structured forms by talking to a voice agent",
        "version": "1.0.0",
        "active_calls": websocket_manager.active_calls,
        "endpoints": {
            CALL_ENDPOINT: "WebSocket endpoint for voice form calls",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    logger.info(f"WebSocket endpoint: ws://{HOST}:{PORT}{CALL_ENDPOINT}")
    uvicorn.run(app, host=HOST, port=PORT, http="h11")
