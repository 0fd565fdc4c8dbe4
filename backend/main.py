"""
FastAPI Relay Server for the Aexy Conversation Tutor

Serves a WebSocket endpoint that:
- Fetches user profiles and applies login streak / daily reset bookkeeping
- Opens practice conversations under the daily conversation quota
- Streams tutor replies to the client chunk by chunk
- Cleans up the connection's session on disconnect

Each connection's frames are handled one at a time in arrival order;
different connections are served concurrently on the event loop.
"""

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional, Set
import os
import sys
import logging
import signal

# Add the aexy_tutor package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_paths = [
    os.path.join(project_root, 'aexy_tutor', 'src'),
]

for package_src in package_paths:
    if os.path.exists(package_src):
        if package_src not in sys.path:
            sys.path.insert(0, package_src)
        break

# Setup logging with colors and structured output
from lib.logger import setup_logging, get_logger
from lib.config import get_settings

settings = get_settings()
setup_logging(level=getattr(logging, settings.log_level, logging.INFO), use_colors=True)

# Create main logger
logger = get_logger("backend.main")

from lib.supabase_client import get_supabase_client
from lib.connection import ConnectionEmitter, InvalidMessage, parse_client_message

from openai import AsyncOpenAI

from aexy_tutor.conversation_tutor import ConversationTutor
from aexy_tutor.dialogue_provider import DialogueProvider
from aexy_tutor.events import InboundEvent, OutboundEvent
from aexy_tutor.quota_engine import QuotaEngine
from aexy_tutor.session_registry import SessionRegistry
from aexy_tutor.user_profile_manager import UserProfileManager

SERVICE_NAME = "Aexy Conversation Tutor Relay"
SERVICE_VERSION = "1.0.0"

# Singleton tutor; built on first use so imports don't need credentials
_tutor_instance: Optional[ConversationTutor] = None
_active_connections: Set[str] = set()


def get_tutor_instance() -> ConversationTutor:
    """Get or create the process-wide ConversationTutor."""
    global _tutor_instance
    if _tutor_instance is None:
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY not found in environment variables")
        _tutor_instance = ConversationTutor(
            profile_manager=UserProfileManager(supabase_client=get_supabase_client()),
            dialogue_provider=DialogueProvider(
                llm_client=AsyncOpenAI(api_key=settings.openai_api_key),
                model=settings.openai_model,
                max_output_tokens=settings.max_output_tokens,
            ),
            registry=SessionRegistry(),
            quota_engine=QuotaEngine(
                daily_conversation_limit=settings.daily_conversation_limit,
                completion_threshold=settings.completion_threshold,
            ),
        )
        logger.success("Conversation tutor initialized", data={"model": settings.openai_model})
    return _tutor_instance


# Initialize FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="Real-time conversation practice relay with daily quota and streaks",
    version=SERVICE_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ==================== Event dispatch ====================

async def dispatch_event(
    tutor: ConversationTutor,
    emitter: ConnectionEmitter,
    event: InboundEvent,
    payload
):
    """Run the handler for one inbound event to completion."""
    connection_id = emitter.connection_id

    if event == InboundEvent.PING:
        await emitter.emit(OutboundEvent.PONG)
    elif event == InboundEvent.FETCH_PROFILE:
        await tutor.fetch_profile(payload.user_id, emitter.emit)
    elif event == InboundEvent.START_CONVERSATION:
        await tutor.start_conversation(connection_id, payload.scenario, payload.user_id, emitter.emit)
    elif event == InboundEvent.SEND_MESSAGE:
        await tutor.send_message(connection_id, payload.text, emitter.emit)
    elif event == InboundEvent.END_CONVERSATION:
        await tutor.end_conversation(connection_id, emitter.emit)


# ==================== Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "active_connections": len(_active_connections),
    }


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """
    Serve one client connection.

    Frames are awaited one at a time, so a sendMessage is never handled
    before an earlier startConversation on the same connection finishes.
    """
    await ws.accept()
    emitter = ConnectionEmitter(ws)
    try:
        tutor = get_tutor_instance()
    except ValueError as exc:
        logger.error("Tutor unavailable, refusing connection", error=exc)
        await emitter.send_error("service_unavailable", "Service is not configured.")
        await ws.close(code=1011)
        return

    connection_id = emitter.connection_id
    _active_connections.add(connection_id)
    logger.info(f"User connected: {connection_id}", data={"active_connections": len(_active_connections)})

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw_msg = message.get("text")
            if raw_msg is None:
                logger.warning(f"Rejected binary frame on {connection_id[:8]}")
                await emitter.send_error("invalid_message", "Message must be a text frame.")
                continue

            try:
                event, payload = parse_client_message(raw_msg)
            except InvalidMessage as exc:
                logger.warning(f"Rejected frame on {connection_id[:8]}: {exc}")
                await emitter.send_error(exc.error_code, str(exc))
                continue

            logger.event_in(event.value, connection_id)
            try:
                await dispatch_event(tutor, emitter, event, payload)
            except Exception as exc:
                # Isolate unexpected failures to this connection
                logger.error(f"Unhandled error in {event.value} handler", error=exc)
                await emitter.send_error("internal_error", "Internal server error.")
    except WebSocketDisconnect:
        pass
    finally:
        emitter.closed = True
        await tutor.disconnect(connection_id)
        _active_connections.discard(connection_id)
        logger.info(f"User disconnected: {connection_id}", data={"active_connections": len(_active_connections)})


@app.on_event("startup")
async def startup_event():
    logger.section("SERVER STARTUP", {
        "port": settings.port,
        "allowed_origins": settings.allowed_origins,
        "model": settings.openai_model,
    })


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 Relay server stopped")


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=settings.port)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
