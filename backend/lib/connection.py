"""
WebSocket connection helpers

- Parsing and validating inbound frames
- An event sink that writes outbound events as JSON frames and turns
  sends on a closed socket into a False return instead of an exception
"""
import json
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aexy_tutor.events import InboundEvent, OutboundEvent

from .logger import get_logger

logger = get_logger("backend.connection")


class InvalidMessage(ValueError):
    """Inbound frame that can't be dispatched."""

    def __init__(self, error_code: str, message: str):
        super().__init__(message)
        self.error_code = error_code


# ==================== Inbound payloads ====================

class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FetchProfilePayload(_Payload):
    user_id: Optional[str] = Field(default=None, alias="userId")


class StartConversationPayload(_Payload):
    scenario: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class SendMessagePayload(_Payload):
    text: str = Field(min_length=1)


class EmptyPayload(_Payload):
    pass


PAYLOAD_MODELS = {
    InboundEvent.FETCH_PROFILE: FetchProfilePayload,
    InboundEvent.START_CONVERSATION: StartConversationPayload,
    InboundEvent.SEND_MESSAGE: SendMessagePayload,
    InboundEvent.END_CONVERSATION: EmptyPayload,
    InboundEvent.PING: EmptyPayload,
}


def parse_client_message(raw: str):
    """
    Parse one text frame into (event, payload model).

    Raises:
        InvalidMessage: empty/non-JSON frame, missing or unknown type, bad payload
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidMessage("invalid_message", "Empty message.")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidMessage("invalid_message", "Message must be valid JSON.") from exc

    if not isinstance(data, dict):
        raise InvalidMessage("invalid_message", "Message must be a JSON object.")

    msg_type = data.get("type")
    if not msg_type:
        raise InvalidMessage("invalid_message", "Missing 'type' in message.")

    try:
        event = InboundEvent(str(msg_type).strip())
    except ValueError:
        raise InvalidMessage("unknown_message_type", f"Message type '{msg_type}' is not supported.")

    try:
        payload = PAYLOAD_MODELS[event].model_validate(data)
    except ValidationError as exc:
        raise InvalidMessage("validation_error", f"Invalid '{event.value}' payload: {exc.errors()[0]['msg']}")

    return event, payload


# ==================== Outbound ====================

class ConnectionEmitter:
    """Event sink for one WebSocket connection."""

    def __init__(self, ws: WebSocket, connection_id: Optional[str] = None):
        self.ws = ws
        self.connection_id = connection_id or uuid.uuid4().hex
        self.closed = False

    async def send_json(self, payload: Dict[str, Any]) -> bool:
        """Send a JSON frame, returning False if the socket is gone."""
        if self.closed:
            return False
        try:
            await self.ws.send_text(json.dumps(payload))
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # Starlette raises RuntimeError when sending after close
            logger.info(f"WebSocket {self.connection_id[:8]} gone while sending: {type(e).__name__}")
            self.closed = True
            return False
        return True

    async def emit(self, event: OutboundEvent, payload: Optional[Dict[str, Any]] = None) -> bool:
        frame = {"type": event.value}
        if payload:
            frame.update(payload)
        logger.event_out(event.value, self.connection_id)
        return await self.send_json(frame)

    async def send_error(self, error_code: str, message: str) -> bool:
        return await self.send_json({
            "type": OutboundEvent.ERROR.value,
            "errorCode": error_code,
            "message": message,
        })
