"""
Unit Tests for WebSocket frame parsing and the connection emitter
"""

import json

import pytest
from fastapi import WebSocketDisconnect

from aexy_tutor.events import InboundEvent, OutboundEvent
from lib.connection import ConnectionEmitter, InvalidMessage, parse_client_message


class FakeWebSocket:
    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    async def send_text(self, text):
        if self.fail_with:
            raise self.fail_with
        self.sent.append(json.loads(text))


class TestParseClientMessage:

    def test_fetch_profile_alias(self):
        event, payload = parse_client_message('{"type": "fetchProfile", "userId": "user-1"}')

        assert event == InboundEvent.FETCH_PROFILE
        assert payload.user_id == "user-1"

    def test_start_conversation_optional_fields(self):
        event, payload = parse_client_message('{"type": "startConversation"}')

        assert event == InboundEvent.START_CONVERSATION
        assert payload.scenario is None
        assert payload.user_id is None

    def test_send_message_requires_text(self):
        with pytest.raises(InvalidMessage) as info:
            parse_client_message('{"type": "sendMessage"}')

        assert info.value.error_code == "validation_error"

    def test_send_message_rejects_empty_text(self):
        with pytest.raises(InvalidMessage) as info:
            parse_client_message('{"type": "sendMessage", "text": ""}')

        assert info.value.error_code == "validation_error"

    def test_extra_fields_ignored(self):
        _, payload = parse_client_message('{"type": "sendMessage", "text": "hi", "lang": "en"}')

        assert payload.text == "hi"

    @pytest.mark.parametrize("raw", ["", "   ", "not json", "[1, 2]", '{"text": "no type"}'])
    def test_malformed_frames(self, raw):
        with pytest.raises(InvalidMessage) as info:
            parse_client_message(raw)

        assert info.value.error_code == "invalid_message"

    def test_unknown_type(self):
        with pytest.raises(InvalidMessage) as info:
            parse_client_message('{"type": "deleteAccount"}')

        assert info.value.error_code == "unknown_message_type"


class TestConnectionEmitter:

    @pytest.mark.asyncio
    async def test_emit_flattens_payload_into_frame(self):
        ws = FakeWebSocket()
        emitter = ConnectionEmitter(ws, "conn-1")

        delivered = await emitter.emit(OutboundEvent.DIALOGUE_CHUNK, {"text": "Hel"})

        assert delivered is True
        assert ws.sent == [{"type": "dialogueChunk", "text": "Hel"}]

    @pytest.mark.asyncio
    async def test_emit_without_payload(self):
        ws = FakeWebSocket()

        await ConnectionEmitter(ws).emit(OutboundEvent.DIALOGUE_END)

        assert ws.sent == [{"type": "dialogueEnd"}]

    @pytest.mark.asyncio
    async def test_send_error_frame(self):
        ws = FakeWebSocket()

        await ConnectionEmitter(ws).send_error("invalid_message", "Empty message.")

        assert ws.sent == [{"type": "error", "errorCode": "invalid_message", "message": "Empty message."}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        WebSocketDisconnect(code=1001),
        RuntimeError('Cannot call "send" once a close message has been sent.'),
    ])
    async def test_closed_socket_returns_false(self, error):
        emitter = ConnectionEmitter(FakeWebSocket(fail_with=error))

        assert await emitter.emit(OutboundEvent.PONG) is False
        assert emitter.closed is True

    @pytest.mark.asyncio
    async def test_no_sends_after_close(self):
        ws = FakeWebSocket()
        emitter = ConnectionEmitter(ws)
        emitter.closed = True

        assert await emitter.emit(OutboundEvent.PONG) is False
        assert ws.sent == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
