"""
Connection Event Names

Names of the events exchanged with a client connection. Values are the
literal `type` strings used on the wire.
"""

from enum import Enum


class InboundEvent(str, Enum):
    """Events sent by the client."""
    FETCH_PROFILE = "fetchProfile"
    START_CONVERSATION = "startConversation"
    SEND_MESSAGE = "sendMessage"
    END_CONVERSATION = "endConversation"
    PING = "ping"


class OutboundEvent(str, Enum):
    """Events sent back to the client."""
    PROFILE_DATA = "profileData"
    PROFILE_ERROR = "profileError"
    DIALOGUE_OPENED = "dialogueOpened"
    DIALOGUE_CHUNK = "dialogueChunk"
    DIALOGUE_END = "dialogueEnd"
    QUOTA_EXCEEDED = "quotaExceeded"
    QUOTA_UPDATED = "quotaUpdated"
    CONVERSATION_ERROR = "conversationError"
    CONVERSATION_CLOSED = "conversationClosed"
    PONG = "pong"
    ERROR = "error"
