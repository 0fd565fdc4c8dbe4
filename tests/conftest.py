"""
Shared fixtures: in-memory profile store, scripted dialogue provider and a
recording event sink, so tutor flows run without Supabase or OpenAI.
"""

import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "aexy_tutor", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))

from aexy_tutor.conversation_tutor import ConversationTutor
from aexy_tutor.dialogue_provider import DialogueHandle
from aexy_tutor.errors import DialogueProviderError
from aexy_tutor.quota_engine import QuotaEngine
from aexy_tutor.session_registry import SessionRegistry
from aexy_tutor.user_profile_manager import UserProfileManager

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
TODAY = "2026-10-18"
YESTERDAY = "2026-10-17"


class ScriptedDialogueProvider:
    """Stands in for DialogueProvider with canned replies."""

    def __init__(self):
        self.opening_reply = "Hi! Welcome to the cafe. What would you like to order?"
        self.reply_chunks: List[str] = ["Great ", "choice! ", "Anything else?"]
        self.fail_start = False
        # Raise after this many chunks (None = never)
        self.fail_stream_after: Optional[int] = None
        self.started: List[DialogueHandle] = []
        self.closed: List[DialogueHandle] = []
        self.sent: List[str] = []
        self.streamed: List[str] = []

    async def start_dialogue(self, system_prompt: str) -> DialogueHandle:
        handle = DialogueHandle(system_prompt=system_prompt)
        self.started.append(handle)
        return handle

    async def send(self, handle: DialogueHandle, text: str) -> str:
        if self.fail_start:
            raise DialogueProviderError("provider unavailable")
        self.sent.append(text)
        handle.append_exchange(text, self.opening_reply)
        return self.opening_reply

    async def stream(self, handle: DialogueHandle, text: str):
        self.streamed.append(text)
        for index, chunk in enumerate(self.reply_chunks):
            if self.fail_stream_after is not None and index >= self.fail_stream_after:
                raise DialogueProviderError("stream interrupted")
            yield chunk
        if self.fail_stream_after is not None and self.fail_stream_after >= len(self.reply_chunks):
            raise DialogueProviderError("stream interrupted")
        handle.append_exchange(text, "".join(self.reply_chunks))

    async def close_dialogue(self, handle: DialogueHandle):
        handle.closed = True
        self.closed.append(handle)


class RecordingSink:
    """Event sink that remembers everything emitted to a connection."""

    def __init__(self):
        self.events = []
        self.connected = True

    async def emit(self, event, payload=None) -> bool:
        if not self.connected:
            return False
        self.events.append((event.value, payload))
        return True

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str):
        return [payload for event_name, payload in self.events if event_name == name]


def profile_row(user_id="user-1", **overrides):
    row = {
        "id": user_id,
        "username": "learner",
        "streak": 2,
        "last_login_date": YESTERDAY,
        "last_conversation_date": TODAY,
        "daily_conversations": 1,
        "is_premium": False,
    }
    row.update(overrides)
    return row


@pytest.fixture
def profile_manager():
    return UserProfileManager()


@pytest.fixture
def provider():
    return ScriptedDialogueProvider()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_row():
    return profile_row


@pytest.fixture
def tutor(profile_manager, provider, registry):
    return ConversationTutor(
        profile_manager=profile_manager,
        dialogue_provider=provider,
        registry=registry,
        quota_engine=QuotaEngine(),
        clock=lambda: FIXED_NOW,
    )
