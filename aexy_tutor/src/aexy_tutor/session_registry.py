"""
Session Registry

Maps connection ids to their active ConversationSession. One registry is
created per process and handed to the ConversationTutor; there is no
module-level instance.

All mutation happens on the event loop without awaiting in between, so
handlers for different connections can use the registry concurrently.
Events of a single connection are already serialized by its receive loop.
"""

from typing import Dict, Optional

from aexy_tutor.dialogue_provider import DialogueHandle
from aexy_tutor.session_state import ConversationSession


class SessionRegistry:
    """In-memory registry with at most one session per connection."""

    def __init__(self):
        self._sessions: Dict[str, ConversationSession] = {}

    def create(
        self,
        connection_id: str,
        user_id: str,
        dialogue: DialogueHandle,
        scenario: Optional[str] = None
    ) -> ConversationSession:
        """Register a new session, overwriting any prior one for the connection."""
        session = ConversationSession(
            connection_id=connection_id,
            user_id=user_id,
            dialogue=dialogue,
            scenario=scenario,
        )
        self._sessions[connection_id] = session
        return session

    def get(self, connection_id: str) -> Optional[ConversationSession]:
        return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Optional[ConversationSession]:
        """Drop the connection's session; a no-op when there is none."""
        return self._sessions.pop(connection_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._sessions
