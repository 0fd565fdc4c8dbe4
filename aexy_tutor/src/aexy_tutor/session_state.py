"""
Conversation Session Data Model

Per-connection state of an active practice conversation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from aexy_tutor.dialogue_provider import DialogueHandle


@dataclass
class ConversationSession:
    """Active conversation bound to one client connection."""
    connection_id: str
    user_id: str
    dialogue: DialogueHandle
    scenario: Optional[str] = None
    # User-authored messages sent in this session
    turn_count: int = 0
    completion_recorded: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    def record_turn(self) -> int:
        """Count one user message and return the new turn count."""
        self.turn_count += 1
        self.last_updated = datetime.now()
        return self.turn_count
