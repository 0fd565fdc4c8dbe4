"""
Conversation Tutor

Handles the events of one client connection: profile fetch with login
streak bookkeeping, opening a practice conversation under the daily quota,
relaying streamed replies, and cleanup on disconnect.

Session lifecycle per connection:
- Idle: no session registered
- Active: start_conversation succeeded; every send_message counts a turn
  and the COMPLETION_THRESHOLD-th turn bills one conversation
- Closed: end_conversation or disconnect removed the session

Starting a conversation while one is active replaces it; the old dialogue
is closed explicitly.

Handlers never raise for expected failures. Every outcome is reported to
the originating connection through its EventSink.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from aexy_tutor import day_period
from aexy_tutor.dialogue_provider import OPENING_SENTINEL, DialogueProvider
from aexy_tutor.errors import (
    DialogueProviderError,
    ProfileNotFoundError,
    ProfileStoreError,
)
from aexy_tutor.events import OutboundEvent
from aexy_tutor.persona import build_system_prompt
from aexy_tutor.quota_engine import QuotaEngine
from aexy_tutor.session_registry import SessionRegistry
from aexy_tutor.session_state import ConversationSession
from aexy_tutor.streaming_relay import RelayOutcome, RelayResult, relay_stream
from aexy_tutor.user_profile_manager import UserProfile, UserProfileManager

logger = logging.getLogger(__name__)

# emit(event, payload) -> False once the connection is gone
EventSink = Callable[[OutboundEvent, Optional[Dict[str, Any]]], Awaitable[bool]]
Clock = Callable[[], datetime]


class ConversationTutor:
    """Session state machine and event handlers for tutor connections."""

    def __init__(
        self,
        profile_manager: UserProfileManager,
        dialogue_provider: DialogueProvider,
        registry: SessionRegistry,
        quota_engine: Optional[QuotaEngine] = None,
        clock: Optional[Clock] = None
    ):
        self.profiles = profile_manager
        self.provider = dialogue_provider
        self.registry = registry
        self.quota = quota_engine or QuotaEngine()
        self._clock = clock

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None

    # ==================== Profile ====================

    async def fetch_profile(self, user_id: Optional[str], emit: EventSink):
        """Return the user's profile, applying login streak and daily reset."""
        if not user_id:
            logger.error("No userId provided from client")
            await emit(OutboundEvent.PROFILE_ERROR, {"message": "Missing userId"})
            return

        try:
            profile = await self.profiles.get_user_profile(user_id)
        except (ProfileNotFoundError, ProfileStoreError) as e:
            logger.error(f"❌ [Profile] Error fetching user profile: {e}")
            await emit(OutboundEvent.PROFILE_ERROR, {"message": "Could not find user profile."})
            return

        now = self._now()
        decision = self.quota.reconcile_login(
            profile,
            today=day_period.today(now),
            yesterday=day_period.yesterday(now),
        )
        if decision.is_empty:
            await emit(OutboundEvent.PROFILE_DATA, {"profile": profile.to_row()})
            return

        try:
            updated = await self.profiles.update_profile(user_id, decision.updates)
        except ProfileStoreError as e:
            # Send the unreconciled profile rather than leave the client waiting
            logger.warning(f"⚠️ [Profile] Error updating user profile, sending stale data: {e}")
            await emit(OutboundEvent.PROFILE_DATA, {"profile": profile.to_row()})
            return

        logger.info(f"📚 [Profile] Reconciled login for {user_id[:20]}: {decision.updates}")
        await emit(OutboundEvent.PROFILE_DATA, {"profile": updated.to_row()})

    # ==================== Conversation ====================

    async def start_conversation(
        self,
        connection_id: str,
        scenario: Optional[str],
        user_id: Optional[str],
        emit: EventSink
    ) -> Optional[ConversationSession]:
        """
        Open a practice conversation for the connection.

        Returns:
            The new Active session, or None when the start was refused or failed
        """
        if not user_id:
            await emit(OutboundEvent.CONVERSATION_ERROR, {"message": "Missing userId."})
            return None

        try:
            profile = await self.profiles.get_user_profile(user_id)
        except (ProfileNotFoundError, ProfileStoreError) as e:
            logger.error(f"❌ [Conversation] Error fetching user profile: {e}")
            await emit(OutboundEvent.CONVERSATION_ERROR, {"message": "User not found."})
            return None

        if not self.quota.check_quota(profile, day_period.today(self._now())):
            logger.info(f"🚫 [Conversation] Daily limit reached for {user_id[:20]}")
            await emit(OutboundEvent.QUOTA_EXCEEDED, None)
            return None

        dialogue = None
        try:
            dialogue = await self.provider.start_dialogue(build_system_prompt(scenario))
            opening = await self.provider.send(dialogue, OPENING_SENTINEL)
        except DialogueProviderError as e:
            logger.error(f"❌ [Conversation] Error starting conversation: {e}")
            if dialogue is not None:
                await self.provider.close_dialogue(dialogue)
            await emit(OutboundEvent.CONVERSATION_ERROR, {"message": "Failed to start conversation."})
            return None

        previous = self.registry.get(connection_id)
        if previous is not None:
            logger.info(f"🔄 [Conversation] Replacing active session on {connection_id}")
            await self.provider.close_dialogue(previous.dialogue)

        session = self.registry.create(connection_id, user_id, dialogue, scenario=scenario)
        logger.info(f"✅ [Conversation] Session started on {connection_id} (scenario: {scenario})")
        await emit(OutboundEvent.DIALOGUE_OPENED, {"text": opening})
        return session

    async def send_message(
        self,
        connection_id: str,
        text: Optional[str],
        emit: EventSink
    ) -> Optional[RelayResult]:
        """
        Relay one user message to the tutor and stream the reply back.

        Returns:
            RelayResult of the streamed reply, or None if there was no session
        """
        session = self.registry.get(connection_id)
        if session is None:
            await emit(OutboundEvent.CONVERSATION_ERROR, {"message": "Chat session not found."})
            return None

        turn = session.record_turn()

        async def emit_chunk(chunk: str) -> bool:
            return await emit(OutboundEvent.DIALOGUE_CHUNK, {"text": chunk})

        async def emit_end() -> bool:
            return await emit(OutboundEvent.DIALOGUE_END, None)

        async def emit_error(error: Exception) -> bool:
            logger.error(f"❌ [Conversation] Error sending message: {error}")
            return await emit(OutboundEvent.CONVERSATION_ERROR, {"message": "Failed to get AI response."})

        result = await relay_stream(
            self.provider.stream(session.dialogue, text or ""),
            emit_chunk,
            emit_end,
            emit_error,
        )
        logger.info(
            f"💬 [Conversation] Turn {turn} on {connection_id}: "
            f"{result.outcome.value}, {result.chunk_count} chunks"
        )

        if self.quota.is_completion_turn(turn) and not session.completion_recorded:
            session.completion_recorded = True
            await self._record_completion(session, emit)

        return result

    async def _record_completion(self, session: ConversationSession, emit: EventSink):
        """Bill one completed conversation against the user's daily quota."""
        try:
            # Always re-read; the count may have moved since the session opened
            profile: UserProfile = await self.profiles.get_user_profile(session.user_id)
        except (ProfileNotFoundError, ProfileStoreError) as e:
            logger.warning(f"⚠️ [Quota] Could not load profile to record completion: {e}")
            return

        decision = self.quota.record_completion(profile, day_period.today(self._now()))
        if decision.is_empty:
            return

        try:
            await self.profiles.update_profile(session.user_id, decision.updates)
        except ProfileStoreError as e:
            logger.warning(f"⚠️ [Quota] Could not record completed conversation: {e}")
            return

        new_count = decision.updates["daily_conversations"]
        logger.info(f"📈 [Quota] {session.user_id[:20]} completed conversation #{new_count} today")
        await emit(OutboundEvent.QUOTA_UPDATED, {"dailyConversations": new_count})

    async def end_conversation(self, connection_id: str, emit: EventSink):
        """Close the connection's session at the client's request."""
        await self._close_session(connection_id)
        await emit(OutboundEvent.CONVERSATION_CLOSED, None)

    async def disconnect(self, connection_id: str):
        """Drop any session owned by a closed connection."""
        await self._close_session(connection_id)

    async def _close_session(self, connection_id: str):
        session = self.registry.remove(connection_id)
        if session is None:
            return
        await self.provider.close_dialogue(session.dialogue)
        logger.info(f"🛑 [Conversation] Session closed on {connection_id} after {session.turn_count} turns")
