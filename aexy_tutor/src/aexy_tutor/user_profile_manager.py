"""
User Profile Manager

Reads and updates the durable user profile (the `profiles` table) that
streak and daily quota bookkeeping are billed against.

Supabase's Python client is synchronous, so every query runs in a worker
thread to keep the event loop free for other connections.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aexy_tutor.day_period import DayId
from aexy_tutor.errors import ProfileNotFoundError, ProfileStoreError

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "id",
    "streak",
    "last_login_date",
    "last_conversation_date",
    "daily_conversations",
    "is_premium",
)


@dataclass(frozen=True)
class UserProfile:
    """Immutable snapshot of a user's persisted counters."""
    user_id: str
    streak: int = 0
    last_login_date: Optional[DayId] = None
    last_conversation_date: Optional[DayId] = None
    daily_conversations: int = 0
    is_premium: bool = False
    # Columns this service doesn't interpret (username, avatar, ...)
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_row(cls, data: Dict[str, Any]) -> "UserProfile":
        """Build a profile from a `profiles` row."""
        extra = {k: v for k, v in data.items() if k not in PROFILE_COLUMNS}
        return cls(
            user_id=str(data["id"]),
            streak=data.get("streak") or 0,
            last_login_date=data.get("last_login_date"),
            last_conversation_date=data.get("last_conversation_date"),
            daily_conversations=data.get("daily_conversations") or 0,
            is_premium=bool(data.get("is_premium", False)),
            extra=extra,
        )

    def to_row(self) -> Dict[str, Any]:
        """Row representation, as sent to clients in profileData."""
        row = dict(self.extra)
        row.update({
            "id": self.user_id,
            "streak": self.streak,
            "last_login_date": self.last_login_date,
            "last_conversation_date": self.last_conversation_date,
            "daily_conversations": self.daily_conversations,
            "is_premium": self.is_premium,
        })
        return row


class UserProfileManager:
    """
    Profile store backed by Supabase.

    Without a Supabase client the manager keeps profiles in memory, which
    is what tests and local runs use.
    """

    TABLE = "profiles"

    def __init__(self, supabase_client=None):
        """
        Initialize UserProfileManager.

        Args:
            supabase_client: Supabase client instance (optional)
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None
        self._in_memory_profiles: Dict[str, Dict[str, Any]] = {}

        if not self.use_supabase:
            logger.warning("⚠️ [UserProfileManager] Supabase not available, using in-memory profiles")

    def seed_profile(self, row: Dict[str, Any]) -> UserProfile:
        """Insert or replace an in-memory profile row."""
        self._in_memory_profiles[str(row["id"])] = dict(row)
        return UserProfile.from_row(row)

    async def get_user_profile(self, user_id: str) -> UserProfile:
        """
        Fetch the current profile for a user.

        Raises:
            ProfileNotFoundError: no row for user_id
            ProfileStoreError: the store could not be queried
        """
        if not self.use_supabase:
            row = self._in_memory_profiles.get(user_id)
            if row is None:
                raise ProfileNotFoundError(user_id)
            return UserProfile.from_row(row)

        query = self.supabase.table(self.TABLE) \
            .select('*') \
            .eq('id', user_id) \
            .limit(1)
        try:
            result = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error loading profile {user_id[:20]}: {e}")
            raise ProfileStoreError(str(e)) from e

        if not result.data:
            raise ProfileNotFoundError(user_id)
        return UserProfile.from_row(result.data[0])

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> UserProfile:
        """
        Apply a partial update (last write wins) and return the stored row.

        Raises:
            ProfileStoreError: the write failed or matched no row
        """
        if not self.use_supabase:
            row = self._in_memory_profiles.get(user_id)
            if row is None:
                raise ProfileStoreError(f"No profile row to update for {user_id}")
            row.update(updates)
            return UserProfile.from_row(row)

        query = self.supabase.table(self.TABLE) \
            .update(updates) \
            .eq('id', user_id)
        try:
            result = await asyncio.to_thread(query.execute)
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error updating profile {user_id[:20]}: {e}")
            raise ProfileStoreError(str(e)) from e

        if not result.data:
            raise ProfileStoreError(f"Update matched no profile row for {user_id}")

        logger.info(f"✅ [UserProfileManager] Updated {sorted(updates)} for user {user_id[:20]}")
        return UserProfile.from_row(result.data[0])
