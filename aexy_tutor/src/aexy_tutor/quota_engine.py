"""
Daily Quota and Login Streak Rules

Decides which profile fields change when a user logs in, whether a
non-premium user may open another conversation today, and what a
completed conversation adds to the daily counter.

All decisions are pure: the engine never talks to the store. Callers apply
`QuotaDecision.updates` as a single profile update.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aexy_tutor.day_period import DayId
from aexy_tutor.user_profile_manager import UserProfile


@dataclass
class QuotaDecision:
    """Result of a quota/streak check."""
    updates: Dict[str, Any] = field(default_factory=dict)
    allowed: bool = True

    @property
    def is_empty(self) -> bool:
        return not self.updates


class QuotaEngine:
    """
    Streak and daily conversation quota rules.

    Rules:
    - Logging in the day after the last login extends the streak, any
      longer gap restarts it at 1, a second login on the same day is a no-op
    - The daily counter only counts for `last_conversation_date`; on any
      other day it is logically zero
    - Non-premium users get DAILY_CONVERSATION_LIMIT conversations per day
    - A conversation counts once its user has sent COMPLETION_THRESHOLD
      messages
    """

    DAILY_CONVERSATION_LIMIT = 3
    COMPLETION_THRESHOLD = 5

    def __init__(
        self,
        daily_conversation_limit: Optional[int] = None,
        completion_threshold: Optional[int] = None
    ):
        if daily_conversation_limit is not None:
            self.DAILY_CONVERSATION_LIMIT = daily_conversation_limit
        if completion_threshold is not None:
            self.COMPLETION_THRESHOLD = completion_threshold

    def reconcile_login(self, profile: UserProfile, today: DayId, yesterday: DayId) -> QuotaDecision:
        """
        Compute the updates a profile fetch applies on login.

        Args:
            profile: Current profile snapshot
            today: Today's day id
            yesterday: Yesterday's day id

        Returns:
            QuotaDecision; empty when the profile is already current for today
        """
        updates: Dict[str, Any] = {}

        if profile.last_login_date == yesterday:
            updates["streak"] = profile.streak + 1
        elif profile.last_login_date != today:
            updates["streak"] = 1

        if profile.last_login_date != today:
            updates["last_login_date"] = today

        if profile.last_conversation_date != today:
            updates["daily_conversations"] = 0
            updates["last_conversation_date"] = today

        return QuotaDecision(updates=updates, allowed=self.check_quota(profile, today))

    def effective_daily_conversations(self, profile: UserProfile, today: Optional[DayId] = None) -> int:
        """Daily counter as it applies to `today` (zero when stale)."""
        if today is not None and profile.last_conversation_date != today:
            return 0
        return profile.daily_conversations

    def check_quota(self, profile: UserProfile, today: Optional[DayId] = None) -> bool:
        """Whether the user may start another conversation."""
        if profile.is_premium:
            return True
        return self.effective_daily_conversations(profile, today) < self.DAILY_CONVERSATION_LIMIT

    def is_completion_turn(self, turn_count: int) -> bool:
        """Whether this user turn completes the conversation for quota purposes."""
        return turn_count == self.COMPLETION_THRESHOLD

    def record_completion(self, profile: UserProfile, today: DayId) -> QuotaDecision:
        """
        Count one completed conversation against today's quota.

        `profile` must be freshly read from the store; a snapshot cached at
        conversation start may be stale by the time the conversation
        completes.
        """
        if profile.is_premium:
            return QuotaDecision(updates={}, allowed=True)

        # The counter only counts for last_conversation_date, so a stale row starts over at 1
        new_count = self.effective_daily_conversations(profile, today) + 1
        return QuotaDecision(
            updates={
                "daily_conversations": new_count,
                "last_conversation_date": today,
            },
            allowed=new_count < self.DAILY_CONVERSATION_LIMIT,
        )
