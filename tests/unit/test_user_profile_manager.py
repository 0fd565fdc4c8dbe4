"""
Unit Tests for the User Profile Manager

Covers the in-memory store and the Supabase query path with a stub client.
"""

from types import SimpleNamespace

import pytest

from aexy_tutor.errors import ProfileNotFoundError, ProfileStoreError
from aexy_tutor.user_profile_manager import UserProfile, UserProfileManager


class StubQuery:
    """Records the chained postgrest calls and returns canned data."""

    def __init__(self, client):
        self.client = client
        self.ops = []

    def select(self, *args):
        self.ops.append(("select", args))
        return self

    def update(self, data):
        self.ops.append(("update", data))
        return self

    def eq(self, column, value):
        self.ops.append(("eq", column, value))
        return self

    def limit(self, n):
        self.ops.append(("limit", n))
        return self

    def execute(self):
        self.client.executed.append(self.ops)
        if self.client.error:
            raise self.client.error
        return SimpleNamespace(data=self.client.data)


class StubSupabase:
    def __init__(self, data=None, error=None):
        self.data = data if data is not None else []
        self.error = error
        self.tables = []
        self.executed = []

    def table(self, name):
        self.tables.append(name)
        return StubQuery(self)


ROW = {
    "id": "user-1",
    "username": "learner",
    "streak": 4,
    "last_login_date": "2026-10-17",
    "last_conversation_date": "2026-10-17",
    "daily_conversations": 2,
    "is_premium": False,
}


class TestUserProfile:

    def test_row_round_trip_keeps_unknown_columns(self):
        profile = UserProfile.from_row(ROW)

        assert profile.user_id == "user-1"
        assert profile.extra == {"username": "learner"}
        assert profile.to_row() == ROW

    def test_null_counters_default_to_zero(self):
        profile = UserProfile.from_row({"id": "u", "streak": None, "daily_conversations": None})

        assert profile.streak == 0
        assert profile.daily_conversations == 0
        assert profile.is_premium is False
        assert profile.last_login_date is None

    def test_snapshot_is_immutable(self):
        profile = UserProfile.from_row(ROW)

        with pytest.raises(AttributeError):
            profile.streak = 10


class TestInMemoryStore:

    @pytest.fixture
    def manager(self):
        manager = UserProfileManager()
        manager.seed_profile(ROW)
        return manager

    @pytest.mark.asyncio
    async def test_get(self, manager):
        profile = await manager.get_user_profile("user-1")

        assert profile.streak == 4

    @pytest.mark.asyncio
    async def test_get_missing(self, manager):
        with pytest.raises(ProfileNotFoundError):
            await manager.get_user_profile("nobody")

    @pytest.mark.asyncio
    async def test_update_returns_new_row(self, manager):
        updated = await manager.update_profile("user-1", {"streak": 5, "last_login_date": "2026-10-18"})

        assert updated.streak == 5
        assert (await manager.get_user_profile("user-1")).last_login_date == "2026-10-18"

    @pytest.mark.asyncio
    async def test_update_missing(self, manager):
        with pytest.raises(ProfileStoreError):
            await manager.update_profile("nobody", {"streak": 1})


class TestSupabaseStore:

    @pytest.mark.asyncio
    async def test_get_queries_profiles_by_id(self):
        client = StubSupabase(data=[ROW])
        manager = UserProfileManager(supabase_client=client)

        profile = await manager.get_user_profile("user-1")

        assert profile.daily_conversations == 2
        assert client.tables == ["profiles"]
        assert ("eq", "id", "user-1") in client.executed[0]

    @pytest.mark.asyncio
    async def test_get_no_rows(self):
        manager = UserProfileManager(supabase_client=StubSupabase(data=[]))

        with pytest.raises(ProfileNotFoundError):
            await manager.get_user_profile("user-1")

    @pytest.mark.asyncio
    async def test_get_store_error(self):
        manager = UserProfileManager(supabase_client=StubSupabase(error=ConnectionError("timeout")))

        with pytest.raises(ProfileStoreError):
            await manager.get_user_profile("user-1")

    @pytest.mark.asyncio
    async def test_update_sends_partial_fields(self):
        client = StubSupabase(data=[dict(ROW, streak=5)])
        manager = UserProfileManager(supabase_client=client)

        updated = await manager.update_profile("user-1", {"streak": 5})

        assert updated.streak == 5
        assert client.executed[0][0] == ("update", {"streak": 5})
        assert ("eq", "id", "user-1") in client.executed[0]

    @pytest.mark.asyncio
    async def test_update_matching_nothing_is_an_error(self):
        manager = UserProfileManager(supabase_client=StubSupabase(data=[]))

        with pytest.raises(ProfileStoreError):
            await manager.update_profile("user-1", {"streak": 5})

    @pytest.mark.asyncio
    async def test_update_store_error(self):
        manager = UserProfileManager(supabase_client=StubSupabase(error=RuntimeError("500")))

        with pytest.raises(ProfileStoreError):
            await manager.update_profile("user-1", {"streak": 5})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
