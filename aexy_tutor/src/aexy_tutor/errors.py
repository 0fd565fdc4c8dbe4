"""
Tutor Error Types

Exceptions raised by the profile store and the dialogue provider.
Handlers catch these at the connection boundary and turn them into
client-facing events; none of them is fatal to the process.
"""


class TutorError(Exception):
    """Base class for errors raised by the tutor core."""


class ProfileNotFoundError(TutorError):
    """No profile row exists for the requested user id."""

    def __init__(self, user_id: str):
        super().__init__(f"Profile not found for user {user_id}")
        self.user_id = user_id


class ProfileStoreError(TutorError):
    """The profile store failed to read or write a profile."""


class DialogueProviderError(TutorError):
    """The language-model provider failed to open or continue a dialogue."""
