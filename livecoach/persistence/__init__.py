"""External storage collaborators consumed by the hub."""

from .directory import DirectoryLookupError, PostgresDirectory, PostOwnerResolver, UserDirectory, UserProfile
from .ephemeral_store import EphemeralStore, RedisEphemeralStore, chat_history_key, heart_rate_key

__all__ = [
    "DirectoryLookupError",
    "EphemeralStore",
    "PostOwnerResolver",
    "PostgresDirectory",
    "RedisEphemeralStore",
    "UserDirectory",
    "UserProfile",
    "chat_history_key",
    "heart_rate_key",
]
