"""
User directory and post ownership lookups.

The hub never stores users itself. It reads them through the UserDirectory
protocol and resolves post owners through PostOwnerResolver. PostgresDirectory
implements both against the application's PostgreSQL database using asyncpg.
"""

from dataclasses import dataclass
from typing import Any, Protocol

import asyncpg

from ..error_types import ErrorType
from ..exceptions import LiveCoachError
from ..logging.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserProfile:
    """Directory view of a user."""

    id: str
    name: str
    avatar: str | None
    active: bool


class UserDirectory(Protocol):
    """Lookup interface onto the external user store."""

    async def find_by_id(self, user_id: str) -> UserProfile | None:
        """
        Look up a user.

        Args:
            user_id: The user's ID

        Returns:
            The user's profile, or None if no such user exists
        """
        ...


class PostOwnerResolver(Protocol):
    """Lookup interface resolving the author of a social post."""

    async def resolve_post_owner(self, post_id: str) -> str | None:
        """
        Resolve the owner of a post.

        Returns:
            The owning user's ID, or None if the post is unknown
        """
        ...


class DirectoryLookupError(LiveCoachError):
    """The directory database could not answer a lookup."""

    error_type = ErrorType.LOOKUP_ERROR


class PostgresDirectory:
    """
    asyncpg-backed UserDirectory and PostOwnerResolver.

    The pool is created lazily by connect() during application startup.
    """

    USER_QUERY = "SELECT id::text AS id, name, avatar, is_active FROM users WHERE id::text = $1"
    POST_OWNER_QUERY = "SELECT user_id::text AS owner_id FROM posts WHERE id::text = $1"

    def __init__(self, database_url: str, min_size: int = 1, max_size: int = 10) -> None:
        # asyncpg expects postgresql:// not postgresql+asyncpg://
        if database_url.startswith("postgresql+asyncpg://"):
            database_url = database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Any = None

    async def connect(self) -> None:
        """Create the connection pool."""
        self._pool = await asyncpg.create_pool(self.database_url, min_size=self.min_size, max_size=self.max_size)
        logger.info("User directory pool created", min_size=self.min_size, max_size=self.max_size)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("User directory pool closed")

    async def _fetchrow(self, query: str, *args: Any) -> Any:
        if self._pool is None:
            raise DirectoryLookupError("User directory is not connected")
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except (OSError, TimeoutError, asyncpg.PostgresError) as e:
            raise DirectoryLookupError(f"Directory lookup failed: {e}") from e

    async def find_by_id(self, user_id: str) -> UserProfile | None:
        row = await self._fetchrow(self.USER_QUERY, user_id)
        if row is None:
            return None
        return UserProfile(id=row["id"], name=row["name"], avatar=row["avatar"], active=bool(row["is_active"]))

    async def resolve_post_owner(self, post_id: str) -> str | None:
        row = await self._fetchrow(self.POST_OWNER_QUERY, post_id)
        return row["owner_id"] if row is not None else None
