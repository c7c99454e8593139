"""
Ephemeral store adapter.

The hub keeps two kinds of short-lived lists in an external key-value store:
per-session chat history (expiry refreshed on every append) and per-user
heart-rate ring buffers (no expiry, capped length). Entries are JSON objects
appended in arrival order, oldest first.
"""

import json
from typing import Any, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..exceptions import StoreUnavailable
from ..logging.logging_config import get_logger

logger = get_logger(__name__)


def chat_history_key(session_id: str) -> str:
    """Store key of a session's chat history."""
    return f"chat:session:{session_id}"


def heart_rate_key(user_id: str) -> str:
    """Store key of a user's heart-rate ring buffer."""
    return f"health:heart-rate:{user_id}"


class EphemeralStore(Protocol):
    """
    Append/trim/read interface onto the external key-value store.

    Every method raises StoreUnavailable when the store cannot complete the
    operation.
    """

    async def append_with_ttl(self, key: str, value: dict[str, Any], ttl_seconds: int | None) -> None:
        """
        Append a value to the list at key.

        Args:
            key: List key
            value: JSON-serializable entry
            ttl_seconds: Expiry applied to the whole key from now, or None to leave expiry untouched
        """
        ...

    async def trim_to_last(self, key: str, n: int) -> None:
        """Keep only the n most recent entries at key."""
        ...

    async def list_since(self, key: str, since: float | None = None) -> list[dict[str, Any]]:
        """
        Read entries at key, oldest first.

        Args:
            key: List key
            since: Optional epoch seconds; entries with an earlier "timestamp" are skipped
        """
        ...


def _entry_timestamp(entry: dict[str, Any]) -> float:
    value = entry.get("timestamp")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def filter_since(entries: list[dict[str, Any]], since: float | None) -> list[dict[str, Any]]:
    """Drop entries whose timestamp precedes since."""
    if since is None:
        return entries
    return [entry for entry in entries if _entry_timestamp(entry) >= since]


class RedisEphemeralStore:
    """EphemeralStore backed by Redis lists (RPUSH/EXPIRE, LTRIM, LRANGE)."""

    def __init__(self, url: str, socket_timeout: float = 2.0, client: Any = None) -> None:
        self.url = url
        self._client = client or redis.Redis.from_url(url, decode_responses=True, socket_timeout=socket_timeout)

    async def close(self) -> None:
        """Release the Redis connection pool."""
        await self._client.aclose()
        logger.info("Ephemeral store connection closed")

    async def ping(self) -> bool:
        """Return True when Redis answers."""
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Ephemeral store ping failed", error=str(e))
            return False

    async def append_with_ttl(self, key: str, value: dict[str, Any], ttl_seconds: int | None) -> None:
        payload = json.dumps(value, default=str)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.rpush(key, payload)
                if ttl_seconds is not None:
                    pipe.expire(key, ttl_seconds)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Append failed: {e}", key=key) from e

    async def trim_to_last(self, key: str, n: int) -> None:
        if n < 1:
            raise ValueError("n must be at least 1")
        try:
            await self._client.ltrim(key, -n, -1)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Trim failed: {e}", key=key) from e

    async def list_since(self, key: str, since: float | None = None) -> list[dict[str, Any]]:
        try:
            raw = await self._client.lrange(key, 0, -1)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Read failed: {e}", key=key) from e

        entries: list[dict[str, Any]] = []
        for item in raw:
            try:
                entries.append(json.loads(item))
            except json.JSONDecodeError:
                logger.warning("Skipping undecodable store entry", key=key)
        return filter_since(entries, since)
