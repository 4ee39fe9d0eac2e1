"""
Redis connection manager for Dugout.
Provides the async connection pool and key namespace utilities for the
shared snapshot cache.
"""
from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
SNAP_GAME_KEY = "snap:game:{game_pk}:feed"
SNAP_SCHEDULE_KEY = "snap:schedule:team:{team_id}:{start}:{end}"
SNAP_INDEX_KEY = "snap:index"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


def game_key(game_pk: int) -> str:
    return _fmt(SNAP_GAME_KEY, game_pk=game_pk)


def schedule_key(team_id: int, start: str, end: str) -> str:
    return _fmt(SNAP_SCHEDULE_KEY, team_id=team_id, start=start, end=end)


class RedisManager:
    """Manages async Redis connection pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            socket_keepalive=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Snapshot helpers ────────────────────────────────────────────────
    async def set_snapshot(self, key: str, data: str, ttl_s: int) -> None:
        """Store a JSON snapshot and remember its key for stats."""
        pipe = self.client.pipeline(transaction=True)
        pipe.set(key, data, ex=ttl_s)
        pipe.sadd(SNAP_INDEX_KEY, key)
        await pipe.execute()

    async def get_snapshot(self, key: str) -> Optional[str]:
        """Retrieve a JSON snapshot."""
        return await self.client.get(key)

    async def snapshot_keys(self) -> list[str]:
        """Keys written through set_snapshot that have not expired yet."""
        keys = sorted(await self.client.smembers(SNAP_INDEX_KEY))
        if not keys:
            return []
        exists = await self.client.mget(keys)
        gone = [k for k, v in zip(keys, exists) if v is None]
        if gone:
            await self.client.srem(SNAP_INDEX_KEY, *gone)
        return [k for k, v in zip(keys, exists) if v is not None]

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (aioredis.RedisError, RuntimeError):
            return False
