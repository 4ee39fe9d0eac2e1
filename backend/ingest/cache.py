"""
Game snapshot cache.

Holds the most recently fetched document per key with freshness metadata
and decides between serving it and refetching. Entries outlive their TTL
(they are kept for ``stale_retention_s``) so an expired entry can still be
served, flagged stale, while the provider is failing.

Freshness:
  live   (abstract state Live)     fresh for ``live_cache_ttl_s``
  static (Preview / Final / other) fresh for ``static_cache_ttl_s``
"""
from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Protocol

from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import CacheEntry, CacheRead
from shared.models.enums import AbstractGameState, CacheSource, TtlClass
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_PUTS_REJECTED, CACHE_READS
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


class Fetched(NamedTuple):
    """A freshly fetched document and the state used to classify it."""
    document: Any
    abstract_state: AbstractGameState
    sequence: Optional[str] = None
    monotonic: bool = True


def ttl_class_for(state: AbstractGameState) -> TtlClass:
    return TtlClass.LIVE if state == AbstractGameState.LIVE else TtlClass.STATIC


# ── Stores ──────────────────────────────────────────────────────────────
class SnapshotStore(Protocol):
    async def load(self, key: str) -> Optional[CacheEntry]: ...

    async def save(self, entry: CacheEntry) -> None: ...

    async def entries(self) -> list[CacheEntry]: ...


class MemorySnapshotStore:
    """Process-local store. Lost on restart, which reads as a cold start."""

    def __init__(self, retention_s: float, clock: Callable[[], float] = time.time) -> None:
        self._retention_s = retention_s
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.cached_at >= self._retention_s

    async def load(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None and self._expired(entry):
            del self._entries[key]
            return None
        return entry

    async def save(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def entries(self) -> list[CacheEntry]:
        for key in [k for k, e in self._entries.items() if self._expired(e)]:
            del self._entries[key]
        return list(self._entries.values())


class RedisSnapshotStore:
    """Shared store so every worker and every restart sees the same snapshots."""

    def __init__(self, redis: RedisManager, retention_s: int) -> None:
        self._redis = redis
        self._retention_s = retention_s

    async def load(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self._redis.get_snapshot(key)
        except RedisError as exc:
            logger.warning("snapshot_store_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValueError:
            logger.warning("snapshot_store_corrupt_entry", key=key)
            return None

    async def save(self, entry: CacheEntry) -> None:
        try:
            await self._redis.set_snapshot(entry.key, entry.model_dump_json(), ttl_s=self._retention_s)
        except RedisError as exc:
            logger.warning("snapshot_store_write_failed", key=entry.key, error=str(exc))

    async def entries(self) -> list[CacheEntry]:
        out: list[CacheEntry] = []
        try:
            keys = await self._redis.snapshot_keys()
        except RedisError as exc:
            logger.warning("snapshot_store_scan_failed", error=str(exc))
            return out
        for key in keys:
            entry = await self.load(key)
            if entry is not None:
                out.append(entry)
        return out


# ── Cache ───────────────────────────────────────────────────────────────
class GameSnapshotCache:
    """
    TTL policy over a snapshot store.

    Args:
        store: Where entries live (memory or Redis).
        settings: Supplies the TTLs when not given explicitly.
        clock: Wall-clock seconds; injectable for tests.
    """

    def __init__(
        self,
        store: SnapshotStore,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        live_ttl_s: float | None = None,
        static_ttl_s: float | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._clock = clock
        self.live_ttl_s = live_ttl_s if live_ttl_s is not None else settings.live_cache_ttl_s
        self.static_ttl_s = static_ttl_s if static_ttl_s is not None else settings.static_cache_ttl_s

    def ttl_for(self, ttl_class: TtlClass) -> float:
        return self.live_ttl_s if ttl_class == TtlClass.LIVE else self.static_ttl_s

    def is_valid(self, entry: CacheEntry, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return (now - entry.cached_at) < self.ttl_for(entry.ttl_class)

    async def get(self, key: str) -> Optional[CacheEntry]:
        return await self._store.load(key)

    async def put(
        self,
        key: str,
        document: Any,
        abstract_state: AbstractGameState,
        sequence: Optional[str] = None,
        monotonic: bool = True,
    ) -> CacheEntry:
        """
        Store ``document`` under ``key`` and return the entry now in effect.

        A document older than the cached one (lower provider sequence, or an
        earlier game state) is dropped and the cached entry is returned.
        Documents spanning several games (schedules) pass ``monotonic=False``.
        """
        current = await self._store.load(key)
        if current is not None and monotonic:
            reason = None
            if sequence and current.sequence and sequence < current.sequence:
                reason = "sequence"
            elif abstract_state.rank < current.abstract_state.rank:
                reason = "state"
            if reason is not None:
                CACHE_PUTS_REJECTED.labels(reason=reason).inc()
                logger.info(
                    "cache_put_rejected",
                    key=key,
                    reason=reason,
                    cached_sequence=current.sequence,
                    sequence=sequence,
                    cached_state=current.abstract_state.value,
                    state=abstract_state.value,
                )
                return current

        entry = CacheEntry(
            key=key,
            document=document,
            abstract_state=abstract_state,
            ttl_class=ttl_class_for(abstract_state),
            cached_at=self._clock(),
            sequence=sequence,
        )
        await self._store.save(entry)
        return entry

    async def read_through(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Fetched]],
    ) -> CacheRead:
        """
        Serve a fresh entry, else refetch and store. When the refetch raises
        ``UpstreamError`` and an older entry exists, serve that entry marked
        stale; with no entry at all the error propagates.
        """
        entry = await self.get(key)
        if entry is not None and self.is_valid(entry):
            CACHE_READS.labels(ttl_class=entry.ttl_class.value, source=CacheSource.CACHE.value).inc()
            return CacheRead(
                document=entry.document,
                source=CacheSource.CACHE,
                cached_at=entry.cached_at,
                ttl_class=entry.ttl_class,
            )

        try:
            fetched = await fetch()
        except UpstreamError as exc:
            if entry is None:
                raise
            CACHE_READS.labels(ttl_class=entry.ttl_class.value, source=CacheSource.STALE.value).inc()
            logger.warning(
                "cache_serving_stale",
                key=key,
                age_s=round(self._clock() - entry.cached_at, 1),
                status=exc.status,
                error=exc.message,
            )
            return CacheRead(
                document=entry.document,
                source=CacheSource.STALE,
                stale=True,
                cached_at=entry.cached_at,
                ttl_class=entry.ttl_class,
            )

        stored = await self.put(
            key,
            fetched.document,
            fetched.abstract_state,
            fetched.sequence,
            monotonic=fetched.monotonic,
        )
        # A rejected put hands back the cached entry, which may already be expired.
        stale = not self.is_valid(stored)
        source = CacheSource.STALE if stale else CacheSource.API
        if stale:
            logger.warning(
                "cache_refetch_older_than_cached",
                key=key,
                age_s=round(self._clock() - stored.cached_at, 1),
                cached_sequence=stored.sequence,
                sequence=fetched.sequence,
            )
        CACHE_READS.labels(ttl_class=stored.ttl_class.value, source=source.value).inc()
        return CacheRead(
            document=stored.document,
            source=source,
            stale=stale,
            cached_at=stored.cached_at,
            ttl_class=stored.ttl_class,
        )

    async def stats(self) -> dict[str, int]:
        now = self._clock()
        entries = await self._store.entries()
        return {
            "entries": len(entries),
            "live": sum(1 for e in entries if e.ttl_class == TtlClass.LIVE),
            "static": sum(1 for e in entries if e.ttl_class == TtlClass.STATIC),
            "expired": sum(1 for e in entries if not self.is_valid(e, now)),
        }
