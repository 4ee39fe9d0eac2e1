"""
Process wiring.
Constructs every component once, explicitly, and hands each one only the
collaborators it needs. Shared by the API process and the standalone
scheduler process.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from shared.config import CacheBackend, Settings, get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

from ingest.cache import GameSnapshotCache, MemorySnapshotStore, RedisSnapshotStore
from ingest.providers.mlb_stats import MLBStatsClient
from ingest.service import GameStateService
from resolution.evaluator import PredictionEvaluator
from resolution.repository import PredictionRepository
from resolution.resolver import PredictionResolver
from resolution.scoring import DEFAULT_SCORING
from resolution.substitution import SubstitutionDetector
from scheduler.audit import AuditLog
from scheduler.control import ControlSurface
from scheduler.jobs import GameJobs
from scheduler.service import JobScheduler

logger = get_logger(__name__)

DRAIN_TIMEOUT_S = 30.0

# Retry connection on startup (e.g. Redis/DB not ready yet in Docker)
CONNECT_RETRY_ATTEMPTS = 5
CONNECT_RETRY_BASE_DELAY_S = 1.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except (OSError, ConnectionError, asyncio.TimeoutError) as exc:
            if attempt == CONNECT_RETRY_ATTEMPTS:
                raise
            delay = CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


@dataclass
class Runtime:
    settings: Settings
    db: DatabaseManager
    redis: Optional[RedisManager]
    client: MLBStatsClient
    games: GameStateService
    resolver: PredictionResolver
    audit: AuditLog
    jobs: GameJobs
    scheduler: JobScheduler
    control: ControlSurface

    async def open(self) -> None:
        """Connect backing services. The scheduler is started separately."""
        await _connect_with_retry(self.db.connect, "postgres")
        if self.redis is not None:
            await _connect_with_retry(self.redis.connect, "redis")
        await self.client.start()
        logger.info(
            "runtime_opened",
            cache_backend=self.settings.cache_backend.value,
            tracked_team_id=self.settings.tracked_team_id,
        )

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.scheduler.drain(DRAIN_TIMEOUT_S)
        await self.client.close()
        if self.redis is not None:
            await self.redis.disconnect()
        await self.db.disconnect()
        logger.info("runtime_closed")


def build_runtime(settings: Settings | None = None) -> Runtime:
    settings = settings or get_settings()

    db = DatabaseManager(settings)
    redis: Optional[RedisManager] = None
    if settings.cache_backend == CacheBackend.REDIS:
        redis = RedisManager(settings)
        store = RedisSnapshotStore(redis, retention_s=settings.stale_retention_s)
    else:
        store = MemorySnapshotStore(retention_s=settings.stale_retention_s)

    client = MLBStatsClient(settings)
    cache = GameSnapshotCache(store, settings)
    games = GameStateService(client, cache, settings)

    evaluator = PredictionEvaluator(SubstitutionDetector(settings.tracked_team_id), DEFAULT_SCORING)
    resolver = PredictionResolver(PredictionRepository(db), evaluator)
    audit = AuditLog(db, settings)

    jobs = GameJobs(games, resolver, audit, settings)
    scheduler = JobScheduler(settings, on_complete=audit.on_job_complete)
    for definition in jobs.definitions():
        scheduler.register(definition)

    control = ControlSurface(scheduler, jobs, games, audit)
    return Runtime(
        settings=settings,
        db=db,
        redis=redis,
        client=client,
        games=games,
        resolver=resolver,
        audit=audit,
        jobs=jobs,
        scheduler=scheduler,
        control=control,
    )
