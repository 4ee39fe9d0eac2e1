"""
Inbound control surface.
What HTTP handlers (or any other caller) may ask of the running core.
"""
from __future__ import annotations

from typing import Optional

from shared.models.domain import (
    JobRunReport,
    JobStatus,
    ResolutionRun,
    SchedulerStatus,
    SnapshotRead,
    SystemHealthReport,
)
from shared.utils.logging import get_logger

from ingest.service import GameStateService
from scheduler.audit import AuditLog
from scheduler.jobs import GameJobs
from scheduler.service import JobScheduler

logger = get_logger(__name__)


class ControlSurface:
    def __init__(
        self,
        scheduler: JobScheduler,
        jobs: GameJobs,
        games: GameStateService,
        audit: AuditLog,
    ) -> None:
        self._scheduler = scheduler
        self._jobs = jobs
        self._games = games
        self._audit = audit

    def get_job_status(self) -> SchedulerStatus:
        return SchedulerStatus(state=self._scheduler.state, jobs=self._scheduler.get_status())

    async def trigger_job(self, name: str) -> JobRunReport:
        """Raises UnknownJobError for a name that was never registered."""
        logger.info("job_trigger_requested", job=name)
        return await self._scheduler.trigger(name)

    def set_job_enabled(self, name: str, enabled: bool) -> JobStatus:
        return self._scheduler.set_enabled(name, enabled)

    async def get_system_health_summary(self) -> SystemHealthReport:
        return SystemHealthReport(
            summary=await self._audit.health_summary(),
            scheduler=self._scheduler.state,
            cache=await self._games.cache.stats(),
            upstream_circuit=self._games.breaker.stats,
        )

    async def resolve_predictions(self, game_pk: int) -> ResolutionRun:
        """
        Resolve one game's pending predictions now.

        Raises:
            UpstreamError: No snapshot could be fetched or served stale.
            PersistenceError: Loading or writing predictions failed.
        """
        read, report = await self._jobs.resolve(game_pk)
        return ResolutionRun(
            report=report,
            source=read.source if read is not None else None,
            stale=read.stale if read is not None else False,
        )

    async def get_game_state(self, game_pk: Optional[int] = None) -> Optional[SnapshotRead]:
        if game_pk is not None:
            return await self._games.get_snapshot(game_pk)
        return await self._games.current_game_snapshot()
