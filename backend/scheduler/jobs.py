"""
The two recurring jobs: keep the tracked game's snapshot fresh, and
resolve predictions against it.
"""
from __future__ import annotations

import time
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import ResolutionReport, SnapshotRead
from shared.utils.logging import get_logger

from ingest.service import GameStateService
from resolution.resolver import PredictionResolver
from scheduler.audit import AuditLog
from scheduler.service import JobDefinition

logger = get_logger(__name__)

GAME_STATE_SYNC = "game_state_sync"
PREDICTION_RESOLUTION = "prediction_resolution"


class GameJobs:
    def __init__(
        self,
        games: GameStateService,
        resolver: PredictionResolver,
        audit: AuditLog | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._games = games
        self._resolver = resolver
        self._audit = audit
        self._settings = settings or get_settings()

    async def _snapshot(self, game_pk: Optional[int]) -> Optional[SnapshotRead]:
        if game_pk is not None:
            return await self._games.get_snapshot(game_pk)
        return await self._games.current_game_snapshot()

    async def sync_game_state(self) -> dict[str, Any]:
        """Refresh the tracked team's current game through the cache."""
        started = time.perf_counter()
        try:
            read = await self._games.current_game_snapshot()
        except UpstreamError as exc:
            if self._audit is not None:
                await self._audit.record_sync(
                    None,
                    "error",
                    error_message=str(exc),
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
            raise

        if read is None:
            logger.debug("sync_no_tracked_game")
            return {"game_pk": None}

        snapshot = read.snapshot
        if self._audit is not None:
            await self._audit.record_sync(
                snapshot.game_pk,
                "stale" if read.stale else "success",
                source=read.source.value,
                data_size=len(snapshot.plays),
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        current = snapshot.current_at_bat
        return {
            "game_pk": snapshot.game_pk,
            "abstract_state": snapshot.abstract_state.value,
            "detailed_state": snapshot.detailed_state,
            "source": read.source.value,
            "stale": read.stale,
            "current_at_bat": current.at_bat_index if current is not None else None,
        }

    async def resolve(self, game_pk: Optional[int] = None) -> tuple[Optional[SnapshotRead], ResolutionReport]:
        """
        Resolve pending predictions for ``game_pk`` (default: the tracked
        team's current game).
        """
        read = await self._snapshot(game_pk)
        if read is None:
            return None, ResolutionReport(game_pk=game_pk or 0)
        report = await self._resolver.resolve_pending(read.snapshot.game_pk, read.snapshot)
        if self._audit is not None and (report.resolved_count or report.conflict_count):
            await self._audit.record_resolution(report)
        return read, report

    async def resolve_predictions(self) -> dict[str, Any]:
        read, report = await self.resolve()
        data = report.model_dump(mode="json")
        data["source"] = read.source.value if read is not None else None
        return data

    def definitions(self) -> list[JobDefinition]:
        s = self._settings
        return [
            JobDefinition(
                name=GAME_STATE_SYNC,
                label="Game State Synchronization",
                func=self.sync_game_state,
                interval_s=s.game_sync_interval_s,
                timeout_s=s.game_sync_timeout_s,
                retry_attempts=s.game_sync_retry_attempts,
            ),
            JobDefinition(
                name=PREDICTION_RESOLUTION,
                label="Prediction Resolution",
                func=self.resolve_predictions,
                interval_s=s.resolution_interval_s,
                timeout_s=s.resolution_timeout_s,
                retry_attempts=s.resolution_retry_attempts,
            ),
        ]
