"""
Audit and health records: system_health, game_sync_log,
prediction_resolution_log.

Writes are best-effort. A failed audit insert is logged and dropped so it
never fails the job that produced it.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from shared.config import Settings, get_settings
from shared.models.domain import HealthSummary, JobRunResult, ResolutionReport
from shared.models.enums import HealthStatus
from shared.models.orm import (
    GameSyncLogORM,
    PredictionResolutionLogORM,
    SystemHealthORM,
)
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class AuditLog:
    def __init__(self, db: DatabaseManager, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings or get_settings()

    async def _insert(self, row: Any, table: str) -> None:
        try:
            async with self._db.write_session() as session:
                session.add(row)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("audit_write_failed", table=table, error=str(exc))

    async def record_health(
        self,
        service_name: str,
        status: HealthStatus,
        response_time_ms: Optional[float] = None,
        error_message: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        await self._insert(
            SystemHealthORM(
                service_name=service_name,
                status=status.value,
                response_time=int(response_time_ms) if response_time_ms is not None else None,
                error_message=error_message,
                metadata_=metadata or {},
            ),
            "system_health",
        )

    async def record_sync(
        self,
        game_pk: Optional[int],
        status: str,
        source: Optional[str] = None,
        error_message: Optional[str] = None,
        data_size: Optional[int] = None,
        duration_ms: Optional[float] = None,
    ) -> None:
        await self._insert(
            GameSyncLogORM(
                game_pk=game_pk,
                sync_type="live_feed",
                status=status,
                source=source,
                error_message=error_message,
                data_size=data_size,
                sync_duration_ms=int(duration_ms) if duration_ms is not None else None,
            ),
            "game_sync_log",
        )

    async def record_resolution(self, report: ResolutionReport) -> None:
        await self._insert(
            PredictionResolutionLogORM(
                game_pk=report.game_pk,
                predictions_resolved=report.resolved_count,
                predictions_voided=report.voided_count,
                conflicts=report.conflict_count,
                points_awarded=report.points_awarded,
                resolution_duration_ms=int(report.duration_ms),
            ),
            "prediction_resolution_log",
        )

    async def on_job_complete(self, job_name: str, result: JobRunResult) -> None:
        """Scheduler completion hook: one system_health row per run."""
        if result.success:
            status = HealthStatus.DEGRADED if result.attempts > 1 else HealthStatus.HEALTHY
        else:
            status = HealthStatus.ERROR
        await self.record_health(
            f"job:{job_name}",
            status,
            response_time_ms=result.duration_ms,
            error_message=result.error,
            metadata={"attempts": result.attempts},
        )

    async def health_summary(self) -> HealthSummary:
        """
        Latest status per service among the most recent system_health rows.
        A read failure is reported in the summary rather than raised.
        """
        window = self._settings.health_summary_window
        try:
            async with self._db.read_session() as session:
                rows = (
                    await session.execute(
                        select(SystemHealthORM)
                        .order_by(SystemHealthORM.created_at.desc())
                        .limit(window)
                    )
                ).scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("health_summary_failed", error=str(exc))
            return HealthSummary(error=str(exc))

        latest: dict[str, SystemHealthORM] = {}
        for row in rows:
            latest.setdefault(row.service_name, row)
        statuses = [row.status for row in latest.values()]
        return HealthSummary(
            total_services=len(latest),
            healthy_services=statuses.count(HealthStatus.HEALTHY.value),
            degraded_services=statuses.count(HealthStatus.DEGRADED.value),
            error_services=statuses.count(HealthStatus.ERROR.value),
            last_updated=rows[0].created_at if rows else None,
        )
