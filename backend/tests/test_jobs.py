"""
Tests for the recurring job bodies, the audit log and the control surface.

Run: pytest backend/tests/test_jobs.py -v
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from factories import make_snapshot
from scheduler.audit import AuditLog
from scheduler.control import ControlSurface
from scheduler.jobs import GAME_STATE_SYNC, PREDICTION_RESOLUTION, GameJobs
from scheduler.service import JobScheduler
from shared.config import Settings
from shared.errors import UpstreamError
from shared.models.domain import HealthSummary, JobRunResult, ResolutionReport, SnapshotRead
from shared.models.enums import CacheSource, HealthStatus, SchedulerState


def snapshot_read(stale: bool = False) -> SnapshotRead:
    return SnapshotRead(
        snapshot=make_snapshot(game_pk=745001),
        source=CacheSource.STALE if stale else CacheSource.API,
        stale=stale,
    )


@pytest.fixture
def games() -> MagicMock:
    games = MagicMock()
    games.current_game_snapshot = AsyncMock(return_value=snapshot_read())
    games.get_snapshot = AsyncMock(return_value=snapshot_read())
    return games


@pytest.fixture
def resolver() -> MagicMock:
    resolver = MagicMock()
    resolver.resolve_pending = AsyncMock(return_value=ResolutionReport(game_pk=745001, resolved_count=2))
    return resolver


@pytest.fixture
def audit() -> AsyncMock:
    return AsyncMock(spec=AuditLog)


# ── Job bodies ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sync_records_successful_fetch(
    games: MagicMock, resolver: MagicMock, audit: AsyncMock, settings: Settings
) -> None:
    jobs = GameJobs(games, resolver, audit, settings)

    data = await jobs.sync_game_state()

    assert data["game_pk"] == 745001
    assert data["source"] == "api"
    audit.record_sync.assert_awaited_once()
    assert audit.record_sync.await_args.args[:2] == (745001, "success")


@pytest.mark.asyncio
async def test_sync_failure_is_audited_and_reraised(
    games: MagicMock, resolver: MagicMock, audit: AsyncMock, settings: Settings
) -> None:
    games.current_game_snapshot.side_effect = UpstreamError(503, "down")
    jobs = GameJobs(games, resolver, audit, settings)

    with pytest.raises(UpstreamError):
        await jobs.sync_game_state()

    assert audit.record_sync.await_args.args[:2] == (None, "error")


@pytest.mark.asyncio
async def test_sync_without_tracked_game(games: MagicMock, resolver: MagicMock, settings: Settings) -> None:
    games.current_game_snapshot.return_value = None

    assert await GameJobs(games, resolver, None, settings).sync_game_state() == {"game_pk": None}


@pytest.mark.asyncio
async def test_resolution_job_reports_counts(
    games: MagicMock, resolver: MagicMock, audit: AsyncMock, settings: Settings
) -> None:
    jobs = GameJobs(games, resolver, audit, settings)

    data = await jobs.resolve_predictions()

    assert data["resolved_count"] == 2
    assert data["source"] == "api"
    resolver.resolve_pending.assert_awaited_once()
    audit.record_resolution.assert_awaited_once()


@pytest.mark.asyncio
async def test_resolution_for_specific_game_uses_that_snapshot(
    games: MagicMock, resolver: MagicMock, settings: Settings
) -> None:
    jobs = GameJobs(games, resolver, None, settings)

    read, report = await jobs.resolve(745001)

    games.get_snapshot.assert_awaited_once_with(745001)
    games.current_game_snapshot.assert_not_awaited()
    assert read is not None and report.resolved_count == 2


def test_definitions_follow_settings(games: MagicMock, resolver: MagicMock, settings: Settings) -> None:
    defs = {d.name: d for d in GameJobs(games, resolver, None, settings).definitions()}

    assert set(defs) == {GAME_STATE_SYNC, PREDICTION_RESOLUTION}
    assert defs[GAME_STATE_SYNC].interval_s == settings.game_sync_interval_s
    assert defs[PREDICTION_RESOLUTION].retry_attempts == settings.resolution_retry_attempts


# ── Audit log ───────────────────────────────────────────────────────────

def recording_db() -> tuple[MagicMock, list]:
    added: list = []
    session = MagicMock()
    session.add.side_effect = added.append

    @asynccontextmanager
    async def write_session() -> AsyncIterator[MagicMock]:
        yield session

    db = MagicMock()
    db.write_session = write_session
    return db, added


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "success, attempts, status",
    [(True, 1, HealthStatus.HEALTHY), (True, 2, HealthStatus.DEGRADED), (False, 3, HealthStatus.ERROR)],
)
async def test_job_completion_health_row(
    settings: Settings, success: bool, attempts: int, status: HealthStatus
) -> None:
    db, added = recording_db()
    audit = AuditLog(db, settings)

    await audit.on_job_complete("game_state_sync", JobRunResult(success=success, attempts=attempts))

    assert len(added) == 1
    assert added[0].service_name == "job:game_state_sync"
    assert added[0].status == status.value


@pytest.mark.asyncio
async def test_audit_write_failure_is_swallowed(settings: Settings) -> None:
    @asynccontextmanager
    async def broken() -> AsyncIterator[None]:
        raise OperationalError("INSERT", {}, Exception("db down"))
        yield  # pragma: no cover

    db = MagicMock()
    db.write_session = broken

    await AuditLog(db, settings).record_resolution(ResolutionReport(game_pk=1))


@pytest.mark.asyncio
async def test_health_summary_read_failure_is_reported(settings: Settings) -> None:
    @asynccontextmanager
    async def broken() -> AsyncIterator[None]:
        raise OperationalError("SELECT", {}, Exception("db down"))
        yield  # pragma: no cover

    db = MagicMock()
    db.read_session = broken

    summary = await AuditLog(db, settings).health_summary()

    assert summary.total_services == 0
    assert summary.error is not None


# ── Control surface ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_control_surface_health_report(
    games: MagicMock, resolver: MagicMock, audit: AsyncMock, settings: Settings
) -> None:
    audit.health_summary.return_value = HealthSummary(total_services=1, healthy_services=1)
    games.cache.stats = AsyncMock(return_value={"entries": 1, "live": 1, "static": 0, "expired": 0})
    games.breaker.stats = {"name": "mlb_live_feed", "state": "closed"}
    scheduler = JobScheduler(settings, retry_backoff_s=0)
    control = ControlSurface(scheduler, GameJobs(games, resolver, audit, settings), games, audit)

    report = await control.get_system_health_summary()

    assert report.scheduler == SchedulerState.STOPPED
    assert report.cache["entries"] == 1
    assert report.upstream_circuit["state"] == "closed"


@pytest.mark.asyncio
async def test_control_surface_resolve_predictions(
    games: MagicMock, resolver: MagicMock, audit: AsyncMock, settings: Settings
) -> None:
    scheduler = JobScheduler(settings, retry_backoff_s=0)
    control = ControlSurface(scheduler, GameJobs(games, resolver, audit, settings), games, audit)

    run = await control.resolve_predictions(745001)

    assert run.report.resolved_count == 2
    assert run.source == CacheSource.API
    assert run.stale is False
