"""
Job scheduler tests: single-flight triggers, enable/disable, retries,
timeouts and graceful stop.

Run: pytest backend/tests/test_scheduler.py -v
"""
from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from scheduler.service import JobDefinition, JobScheduler
from shared.config import Settings
from shared.errors import UnknownJobError
from shared.models.domain import JobRunResult
from shared.models.enums import JobState, SchedulerState


class GatedJob:
    """A job body that blocks until released and counts its invocations."""

    def __init__(self) -> None:
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self) -> dict[str, Any]:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return {"calls": self.calls}


def definition(func: Any, name: str = "sync", **kw: Any) -> JobDefinition:
    values: dict[str, Any] = dict(interval_s=3600, timeout_s=5, retry_attempts=1, label="Sync")
    values.update(kw)
    return JobDefinition(name=name, func=func, **values)


@pytest.fixture
def scheduler(settings: Settings) -> JobScheduler:
    return JobScheduler(settings, retry_backoff_s=0)


# ── Triggers ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_trigger_runs_job_and_reports_result(scheduler: JobScheduler) -> None:
    scheduler.register(definition(AsyncMock(return_value={"game_pk": 1})))

    report = await scheduler.trigger("sync")

    assert report.ran is True
    assert report.result is not None and report.result.success
    assert report.result.data == {"game_pk": 1}
    status = scheduler.get_status()["sync"]
    assert status.run_count == 1
    assert status.state == JobState.ENABLED_IDLE


@pytest.mark.asyncio
async def test_concurrent_triggers_share_one_run(scheduler: JobScheduler) -> None:
    job = GatedJob()
    scheduler.register(definition(job))

    first = asyncio.create_task(scheduler.trigger("sync"))
    await job.started.wait()
    assert scheduler.get_status()["sync"].state == JobState.ENABLED_RUNNING

    second = await scheduler.trigger("sync")
    job.release.set()
    first_report = await first

    assert job.calls == 1
    assert second.coalesced is True and second.ran is False
    assert first_report.ran is True


@pytest.mark.asyncio
async def test_disabled_job_is_skipped(scheduler: JobScheduler) -> None:
    func = AsyncMock(return_value={})
    scheduler.register(definition(func))

    status = scheduler.set_enabled("sync", False)
    report = await scheduler.trigger("sync")

    assert status.state == JobState.DISABLED
    assert report.skipped == "disabled"
    func.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_job(scheduler: JobScheduler) -> None:
    with pytest.raises(UnknownJobError):
        await scheduler.trigger("nope")
    with pytest.raises(UnknownJobError):
        scheduler.set_enabled("nope", True)


def test_duplicate_registration_rejected(scheduler: JobScheduler) -> None:
    scheduler.register(definition(AsyncMock()))

    with pytest.raises(ValueError):
        scheduler.register(definition(AsyncMock()))


# ── Retries and timeouts ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_failed_attempt_is_retried(scheduler: JobScheduler) -> None:
    func = AsyncMock(side_effect=[RuntimeError("flaky"), {"ok": True}])
    scheduler.register(definition(func, retry_attempts=3))

    report = await scheduler.trigger("sync")

    assert report.result is not None
    assert report.result.success is True
    assert report.result.attempts == 2


@pytest.mark.asyncio
async def test_exhausted_retries_record_failure(scheduler: JobScheduler) -> None:
    func = AsyncMock(side_effect=RuntimeError("down"))
    scheduler.register(definition(func, retry_attempts=2))

    report = await scheduler.trigger("sync")

    assert report.result is not None
    assert report.result.success is False
    assert report.result.attempts == 2
    assert report.result.error == "down"
    assert scheduler.get_status()["sync"].last_result == report.result


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_failure(scheduler: JobScheduler) -> None:
    async def slow() -> dict[str, Any]:
        await asyncio.sleep(10)
        return {}

    scheduler.register(definition(slow, timeout_s=0.01))

    report = await scheduler.trigger("sync")

    assert report.result is not None
    assert report.result.success is False
    assert "timed out" in (report.result.error or "")


@pytest.mark.asyncio
async def test_completion_hook_receives_result(settings: Settings) -> None:
    hook = AsyncMock()
    scheduler = JobScheduler(settings, on_complete=hook, retry_backoff_s=0)
    scheduler.register(definition(AsyncMock(return_value={})))

    await scheduler.trigger("sync")

    hook.assert_awaited_once()
    name, result = hook.await_args.args
    assert name == "sync"
    assert isinstance(result, JobRunResult)


# ── Lifecycle ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_start_runs_enabled_jobs_immediately(scheduler: JobScheduler) -> None:
    job = GatedJob()
    job.release.set()
    scheduler.register(definition(job))

    await scheduler.start()
    await asyncio.wait_for(job.started.wait(), timeout=1)
    await scheduler.stop()
    await scheduler.drain(1)

    assert job.calls == 1
    assert scheduler.state == SchedulerState.STOPPED


@pytest.mark.asyncio
async def test_stop_lets_in_flight_run_finish(scheduler: JobScheduler) -> None:
    job = GatedJob()
    scheduler.register(definition(job))

    await scheduler.start()
    await asyncio.wait_for(job.started.wait(), timeout=1)
    await scheduler.stop()
    assert scheduler.get_status()["sync"].state == JobState.ENABLED_RUNNING

    job.release.set()
    await scheduler.drain(1)

    status = scheduler.get_status()["sync"]
    assert status.run_count == 1
    assert status.last_result is not None and status.last_result.success


@pytest.mark.asyncio
async def test_disabled_jobs_are_not_armed(scheduler: JobScheduler) -> None:
    func = AsyncMock(return_value={})
    scheduler.register(definition(func, enabled=False))

    await scheduler.start()
    await asyncio.sleep(0.01)
    await scheduler.stop()

    func.assert_not_awaited()


@pytest.mark.asyncio
async def test_failing_completion_hook_does_not_stop_timer(settings: Settings) -> None:
    hook = AsyncMock(side_effect=RuntimeError("DatabaseManager not connected."))
    scheduler = JobScheduler(settings, on_complete=hook, retry_backoff_s=0)
    func = AsyncMock(return_value={})
    scheduler.register(definition(func, interval_s=0.01))

    await scheduler.start()
    await asyncio.sleep(0.2)
    await scheduler.stop()
    await scheduler.drain(1)

    assert func.await_count > 1
    assert scheduler.get_status()["sync"].run_count == func.await_count


@pytest.mark.asyncio
async def test_trigger_survives_failing_completion_hook(settings: Settings) -> None:
    hook = AsyncMock(side_effect=RuntimeError("audit down"))
    scheduler = JobScheduler(settings, on_complete=hook, retry_backoff_s=0)
    scheduler.register(definition(AsyncMock(return_value={"ok": True})))

    report = await scheduler.trigger("sync")

    assert report.ran is True
    assert report.result is not None and report.result.success
    assert scheduler.get_status()["sync"].state == JobState.ENABLED_IDLE


def test_enabled_change_is_logged_once(scheduler: JobScheduler) -> None:
    scheduler.register(definition(AsyncMock()))

    with capture_logs() as logs:
        scheduler.set_enabled("sync", False)

    events = [e for e in logs if e["event"] == "job_enabled_changed"]
    assert len(events) == 1
    assert events[0]["job"] == "sync" and events[0]["enabled"] is False
