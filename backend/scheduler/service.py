"""
Job scheduler for Dugout.
Process-wide registry of named recurring jobs (game state sync, prediction
resolution) with enable/disable, on-demand triggers and status reporting.

Per job: disabled -> enabled_idle <-> enabled_running.
Scheduler: stopped <-> running.

A job runs as its own task. Interval timers and trigger callers only await
it through ``asyncio.shield``, so stopping the scheduler cancels future
ticks while a run already in flight finishes on its own. At most one run
per job exists at a time; a trigger arriving during a run is coalesced.
"""
from __future__ import annotations

import asyncio
import signal
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.errors import UnknownJobError
from shared.models.domain import JobRunReport, JobRunResult, JobStatus
from shared.models.enums import JobState, SchedulerState
from shared.utils.logging import get_logger, job_context, setup_logging
from shared.utils.metrics import (
    JOB_DURATION,
    JOB_RUNS,
    JOBS_IN_FLIGHT,
    SCHEDULER_RUNNING,
    start_metrics_server,
)

logger = get_logger(__name__)

JobFunc = Callable[[], Awaitable[dict[str, Any]]]
CompletionHook = Callable[[str, JobRunResult], Awaitable[None]]


@dataclass
class JobDefinition:
    name: str
    func: JobFunc
    interval_s: float
    timeout_s: float
    retry_attempts: int = 1
    label: str = ""
    enabled: bool = True


class _JobRecord:
    """Mutable runtime state for one registered job."""

    def __init__(self, definition: JobDefinition) -> None:
        self.definition = definition
        self.enabled = definition.enabled
        self.run_count = 0
        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[JobRunResult] = None
        self.in_flight: Optional[asyncio.Task[JobRunResult]] = None
        self.timer: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()

    @property
    def state(self) -> JobState:
        if not self.enabled:
            return JobState.DISABLED
        return JobState.ENABLED_RUNNING if self.running else JobState.ENABLED_IDLE


class JobScheduler:
    """
    Args:
        settings: Supplies the retry backoff.
        on_complete: Awaited after every run with the job name and result.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        on_complete: CompletionHook | None = None,
        retry_backoff_s: float | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._on_complete = on_complete
        self._backoff_s = (
            retry_backoff_s if retry_backoff_s is not None else self._settings.job_retry_backoff_s
        )
        self._jobs: dict[str, _JobRecord] = {}
        self._state = SchedulerState.STOPPED

    @property
    def state(self) -> SchedulerState:
        return self._state

    def register(self, definition: JobDefinition) -> None:
        if definition.name in self._jobs:
            raise ValueError(f"job already registered: {definition.name}")
        self._jobs[definition.name] = _JobRecord(definition)
        if self._state == SchedulerState.RUNNING and definition.enabled:
            self._arm(self._jobs[definition.name])

    def _get(self, name: str) -> _JobRecord:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(name) from None

    # ── Lifecycle ───────────────────────────────────────────────────────
    async def start(self) -> None:
        """Arm interval timers for every enabled job."""
        if self._state == SchedulerState.RUNNING:
            return
        self._state = SchedulerState.RUNNING
        SCHEDULER_RUNNING.set(1)
        for record in self._jobs.values():
            if record.enabled:
                self._arm(record)
        logger.info("scheduler_started", jobs=[n for n, r in self._jobs.items() if r.enabled])

    async def stop(self) -> None:
        """Disarm timers. Runs already in flight are left to finish."""
        if self._state == SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        SCHEDULER_RUNNING.set(0)
        timers = [r.timer for r in self._jobs.values() if r.timer is not None]
        for record in self._jobs.values():
            self._disarm(record)
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        logger.info(
            "scheduler_stopped",
            in_flight=[n for n, r in self._jobs.items() if r.running],
        )

    async def drain(self, timeout_s: float | None = None) -> None:
        """Wait for in-flight runs to finish (used on shutdown after stop())."""
        pending = [r.in_flight for r in self._jobs.values() if r.running]
        if not pending:
            return
        done, still_running = await asyncio.wait(pending, timeout=timeout_s)
        if still_running:
            logger.warning("scheduler_drain_timeout", remaining=len(still_running))

    def set_enabled(self, name: str, enabled: bool) -> JobStatus:
        record = self._get(name)
        record.enabled = enabled
        if self._state == SchedulerState.RUNNING:
            if enabled:
                self._arm(record)
            else:
                self._disarm(record)
        logger.info("job_enabled_changed", job=name, enabled=enabled)
        return self._status(record)

    # ── Timers ──────────────────────────────────────────────────────────
    def _arm(self, record: _JobRecord) -> None:
        if record.timer is not None and not record.timer.done():
            return
        record.timer = asyncio.create_task(
            self._timer_loop(record), name=f"timer:{record.definition.name}"
        )

    def _disarm(self, record: _JobRecord) -> None:
        if record.timer is not None:
            record.timer.cancel()
            record.timer = None

    async def _timer_loop(self, record: _JobRecord) -> None:
        name = record.definition.name
        while True:
            if record.running:
                JOB_RUNS.labels(job=name, status="coalesced").inc()
                logger.debug("job_tick_coalesced", job=name)
            else:
                try:
                    await asyncio.shield(self._launch(record))
                except Exception:
                    logger.exception("job_launch_failed", job=name)
            await asyncio.sleep(record.definition.interval_s)

    # ── Runs ────────────────────────────────────────────────────────────
    async def trigger(self, name: str) -> JobRunReport:
        """
        Run ``name`` now, regardless of its timer phase.

        A disabled job is skipped; a job already running is not started a
        second time and the call returns a coalesced report at once.
        """
        record = self._get(name)
        if not record.enabled:
            return JobRunReport(job=name, ran=False, skipped="disabled")
        if record.running:
            JOB_RUNS.labels(job=name, status="coalesced").inc()
            logger.info("job_trigger_coalesced", job=name)
            return JobRunReport(job=name, ran=False, coalesced=True, result=record.last_result)

        result = await asyncio.shield(self._launch(record))
        return JobRunReport(job=name, ran=True, result=result)

    def _launch(self, record: _JobRecord) -> asyncio.Task[JobRunResult]:
        # in_flight is set before the first await, which is what keeps runs single-flight
        task = asyncio.create_task(self._execute(record), name=f"job:{record.definition.name}")
        record.in_flight = task
        return task

    async def _execute(self, record: _JobRecord) -> JobRunResult:
        with job_context(record.definition.name):
            return await self._run_attempts(record)

    async def _run_attempts(self, record: _JobRecord) -> JobRunResult:
        definition = record.definition
        started = time.perf_counter()
        max_attempts = max(1, definition.retry_attempts)
        attempts = 0
        data: dict[str, Any] = {}
        error: Optional[str] = None

        JOBS_IN_FLIGHT.inc()
        try:
            for attempt in range(1, max_attempts + 1):
                attempts = attempt
                try:
                    data = await asyncio.wait_for(definition.func(), timeout=definition.timeout_s)
                    error = None
                    break
                except asyncio.TimeoutError:
                    error = f"timed out after {definition.timeout_s}s"
                    logger.warning("job_attempt_timeout", job=definition.name, attempt=attempt)
                except Exception as exc:
                    error = str(exc) or type(exc).__name__
                    logger.warning(
                        "job_attempt_failed",
                        job=definition.name,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        error=error,
                        exc_info=True,
                    )
                if attempt < max_attempts and self._backoff_s > 0:
                    await asyncio.sleep(self._backoff_s * attempt)
        finally:
            JOBS_IN_FLIGHT.dec()

        duration_s = time.perf_counter() - started
        result = JobRunResult(
            success=error is None,
            duration_ms=round(duration_s * 1000, 2),
            attempts=attempts,
            error=error,
            data=data if error is None else {},
        )
        record.run_count += 1
        record.last_run_at = result.finished_at
        record.last_result = result
        JOB_RUNS.labels(job=definition.name, status="success" if result.success else "failure").inc()
        JOB_DURATION.labels(job=definition.name).observe(duration_s)
        logger.info(
            "job_completed",
            job=definition.name,
            success=result.success,
            attempts=attempts,
            duration_ms=result.duration_ms,
            error=error,
        )

        try:
            if self._on_complete is not None:
                await self._on_complete(definition.name, result)
        except Exception:
            logger.exception("job_completion_hook_failed", job=definition.name)
        finally:
            record.in_flight = None
        return result

    # ── Status ──────────────────────────────────────────────────────────
    def _status(self, record: _JobRecord) -> JobStatus:
        definition = record.definition
        return JobStatus(
            name=definition.name,
            label=definition.label,
            enabled=record.enabled,
            state=record.state,
            interval_s=definition.interval_s,
            timeout_s=definition.timeout_s,
            retry_attempts=definition.retry_attempts,
            run_count=record.run_count,
            last_run_at=record.last_run_at,
            last_result=record.last_result,
        )

    def get_status(self) -> dict[str, JobStatus]:
        return {name: self._status(record) for name, record in self._jobs.items()}


async def main() -> None:
    """Scheduler service entrypoint: runs the jobs without the HTTP surface."""
    from scheduler.runtime import build_runtime

    settings = get_settings()
    setup_logging("scheduler")
    start_metrics_server()

    runtime = build_runtime(settings)
    await runtime.open()
    if settings.db_create_schema:
        await runtime.db.create_schema()

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    await runtime.scheduler.start()
    logger.info("scheduler_service_started", instance_id=settings.instance_id)
    try:
        await shutdown.wait()
    finally:
        await runtime.close()
        logger.info("scheduler_service_stopped")


if __name__ == "__main__":
    asyncio.run(main())
