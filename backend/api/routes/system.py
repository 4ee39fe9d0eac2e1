"""
Scheduler and system control endpoints.

GET  /v1/system/jobs                  - Scheduler state and per-job status.
POST /v1/system/jobs/{name}/trigger   - Run a job now (coalesces with an in-flight run).
PUT  /v1/system/jobs/{name}/enabled   - Enable or disable a job.
GET  /v1/system/health                - Recent service health plus cache and upstream stats.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shared.models.domain import JobRunReport, JobStatus, SchedulerStatus, SystemHealthReport

from api.dependencies import get_control
from scheduler.control import ControlSurface

router = APIRouter(prefix="/v1/system", tags=["system"])


class JobEnabledBody(BaseModel):
    enabled: bool


@router.get("/jobs")
async def list_jobs(control: ControlSurface = Depends(get_control)) -> SchedulerStatus:
    return control.get_job_status()


@router.post("/jobs/{name}/trigger")
async def trigger_job(
    name: str,
    control: ControlSurface = Depends(get_control),
) -> JobRunReport:
    """
    Run the named job immediately.

    If the job is already running the call returns at once with
    ``coalesced=true`` and the previous result; a disabled job is
    reported as skipped.
    """
    return await control.trigger_job(name)


@router.put("/jobs/{name}/enabled")
async def set_job_enabled(
    name: str,
    body: JobEnabledBody,
    control: ControlSurface = Depends(get_control),
) -> JobStatus:
    return control.set_job_enabled(name, body.enabled)


@router.get("/health")
async def system_health(control: ControlSurface = Depends(get_control)) -> SystemHealthReport:
    """Latest health row per service over the recent window."""
    return await control.get_system_health_summary()
