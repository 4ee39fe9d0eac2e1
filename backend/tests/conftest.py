"""Shared fixtures: a controllable clock and settings that ignore the environment."""
from __future__ import annotations

import pytest

from factories import SEATTLE, FakeClock
from shared.config import CacheBackend, Settings


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        cache_backend=CacheBackend.MEMORY,
        tracked_team_id=SEATTLE,
        live_cache_ttl_s=10,
        static_cache_ttl_s=300,
        job_retry_backoff_s=0,
        metrics_enabled=False,
    )
