"""Domain enumerations for Dugout."""
from __future__ import annotations

from enum import Enum


class AbstractGameState(str, Enum):
    PREVIEW = "Preview"
    LIVE = "Live"
    FINAL = "Final"

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]

    @classmethod
    def parse(cls, raw: object) -> "AbstractGameState":
        """Provider value to enum; unknown or missing values read as Preview."""
        if isinstance(raw, str):
            for member in cls:
                if member.value.lower() == raw.strip().lower():
                    return member
        return cls.PREVIEW


_STATE_RANK = {
    AbstractGameState.PREVIEW: 0,
    AbstractGameState.LIVE: 1,
    AbstractGameState.FINAL: 2,
}


class TtlClass(str, Enum):
    LIVE = "live"
    STATIC = "static"


class CacheSource(str, Enum):
    CACHE = "cache"
    API = "api"
    STALE = "stale"


class PredictionKind(str, Enum):
    AT_BAT = "at_bat"
    PITCHER = "pitcher"


class OutcomeCategory(str, Enum):
    HIT = "hit"
    WALK = "walk"
    OUT = "out"
    SACRIFICE = "sacrifice"
    ERROR = "error"
    HIT_BY_PITCH = "hit_by_pitch"
    BASERUNNING = "baserunning"
    ADMINISTRATIVE = "administrative"
    OTHER = "other"


class JobState(str, Enum):
    DISABLED = "disabled"
    ENABLED_IDLE = "enabled_idle"
    ENABLED_RUNNING = "enabled_running"


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    ERROR = "error"
