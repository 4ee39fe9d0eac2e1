"""
Pydantic v2 domain models shared across all Dugout services.
These are the canonical wire/internal representations, NOT ORM models.

Provider documents are decoded into these models by
``ingest.normalization.feed_parser``; every field the core reads has a
defensive default so that a partial document still validates.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import (
    AbstractGameState,
    CacheSource,
    JobState,
    PredictionKind,
    SchedulerState,
    TtlClass,
)

# result.type values that mean the at-bat is still open
IN_PROGRESS_RESULT_TYPES = frozenset({"at_bat", "in_progress"})

VOID_DETAILED_STATES = frozenset({"postponed", "cancelled", "canceled"})
VOID_CODED_STATES = frozenset({"C", "D"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def innings_to_outs(innings_pitched: str | float | None) -> int:
    """Baseball notation to outs: "6.1" is six full innings plus one out."""
    if innings_pitched is None:
        return 0
    text = str(innings_pitched).strip()
    if not text:
        return 0
    whole, _, frac = text.partition(".")
    try:
        full = int(whole or 0)
        partial = int(frac[:1] or 0)
    except ValueError:
        return 0
    return full * 3 + min(partial, 2)


def outs_to_innings(outs: int) -> str:
    """Outs to baseball notation: 19 -> "6.1"."""
    return f"{outs // 3}.{outs % 3}"


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Schedule ────────────────────────────────────────────────────────────
class GameSummary(DomainModel):
    """One game entry of a schedule document."""
    game_pk: int
    game_date: Optional[datetime] = None
    official_date: Optional[str] = None
    abstract_state: AbstractGameState = AbstractGameState.PREVIEW
    detailed_state: str = ""
    home_team_id: Optional[int] = None
    home_team_name: str = ""
    away_team_id: Optional[int] = None
    away_team_name: str = ""
    home_probable_pitcher: Optional[str] = None
    away_probable_pitcher: Optional[str] = None
    venue: Optional[str] = None

    def involves(self, team_id: int) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)


# ── Plays ───────────────────────────────────────────────────────────────
class PlayCount(DomainModel):
    balls: int = 0
    strikes: int = 0
    outs: int = 0


class PlayResult(DomainModel):
    type: Optional[str] = None
    event: Optional[str] = None
    description: Optional[str] = None
    rbi: int = 0


class Play(DomainModel):
    at_bat_index: int
    inning: Optional[int] = None
    half_inning: Optional[str] = None
    count: PlayCount = Field(default_factory=PlayCount)
    result: PlayResult = Field(default_factory=PlayResult)
    batter_id: Optional[int] = None
    batter_name: Optional[str] = None
    pitcher_id: Optional[int] = None
    pitcher_name: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        kind = self.result.type
        return kind is not None and kind not in IN_PROGRESS_RESULT_TYPES


# ── Boxscore ────────────────────────────────────────────────────────────
class PitcherLine(DomainModel):
    person_id: int
    full_name: str = ""
    is_starter: bool = False
    innings_pitched: str = "0.0"
    hits: int = 0
    earned_runs: int = 0
    walks: int = 0
    strikeouts: int = 0
    pitches: int = 0

    @property
    def outs(self) -> int:
        return innings_to_outs(self.innings_pitched)

    @property
    def innings_value(self) -> float:
        """Innings as a real number, e.g. "6.1" -> 6.333."""
        return round(self.outs / 3, 3)


class BoxscoreTeam(DomainModel):
    team_id: Optional[int] = None
    pitchers: list[PitcherLine] = Field(default_factory=list)

    def starter(self) -> Optional[PitcherLine]:
        for line in self.pitchers:
            if line.is_starter:
                return line
        return None

    def line_for(self, person_id: int) -> Optional[PitcherLine]:
        for line in self.pitchers:
            if line.person_id == person_id:
                return line
        return None


class Boxscore(DomainModel):
    home: BoxscoreTeam = Field(default_factory=BoxscoreTeam)
    away: BoxscoreTeam = Field(default_factory=BoxscoreTeam)

    def line_for(self, person_id: int) -> Optional[PitcherLine]:
        return self.home.line_for(person_id) or self.away.line_for(person_id)


# ── Game snapshot ───────────────────────────────────────────────────────
class GameSnapshot(DomainModel):
    """A complete, self-consistent game document as of ``fetched_at``."""
    game_pk: int
    abstract_state: AbstractGameState = AbstractGameState.PREVIEW
    detailed_state: str = ""
    coded_state: Optional[str] = None
    sequence: Optional[str] = None
    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    plays: list[Play] = Field(default_factory=list)
    current_at_bat: Optional[Play] = None
    boxscore: Boxscore = Field(default_factory=Boxscore)
    fetched_at: float = 0.0

    @property
    def is_final(self) -> bool:
        return self.abstract_state == AbstractGameState.FINAL

    @property
    def is_postponed_or_cancelled(self) -> bool:
        if self.detailed_state.strip().lower() in VOID_DETAILED_STATES:
            return True
        return (self.coded_state or "").upper() in VOID_CODED_STATES

    def play(self, at_bat_index: int) -> Optional[Play]:
        """The play with this index, preferring the closed record from allPlays."""
        for play in self.plays:
            if play.at_bat_index == at_bat_index:
                return play
        current = self.current_at_bat
        if current is not None and current.at_bat_index == at_bat_index:
            return current
        return None

    def side_for_team(self, team_id: int) -> Optional[BoxscoreTeam]:
        if self.home_team_id == team_id:
            return self.boxscore.home
        if self.away_team_id == team_id:
            return self.boxscore.away
        return None


# ── Cache ───────────────────────────────────────────────────────────────
class CacheEntry(DomainModel):
    key: str
    document: Any
    abstract_state: AbstractGameState
    ttl_class: TtlClass
    cached_at: float
    sequence: Optional[str] = None


class CacheRead(DomainModel):
    """A document plus which freshness class served it."""
    document: Any
    source: CacheSource
    stale: bool = False
    cached_at: Optional[float] = None
    ttl_class: Optional[TtlClass] = None


class SnapshotRead(DomainModel):
    snapshot: GameSnapshot
    source: CacheSource
    stale: bool = False
    cached_at: Optional[float] = None


# ── Predictions ─────────────────────────────────────────────────────────
class _PredictionBase(DomainModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: str = ""
    game_pk: int
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    points_earned: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


class AtBatPrediction(_PredictionBase):
    kind: ClassVar[PredictionKind] = PredictionKind.AT_BAT
    at_bat_index: int
    prediction: str
    prediction_category: Optional[str] = None


class PitcherPrediction(_PredictionBase):
    kind: ClassVar[PredictionKind] = PredictionKind.PITCHER
    pitcher_id: int
    pitcher_name: str = ""
    predicted_ip: float = 0.0
    predicted_hits: int = 0
    predicted_earned_runs: int = 0
    predicted_walks: int = 0
    predicted_strikeouts: int = 0


Prediction = Union[AtBatPrediction, PitcherPrediction]


class PitcherActuals(DomainModel):
    """Frozen stat line a pitcher prediction is scored against."""
    innings_pitched: float
    outs: int = 0
    hits: int
    earned_runs: int
    walks: int
    strikeouts: int

    @classmethod
    def from_line(cls, line: PitcherLine) -> "PitcherActuals":
        return cls(
            innings_pitched=line.innings_value,
            outs=line.outs,
            hits=line.hits,
            earned_runs=line.earned_runs,
            walks=line.walks,
            strikeouts=line.strikeouts,
        )


class ResolutionReport(DomainModel):
    game_pk: int
    resolved_count: int = 0
    voided_count: int = 0
    pending_count: int = 0
    conflict_count: int = 0
    points_awarded: int = 0
    duration_ms: float = 0.0


# ── Jobs ────────────────────────────────────────────────────────────────
class JobRunResult(DomainModel):
    success: bool
    duration_ms: float = 0.0
    attempts: int = 1
    error: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    finished_at: datetime = Field(default_factory=utcnow)


class JobRunReport(DomainModel):
    """What a trigger call did: ran, coalesced onto a run in flight, or skipped."""
    job: str
    ran: bool
    coalesced: bool = False
    skipped: Optional[str] = None
    result: Optional[JobRunResult] = None


class JobStatus(DomainModel):
    name: str
    label: str = ""
    enabled: bool
    state: JobState
    interval_s: float
    timeout_s: float
    retry_attempts: int
    run_count: int = 0
    last_run_at: Optional[datetime] = None
    last_result: Optional[JobRunResult] = None


class HealthSummary(DomainModel):
    total_services: int = 0
    healthy_services: int = 0
    degraded_services: int = 0
    error_services: int = 0
    last_updated: Optional[datetime] = None
    error: Optional[str] = None


# ── Control surface ─────────────────────────────────────────────────────
class SchedulerStatus(DomainModel):
    state: SchedulerState
    jobs: dict[str, JobStatus] = Field(default_factory=dict)


class SystemHealthReport(DomainModel):
    summary: HealthSummary
    scheduler: SchedulerState
    cache: dict[str, int] = Field(default_factory=dict)
    upstream_circuit: dict[str, Any] = Field(default_factory=dict)


class ResolutionRun(DomainModel):
    report: ResolutionReport
    source: Optional[CacheSource] = None
    stale: bool = False
