"""
Game state service.
Cache-or-fetch access to schedules and live feeds for the sync and
resolution jobs. Live-feed fetches go through a circuit breaker; an open
circuit is reported as an UpstreamError so the stale-serve policy applies.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from shared.config import Settings, get_settings
from shared.errors import UpstreamError
from shared.models.domain import GameSnapshot, GameSummary, SnapshotRead
from shared.models.enums import AbstractGameState
from shared.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from shared.utils.logging import get_logger
from shared.utils.redis_manager import game_key, schedule_key

from ingest.cache import Fetched, GameSnapshotCache
from ingest.providers.mlb_stats import MLBStatsClient, select_team_game

logger = get_logger(__name__)


class GameStateService:
    """
    Reads game documents through the snapshot cache.

    Args:
        client: Upstream MLB Stats API client.
        cache: Snapshot cache shared with every other reader.
        breaker: Circuit breaker around live-feed fetches.
        today: Returns the tracked team's local date; injectable for tests.
    """

    def __init__(
        self,
        client: MLBStatsClient,
        cache: GameSnapshotCache,
        settings: Settings | None = None,
        breaker: CircuitBreaker | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._cache = cache
        self._breaker = breaker or CircuitBreaker(
            "mlb_live_feed",
            failure_threshold=self._settings.circuit_failure_threshold,
            recovery_timeout_s=self._settings.circuit_recovery_timeout_s,
        )
        self._tz = ZoneInfo(self._settings.tracked_team_timezone)
        self._today = today or (lambda: datetime.now(self._tz).date())

    @property
    def cache(self) -> GameSnapshotCache:
        return self._cache

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    # ── Live feed ───────────────────────────────────────────────────────
    async def get_snapshot(self, game_pk: int) -> SnapshotRead:
        """
        The game's snapshot from cache, a fresh fetch, or a stale fallback.

        Raises:
            UpstreamError: When the provider fails and nothing is cached.
        """

        async def fetch() -> Fetched:
            try:
                snapshot = await self._breaker.call(self._client.fetch_live_feed, game_pk)
            except CircuitBreakerOpen as exc:
                raise UpstreamError(None, str(exc)) from exc
            return Fetched(
                document=snapshot.model_dump(mode="json"),
                abstract_state=snapshot.abstract_state,
                sequence=snapshot.sequence,
            )

        read = await self._cache.read_through(game_key(game_pk), fetch)
        return SnapshotRead(
            snapshot=GameSnapshot.model_validate(read.document),
            source=read.source,
            stale=read.stale,
            cached_at=read.cached_at,
        )

    # ── Schedule ────────────────────────────────────────────────────────
    async def get_schedule(self, team_id: int, start: date, end: date) -> list[GameSummary]:
        async def fetch() -> Fetched:
            games = await self._client.fetch_schedule(team_id, start, end)
            any_live = any(g.abstract_state == AbstractGameState.LIVE for g in games)
            return Fetched(
                document=[g.model_dump(mode="json") for g in games],
                abstract_state=AbstractGameState.LIVE if any_live else AbstractGameState.PREVIEW,
                monotonic=False,
            )

        key = schedule_key(team_id, start.isoformat(), end.isoformat())
        read = await self._cache.read_through(key, fetch)
        return [GameSummary.model_validate(g) for g in read.document or []]

    async def find_team_game(self, team_id: int | None = None) -> Optional[GameSummary]:
        """
        The tracked team's game for today (team-local date), else its most
        recent game in the lookback window.
        """
        team_id = team_id or self._settings.tracked_team_id
        today = self._today()

        game = select_team_game(await self.get_schedule(team_id, today, today), team_id)
        if game is not None:
            return game

        start = today - timedelta(days=self._settings.schedule_lookback_days)
        game = select_team_game(await self.get_schedule(team_id, start, today), team_id)
        if game is None:
            logger.info("no_team_game_found", team_id=team_id, since=start.isoformat())
        return game

    async def current_game_snapshot(self, team_id: int | None = None) -> Optional[SnapshotRead]:
        game = await self.find_team_game(team_id)
        if game is None:
            return None
        return await self.get_snapshot(game.game_pk)
