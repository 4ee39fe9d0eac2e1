"""
MLB Stats API connector.
Pure request/decode: no caching, no retries, no state beyond the HTTP pool.
"""
from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import GameSnapshot, GameSummary
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.normalization.feed_parser import parse_live_feed, parse_schedule

logger = get_logger(__name__)

PROVIDER_NAME = "mlb_stats"
SCHEDULE_PATH = "/v1/schedule"
LIVE_FEED_PATH = "/v1.1/game/{game_pk}/feed/live"
SPORT_ID_MLB = 1

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def select_team_game(summaries: Sequence[GameSummary], team_id: int) -> Optional[GameSummary]:
    """
    The tracked team's game among ``summaries``: latest scheduled start wins,
    equal starts keep the first one the provider listed.
    """
    chosen: Optional[GameSummary] = None
    for game in summaries:
        if not game.involves(team_id):
            continue
        if chosen is None or (game.game_date or _EPOCH) > (chosen.game_date or _EPOCH):
            chosen = game
    return chosen


class MLBStatsClient:
    """Fetches schedule and live-feed documents and decodes them."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: ProviderHTTPClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http or ProviderHTTPClient(
            PROVIDER_NAME,
            self._settings.mlb_api_base_url,
            timeout_s=self._settings.provider_request_timeout_s,
        )
        self._clock = clock

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def fetch_schedule(
        self,
        team_id: int,
        start_date: date,
        end_date: date | None = None,
    ) -> list[GameSummary]:
        """Games for ``team_id`` between two local dates, inclusive."""
        end_date = end_date or start_date
        params: dict[str, str | int] = {
            "sportId": SPORT_ID_MLB,
            "teamId": team_id,
            "hydrate": "probablePitcher",
        }
        if start_date == end_date:
            params["date"] = start_date.isoformat()
        else:
            params["startDate"] = start_date.isoformat()
            params["endDate"] = end_date.isoformat()

        payload = await self._http.get_json(SCHEDULE_PATH, params=params, endpoint="schedule")
        games = parse_schedule(payload)
        logger.debug(
            "schedule_fetched",
            team_id=team_id,
            start=start_date.isoformat(),
            end=end_date.isoformat(),
            games=len(games),
        )
        return games

    async def fetch_live_feed(self, game_pk: int) -> GameSnapshot:
        payload = await self._http.get_json(
            LIVE_FEED_PATH.format(game_pk=game_pk), endpoint="live_feed"
        )
        snapshot = parse_live_feed(payload, fetched_at=self._clock(), game_pk=game_pk)
        logger.debug(
            "live_feed_fetched",
            game_pk=game_pk,
            state=snapshot.abstract_state.value,
            plays=len(snapshot.plays),
            sequence=snapshot.sequence,
        )
        return snapshot
