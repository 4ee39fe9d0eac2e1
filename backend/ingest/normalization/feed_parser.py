"""
Decoders for MLB Stats API documents.

Turns the loosely typed schedule and live-feed JSON into the explicit
domain models, reading only the fields the sync and resolution engine
consumes. Missing or oddly shaped fields fall back to defaults; only a
body that is not a JSON object at all is treated as a decode failure.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from shared.errors import UpstreamError
from shared.models.domain import (
    Boxscore,
    BoxscoreTeam,
    GameSnapshot,
    GameSummary,
    PitcherLine,
    Play,
    PlayCount,
    PlayResult,
)
from shared.models.enums import AbstractGameState
from shared.models.outcomes import normalize_outcome, outcome_from_description
from shared.utils.logging import get_logger

logger = get_logger(__name__)

STARTER_NOTE = "starting pitcher"
DEFAULT_PLAY_TYPE = "atBat"


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _opt_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# ── Schedule ────────────────────────────────────────────────────────────
def parse_schedule(payload: Any) -> list[GameSummary]:
    """``{dates: [{games: [...]}]}`` to summaries, in provider order."""
    if not isinstance(payload, dict):
        raise UpstreamError(None, "schedule document is not a JSON object")

    games: list[GameSummary] = []
    for day in _list(payload.get("dates")):
        for raw in _list(_dict(day).get("games")):
            summary = _parse_game_summary(_dict(raw))
            if summary is not None:
                games.append(summary)
    return games


def _parse_game_summary(raw: dict[str, Any]) -> Optional[GameSummary]:
    game_pk = _opt_int(raw.get("gamePk"))
    if game_pk is None:
        return None
    status = _dict(raw.get("status"))
    teams = _dict(raw.get("teams"))
    home = _dict(teams.get("home"))
    away = _dict(teams.get("away"))
    return GameSummary(
        game_pk=game_pk,
        game_date=_parse_datetime(raw.get("gameDate")),
        official_date=_opt_str(raw.get("officialDate")),
        abstract_state=AbstractGameState.parse(status.get("abstractGameState")),
        detailed_state=status.get("detailedState") or "",
        home_team_id=_opt_int(_dict(home.get("team")).get("id")),
        home_team_name=_dict(home.get("team")).get("name") or "",
        away_team_id=_opt_int(_dict(away.get("team")).get("id")),
        away_team_name=_dict(away.get("team")).get("name") or "",
        home_probable_pitcher=_opt_str(_dict(home.get("probablePitcher")).get("fullName")),
        away_probable_pitcher=_opt_str(_dict(away.get("probablePitcher")).get("fullName")),
        venue=_opt_str(_dict(raw.get("venue")).get("name")),
    )


# ── Live feed ───────────────────────────────────────────────────────────
def parse_live_feed(
    payload: Any,
    fetched_at: float,
    game_pk: Optional[int] = None,
) -> GameSnapshot:
    """``{metaData, gameData, liveData}`` to a GameSnapshot."""
    if not isinstance(payload, dict):
        raise UpstreamError(None, "live feed document is not a JSON object")

    game_data = _dict(payload.get("gameData"))
    live_data = _dict(payload.get("liveData"))
    status = _dict(game_data.get("status"))
    teams = _dict(game_data.get("teams"))

    pk = _opt_int(payload.get("gamePk")) or _opt_int(_dict(game_data.get("game")).get("pk"))
    if pk is None:
        pk = game_pk
    if pk is None:
        raise UpstreamError(None, "live feed document carries no gamePk")

    plays_doc = _dict(live_data.get("plays"))
    plays = [p for p in (_parse_play(_dict(raw)) for raw in _list(plays_doc.get("allPlays"))) if p]
    current = _parse_play(_dict(plays_doc.get("currentPlay")))
    if current is None:
        current = next((p for p in reversed(plays) if not p.is_complete), None)

    return GameSnapshot(
        game_pk=pk,
        abstract_state=AbstractGameState.parse(status.get("abstractGameState")),
        detailed_state=status.get("detailedState") or "",
        coded_state=_opt_str(status.get("codedGameState")),
        sequence=_opt_str(_dict(payload.get("metaData")).get("timeStamp")),
        home_team_id=_opt_int(_dict(teams.get("home")).get("id")),
        away_team_id=_opt_int(_dict(teams.get("away")).get("id")),
        plays=plays,
        current_at_bat=current,
        boxscore=_parse_boxscore(_dict(live_data.get("boxscore"))),
        fetched_at=fetched_at,
    )


def _parse_play(raw: dict[str, Any]) -> Optional[Play]:
    if not raw:
        return None
    about = _dict(raw.get("about"))
    index = _opt_int(about.get("atBatIndex"))
    if index is None:
        index = _opt_int(raw.get("atBatIndex"))
    if index is None:
        return None

    result = _dict(raw.get("result"))
    count = _dict(raw.get("count"))
    matchup = _dict(raw.get("matchup"))
    batter = _dict(matchup.get("batter"))
    pitcher = _dict(matchup.get("pitcher"))

    complete_flag = about.get("isComplete")
    description = _opt_str(result.get("description"))
    if complete_flag is False:
        result_type: Optional[str] = None
        event: Optional[str] = None
    else:
        result_type = _opt_str(result.get("type"))
        if result_type is None and complete_flag is True:
            result_type = DEFAULT_PLAY_TYPE
        event = (
            normalize_outcome(_opt_str(result.get("eventType")))
            or normalize_outcome(_opt_str(result.get("event")))
            or outcome_from_description(description)
        )

    return Play(
        at_bat_index=index,
        inning=_opt_int(about.get("inning")),
        half_inning=_opt_str(about.get("halfInning")),
        count=PlayCount(
            balls=_int(count.get("balls")),
            strikes=_int(count.get("strikes")),
            outs=_int(count.get("outs")),
        ),
        result=PlayResult(
            type=result_type,
            event=event,
            description=description,
            rbi=_int(result.get("rbi")),
        ),
        batter_id=_opt_int(batter.get("id")),
        batter_name=_opt_str(batter.get("fullName")),
        pitcher_id=_opt_int(pitcher.get("id")),
        pitcher_name=_opt_str(pitcher.get("fullName")),
    )


# ── Boxscore ────────────────────────────────────────────────────────────
def _parse_boxscore(raw: dict[str, Any]) -> Boxscore:
    teams = _dict(raw.get("teams"))
    return Boxscore(
        home=_parse_boxscore_team(_dict(teams.get("home"))),
        away=_parse_boxscore_team(_dict(teams.get("away"))),
    )


def _parse_boxscore_team(raw: dict[str, Any]) -> BoxscoreTeam:
    """
    Pitchers come either as full entries (``{person, stats, note}``) or as
    a list of person ids resolved through ``players["ID<id>"]``. The
    provider lists pitchers in order of appearance.
    """
    players = _dict(raw.get("players"))
    lines: list[PitcherLine] = []
    flagged: list[bool] = []
    for item in _list(raw.get("pitchers")):
        if isinstance(item, dict):
            entry = item
        else:
            person_id = _opt_int(item)
            if person_id is None:
                continue
            entry = _dict(players.get(f"ID{person_id}")) or {"person": {"id": person_id}}
        line, starter_hint = _parse_pitcher(entry)
        if line is not None:
            lines.append(line)
            flagged.append(starter_hint)

    if lines:
        starter_at = flagged.index(True) if any(flagged) else 0
        lines[starter_at] = lines[starter_at].model_copy(update={"is_starter": True})

    return BoxscoreTeam(team_id=_opt_int(_dict(raw.get("team")).get("id")), pitchers=lines)


def _parse_pitcher(entry: dict[str, Any]) -> tuple[Optional[PitcherLine], bool]:
    person = _dict(entry.get("person"))
    person_id = _opt_int(person.get("id"))
    if person_id is None:
        person_id = _opt_int(entry.get("id"))
    if person_id is None:
        return None, False

    stats = _dict(_dict(entry.get("stats")).get("pitching")) or _dict(entry.get("stats"))
    note = entry.get("note")
    starter_hint = (isinstance(note, str) and STARTER_NOTE in note.lower()) or _int(
        stats.get("gamesStarted")
    ) > 0

    innings = stats.get("inningsPitched")
    line = PitcherLine(
        person_id=person_id,
        full_name=person.get("fullName") or entry.get("name") or "",
        innings_pitched=str(innings) if innings not in (None, "") else "0.0",
        hits=_int(stats.get("hits")),
        earned_runs=_int(stats.get("earnedRuns")),
        walks=_int(stats.get("baseOnBalls")),
        strikeouts=_int(stats.get("strikeOuts")),
        pitches=_int(stats.get("numberOfPitches") or stats.get("pitchesThrown")),
    )
    return line, starter_hint
