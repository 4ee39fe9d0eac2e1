"""
Unit tests for MLB Stats API document decoding and outcome codes.

Run: pytest backend/tests/test_feed_parser.py -v
"""
from __future__ import annotations

from typing import Any

import pytest

from ingest.normalization.feed_parser import parse_live_feed, parse_schedule
from shared.errors import UpstreamError
from shared.models.enums import AbstractGameState, OutcomeCategory
from shared.models.outcomes import category_for, normalize_outcome, outcome_from_description


def live_feed(**overrides: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "gamePk": 745001,
        "metaData": {"timeStamp": "20240601_203045"},
        "gameData": {
            "status": {"abstractGameState": "Live", "detailedState": "In Progress", "codedGameState": "I"},
            "teams": {"home": {"id": 136}, "away": {"id": 117}},
        },
        "liveData": {
            "plays": {
                "allPlays": [
                    {
                        "about": {"atBatIndex": 3, "inning": 1, "halfInning": "bottom", "isComplete": True},
                        "result": {"type": "atBat", "event": "Strikeout", "eventType": "strikeout", "rbi": 0},
                        "count": {"balls": 1, "strikes": 3, "outs": 2},
                        "matchup": {"batter": {"id": 1, "fullName": "A"}, "pitcher": {"id": 9001}},
                    },
                    {
                        "about": {"atBatIndex": 4, "isComplete": False},
                        "result": {"type": "atBat", "event": "Single"},
                        "count": {"balls": 0, "strikes": 1, "outs": 2},
                    },
                ],
            },
            "boxscore": {
                "teams": {
                    "home": {
                        "team": {"id": 136},
                        "pitchers": [9001, 9002],
                        "players": {
                            "ID9001": {
                                "person": {"id": 9001, "fullName": "Logan Gilbert"},
                                "stats": {"pitching": {"inningsPitched": "6.1", "hits": 4, "strikeOuts": 7}},
                            },
                            "ID9002": {
                                "person": {"id": 9002, "fullName": "Andres Munoz"},
                                "stats": {"pitching": {"inningsPitched": "0.0"}},
                            },
                        },
                    },
                    "away": {
                        "team": {"id": 117},
                        "pitchers": [
                            {"person": {"id": 7001}, "stats": {"pitching": {"inningsPitched": "2.0"}}},
                            {
                                "person": {"id": 7002},
                                "note": "Starting pitcher",
                                "stats": {"pitching": {"inningsPitched": "5.0", "baseOnBalls": 2}},
                            },
                        ],
                    },
                },
            },
        },
    }
    doc.update(overrides)
    return doc


# ── Schedule ────────────────────────────────────────────────────────────

def test_parse_schedule_reads_games_in_order() -> None:
    payload = {
        "dates": [
            {
                "games": [
                    {
                        "gamePk": 1,
                        "gameDate": "2024-06-01T20:10:00Z",
                        "status": {"abstractGameState": "Final", "detailedState": "Final"},
                        "teams": {
                            "home": {"team": {"id": 136, "name": "Seattle Mariners"}},
                            "away": {"team": {"id": 117}, "probablePitcher": {"fullName": "Framber Valdez"}},
                        },
                    },
                    {"status": {"abstractGameState": "Live"}},
                ]
            },
            {"games": [{"gamePk": 2, "status": {"abstractGameState": "Live"}}]},
        ]
    }

    games = parse_schedule(payload)

    assert [g.game_pk for g in games] == [1, 2]
    assert games[0].abstract_state == AbstractGameState.FINAL
    assert games[0].involves(136)
    assert games[0].home_team_name == "Seattle Mariners"
    assert games[0].away_probable_pitcher == "Framber Valdez"
    assert games[0].game_date is not None and games[0].game_date.tzinfo is not None
    assert games[1].abstract_state == AbstractGameState.LIVE


def test_parse_schedule_empty_document() -> None:
    assert parse_schedule({}) == []


def test_parse_schedule_rejects_non_object() -> None:
    with pytest.raises(UpstreamError):
        parse_schedule(["not", "a", "schedule"])


# ── Live feed ───────────────────────────────────────────────────────────

def test_parse_live_feed_header_fields() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=123.0)

    assert snap.game_pk == 745001
    assert snap.abstract_state == AbstractGameState.LIVE
    assert snap.coded_state == "I"
    assert snap.sequence == "20240601_203045"
    assert snap.home_team_id == 136
    assert snap.fetched_at == 123.0


def test_completed_play_carries_event_code() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=0)

    play = snap.play(3)
    assert play is not None
    assert play.is_complete
    assert play.result.event == "strikeout"
    assert play.pitcher_id == 9001


def test_incomplete_play_has_no_outcome() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=0)

    play = snap.play(4)
    assert play is not None
    assert not play.is_complete
    assert play.result.event is None


def test_current_play_defaults_to_last_open_play() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=0)

    assert snap.current_at_bat is not None
    assert snap.current_at_bat.at_bat_index == 4


def test_event_falls_back_to_description() -> None:
    doc = live_feed()
    doc["liveData"]["plays"]["allPlays"] = [
        {
            "about": {"atBatIndex": 0, "isComplete": True},
            "result": {"description": "Julio Rodriguez homers (12) on a fly ball to left field."},
        }
    ]

    play = parse_live_feed(doc, fetched_at=0).play(0)

    assert play is not None
    assert play.result.type == "atBat"
    assert play.result.event == "home_run"


def test_pitchers_resolved_through_players_map() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=0)

    home = snap.boxscore.home
    assert [p.person_id for p in home.pitchers] == [9001, 9002]
    starter = home.starter()
    assert starter is not None and starter.person_id == 9001
    assert starter.full_name == "Logan Gilbert"
    assert starter.outs == 19
    assert starter.strikeouts == 7


def test_starter_note_beats_listing_order() -> None:
    snap = parse_live_feed(live_feed(), fetched_at=0)

    starter = snap.boxscore.away.starter()
    assert starter is not None
    assert starter.person_id == 7002
    assert starter.walks == 2


def test_game_pk_taken_from_caller_when_missing() -> None:
    doc = live_feed()
    del doc["gamePk"]

    assert parse_live_feed(doc, fetched_at=0, game_pk=99).game_pk == 99


def test_live_feed_without_any_game_pk_is_rejected() -> None:
    doc = live_feed()
    del doc["gamePk"]

    with pytest.raises(UpstreamError):
        parse_live_feed(doc, fetched_at=0)


def test_unknown_state_reads_as_preview() -> None:
    doc = live_feed()
    doc["gameData"]["status"] = {"abstractGameState": "Suspended?"}

    assert parse_live_feed(doc, fetched_at=0).abstract_state == AbstractGameState.PREVIEW


# ── Outcome codes ───────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, code",
    [("Home Run", "home_run"), ("home_run", "home_run"), ("Strikeout", "strikeout"), ("", None), (None, None)],
)
def test_normalize_outcome(raw: str | None, code: str | None) -> None:
    assert normalize_outcome(raw) == code


@pytest.mark.parametrize(
    "outcome, category",
    [
        ("single", OutcomeCategory.HIT),
        ("intent_walk", OutcomeCategory.WALK),
        ("grounded_into_double_play", OutcomeCategory.OUT),
        ("sac_fly", OutcomeCategory.SACRIFICE),
        ("hit_by_pitch", OutcomeCategory.HIT_BY_PITCH),
        ("Home Run", OutcomeCategory.HIT),
        ("something_new", OutcomeCategory.OTHER),
        (None, OutcomeCategory.OTHER),
    ],
)
def test_category_for(outcome: str | None, category: OutcomeCategory) -> None:
    assert category_for(outcome) == category


def test_intentional_walk_description_is_not_a_plain_walk() -> None:
    assert outcome_from_description("Cal Raleigh intentionally walks Yordan Alvarez.") == "intent_walk"
