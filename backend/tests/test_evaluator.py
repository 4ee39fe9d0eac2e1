"""
Unit tests for resolution predicates, substitution detection and scoring.

Run: pytest backend/tests/test_evaluator.py -v
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from factories import HOUSTON, SEATTLE, make_line, make_play, make_snapshot
from resolution.evaluator import Pending, PredictionEvaluator, Resolved, Void
from resolution.scoring import DEFAULT_SCORING
from resolution.substitution import SubstitutionDetector
from shared.models.domain import AtBatPrediction, PitcherActuals, PitcherPrediction, Play, PlayCount, PlayResult
from shared.models.enums import AbstractGameState, OutcomeCategory

GAME = 9001


@pytest.fixture
def detector() -> SubstitutionDetector:
    return SubstitutionDetector(SEATTLE)


@pytest.fixture
def evaluator(detector: SubstitutionDetector) -> PredictionEvaluator:
    return PredictionEvaluator(detector, DEFAULT_SCORING)


def at_bat(index: int = 4, prediction: str = "strikeout", **kw: object) -> AtBatPrediction:
    return AtBatPrediction(game_pk=GAME, user_id="u1", at_bat_index=index, prediction=prediction, **kw)


def pitcher(pitcher_id: int = 501, **kw: object) -> PitcherPrediction:
    values = dict(
        predicted_ip=6.0,
        predicted_hits=5,
        predicted_earned_runs=2,
        predicted_walks=1,
        predicted_strikeouts=7,
    )
    values.update(kw)
    return PitcherPrediction(game_pk=GAME, user_id="u1", pitcher_id=pitcher_id, **values)


# ── At-bat predictions ──────────────────────────────────────────────────

def test_at_bat_in_progress_then_closed(evaluator: PredictionEvaluator) -> None:
    open_play = Play(at_bat_index=4, count=PlayCount(balls=3, strikes=2), result=PlayResult(type=None))
    live = make_snapshot(game_pk=GAME, current=open_play)
    prediction = at_bat()

    assert isinstance(evaluator.evaluate(prediction, live), Pending)

    closed = make_snapshot(game_pk=GAME, plays=[make_play(4, event="strikeout")])
    result = evaluator.evaluate(prediction, closed)

    assert isinstance(result, Resolved)
    assert result.points == DEFAULT_SCORING.exact_points["strikeout"]
    assert result.is_correct is True
    assert result.category == OutcomeCategory.OUT


def test_in_progress_sentinel_is_pending(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, current=make_play(4, result_type="in_progress"))

    assert evaluator.evaluate(at_bat(), snap) == Pending("at_bat_in_progress")


def test_same_category_earns_partial_credit(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, plays=[make_play(4, event="double")])

    result = evaluator.evaluate(at_bat(prediction="single"), snap)

    assert isinstance(result, Resolved)
    assert result.is_correct is False
    assert result.is_partial_credit is True
    assert result.points == DEFAULT_SCORING.category_points[OutcomeCategory.HIT]


def test_wrong_category_scores_zero(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, plays=[make_play(4, event="home_run")])

    result = evaluator.evaluate(at_bat(prediction="strikeout"), snap)

    assert isinstance(result, Resolved)
    assert result.points == 0
    assert result.outcome == "home_run"


def test_future_at_bat_is_pending_while_live(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, plays=[make_play(0, event="single")])

    assert evaluator.evaluate(at_bat(index=30), snap) == Pending("at_bat_not_reached")


def test_at_bat_never_reached_in_final_game_is_void(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, state=AbstractGameState.FINAL, plays=[make_play(0, event="single")])

    assert isinstance(evaluator.evaluate(at_bat(index=80), snap), Void)


def test_closed_play_without_event_stays_pending(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, plays=[make_play(4, event=None)])

    assert evaluator.evaluate(at_bat(), snap) == Pending("outcome_undecodable")


# ── Guards ──────────────────────────────────────────────────────────────

def test_resolved_prediction_is_never_reevaluated(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, plays=[make_play(4, event="strikeout")])
    done = at_bat(resolved_at=datetime(2024, 6, 1, tzinfo=timezone.utc), points_earned=2)

    assert evaluator.evaluate(done, snap) == Pending("already_resolved")


def test_snapshot_for_other_game_is_pending(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME + 1, plays=[make_play(4, event="strikeout")])

    assert isinstance(evaluator.evaluate(at_bat(), snap), Pending)


@pytest.mark.parametrize(
    "detailed, coded",
    [("Postponed", None), ("Cancelled", None), ("Scheduled", "C")],
)
def test_postponed_or_cancelled_game_voids(evaluator: PredictionEvaluator, detailed: str, coded: str | None) -> None:
    snap = make_snapshot(game_pk=GAME, state=AbstractGameState.FINAL, detailed_state=detailed, coded_state=coded)

    assert isinstance(evaluator.evaluate(at_bat(), snap), Void)
    assert isinstance(evaluator.evaluate(pitcher(), snap), Void)


# ── Pitcher predictions ─────────────────────────────────────────────────

def test_pitcher_resolves_when_game_final(evaluator: PredictionEvaluator) -> None:
    line = make_line(501, ip="6.0", starter=True, hits=5, earned_runs=2, walks=1, strikeouts=7)
    snap = make_snapshot(game_pk=GAME, state=AbstractGameState.FINAL, home_pitchers=[line])

    result = evaluator.evaluate(pitcher(), snap)

    assert isinstance(result, Resolved)
    assert result.early is False
    assert result.points == 6 + 4 + 4 + 3 + 3
    assert result.actuals is not None and result.actuals.outs == 18


def test_pitcher_pending_while_starter_still_in(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(
        game_pk=GAME,
        home_pitchers=[make_line(501, ip="4.2", starter=True, strikeouts=5), make_line(502)],
    )

    assert evaluator.evaluate(pitcher(), snap) == Pending("pitcher_line_open")


def test_pitcher_resolves_early_after_substitution(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(
        game_pk=GAME,
        home_pitchers=[
            make_line(501, ip="5.1", starter=True, hits=6, earned_runs=3, walks=1, strikeouts=7),
            make_line(502, ip="0.1"),
        ],
    )

    result = evaluator.evaluate(pitcher(), snap)

    assert isinstance(result, Resolved)
    assert result.early is True
    # 16 outs vs 18 predicted: 2 outs off
    assert result.points == 2 + 2 + 2 + 3 + 3


def test_reliever_prediction_does_not_resolve_early(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(
        game_pk=GAME,
        home_pitchers=[make_line(501, ip="5.0", starter=True), make_line(502, ip="1.0")],
    )

    assert isinstance(evaluator.evaluate(pitcher(pitcher_id=502), snap), Pending)


def test_pitcher_absent_from_final_boxscore_is_void(evaluator: PredictionEvaluator) -> None:
    snap = make_snapshot(game_pk=GAME, state=AbstractGameState.FINAL, home_pitchers=[make_line(501, starter=True)])

    assert evaluator.evaluate(pitcher(pitcher_id=999), snap) == Void("pitcher_did_not_appear")


# ── Substitution detection ──────────────────────────────────────────────

def test_tracked_side_substitution(detector: SubstitutionDetector) -> None:
    snap = make_snapshot(home_pitchers=[make_line(501, ip="6.0", starter=True), make_line(502, hits=1)])

    assert detector.has_starting_pitcher_changed(snap) is True
    starter = detector.starting_pitcher(snap)
    assert starter is not None and starter.person_id == 501


def test_reliever_with_no_stats_is_not_detected(detector: SubstitutionDetector) -> None:
    snap = make_snapshot(home_pitchers=[make_line(501, ip="6.0", starter=True), make_line(502)])

    assert detector.has_starting_pitcher_changed(snap) is False


def test_substitution_checked_on_pitchers_own_side(detector: SubstitutionDetector) -> None:
    snap = make_snapshot(
        home_pitchers=[make_line(501, ip="3.0", starter=True)],
        away_pitchers=[make_line(701, ip="2.0", starter=True), make_line(702, strikeouts=1)],
    )

    assert detector.has_starting_pitcher_changed(snap) is False
    assert detector.has_starting_pitcher_changed(snap, pitcher_id=701) is True


def test_missing_boxscore_reads_as_no_change(detector: SubstitutionDetector) -> None:
    snap = make_snapshot()
    snap.home_team_id = HOUSTON + 1000

    assert detector.has_starting_pitcher_changed(snap) is False
    assert detector.starting_pitcher(snap) is None


# ── Scoring table ───────────────────────────────────────────────────────

def test_explicit_category_gives_partial_credit() -> None:
    score = DEFAULT_SCORING.score_at_bat("unknown_thing", "walk", predicted_category="walk")

    assert score.is_partial_credit is True
    assert score.points == DEFAULT_SCORING.category_points[OutcomeCategory.WALK]


def test_pitcher_points_use_baseball_innings_notation() -> None:
    actual = PitcherActuals(innings_pitched=6.333, outs=19, hits=0, earned_runs=0, walks=0, strikeouts=0)

    exact = DEFAULT_SCORING.pitcher_points(pitcher(predicted_ip=6.1, predicted_hits=0, predicted_earned_runs=0,
                                                   predicted_walks=0, predicted_strikeouts=0), actual)
    far_off = DEFAULT_SCORING.pitcher_points(pitcher(predicted_ip=3.0, predicted_hits=9, predicted_earned_runs=9,
                                                     predicted_walks=9, predicted_strikeouts=9), actual)

    assert exact == 6 + 4 + 4 + 3 + 3
    assert far_off == 0
