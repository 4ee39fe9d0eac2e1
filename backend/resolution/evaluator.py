"""
Resolution predicate evaluator.

``PredictionEvaluator.evaluate(prediction, snapshot)`` is a pure function:
no I/O, no clock. It answers one question per prediction:

  Pending   not decidable from this snapshot (retry on a later one)
  Resolved  decided, with the outcome and the points it earns
  Void      the game will never produce the data (postponed, cancelled,
            at-bat never happened, pitcher never appeared)

Ambiguous or partial data always yields Pending; nothing is scored from it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from shared.models.domain import (
    AtBatPrediction,
    GameSnapshot,
    PitcherActuals,
    PitcherPrediction,
    Prediction,
)
from shared.models.enums import AbstractGameState, OutcomeCategory

from resolution.scoring import DEFAULT_SCORING, ScoringTable
from resolution.substitution import SubstitutionDetector


@dataclass(frozen=True)
class Pending:
    reason: str


@dataclass(frozen=True)
class Resolved:
    points: int
    outcome: Optional[str] = None
    category: Optional[OutcomeCategory] = None
    is_correct: Optional[bool] = None
    is_partial_credit: bool = False
    actuals: Optional[PitcherActuals] = None
    early: bool = False


@dataclass(frozen=True)
class Void:
    reason: str


Evaluation = Union[Pending, Resolved, Void]


class PredictionEvaluator:
    def __init__(
        self,
        detector: SubstitutionDetector,
        scoring: ScoringTable = DEFAULT_SCORING,
    ) -> None:
        self._detector = detector
        self._scoring = scoring

    def evaluate(self, prediction: Prediction, snapshot: GameSnapshot) -> Evaluation:
        if prediction.is_resolved:
            return Pending("already_resolved")
        if prediction.game_pk != snapshot.game_pk:
            return Pending("snapshot_for_other_game")
        if snapshot.is_postponed_or_cancelled:
            return Void(f"game_{snapshot.detailed_state.strip().lower() or 'cancelled'}")

        if isinstance(prediction, AtBatPrediction):
            return self._evaluate_at_bat(prediction, snapshot)
        if isinstance(prediction, PitcherPrediction):
            return self._evaluate_pitcher(prediction, snapshot)
        return Pending("unsupported_prediction")

    def _evaluate_at_bat(self, prediction: AtBatPrediction, snapshot: GameSnapshot) -> Evaluation:
        play = snapshot.play(prediction.at_bat_index)
        if play is None:
            if snapshot.is_final:
                return Void("at_bat_never_occurred")
            return Pending("at_bat_not_reached")
        if not play.is_complete:
            return Pending("at_bat_in_progress")

        outcome = play.result.event
        if not outcome:
            return Pending("outcome_undecodable")

        score = self._scoring.score_at_bat(
            prediction.prediction, outcome, prediction.prediction_category
        )
        return Resolved(
            points=score.points,
            outcome=outcome,
            category=score.actual_category,
            is_correct=score.is_correct,
            is_partial_credit=score.is_partial_credit,
        )

    def _evaluate_pitcher(self, prediction: PitcherPrediction, snapshot: GameSnapshot) -> Evaluation:
        line = snapshot.boxscore.line_for(prediction.pitcher_id)

        if snapshot.is_final:
            if line is None:
                return Void("pitcher_did_not_appear")
            actuals = PitcherActuals.from_line(line)
            return Resolved(
                points=self._scoring.pitcher_points(prediction, actuals),
                actuals=actuals,
            )

        if (
            snapshot.abstract_state == AbstractGameState.LIVE
            and line is not None
            and self._detector.has_starting_pitcher_changed(snapshot, pitcher_id=prediction.pitcher_id)
        ):
            actuals = PitcherActuals.from_line(line)
            return Resolved(
                points=self._scoring.pitcher_points(prediction, actuals),
                actuals=actuals,
                early=True,
            )

        return Pending("pitcher_line_open")
