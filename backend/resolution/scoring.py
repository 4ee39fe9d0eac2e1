"""
Point policy for resolved predictions.

The evaluator decides *when* a prediction is decided; this table decides
*how much* it is worth. It is injected so the policy can change without
touching the resolution logic.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from shared.models.domain import PitcherActuals, PitcherPrediction, innings_to_outs
from shared.models.enums import OutcomeCategory
from shared.models.outcomes import category_for, normalize_outcome

# (max difference, points) bands, checked in order
Bands = tuple[tuple[int, int], ...]


def _band_points(diff: int, bands: Bands) -> int:
    for limit, points in bands:
        if diff <= limit:
            return points
    return 0


@dataclass(frozen=True)
class AtBatScore:
    points: int
    is_correct: bool
    is_partial_credit: bool
    actual_category: OutcomeCategory


@dataclass(frozen=True)
class ScoringTable:
    exact_points: Mapping[str, int]
    category_points: Mapping[OutcomeCategory, int]
    default_exact_points: int = 1
    default_category_points: int = 1
    innings_bands: Bands = ((0, 6), (1, 4), (2, 2), (3, 1))
    hits_bands: Bands = ((0, 4), (1, 2), (2, 1))
    earned_runs_bands: Bands = ((0, 4), (1, 2), (2, 1))
    walks_bands: Bands = ((0, 3), (1, 1))
    strikeouts_bands: Bands = ((0, 3), (1, 1))

    def score_at_bat(
        self,
        predicted: str,
        actual: str,
        predicted_category: Optional[str] = None,
    ) -> AtBatScore:
        """Exact outcome earns the outcome's value; same category earns partial credit."""
        predicted_code = normalize_outcome(predicted)
        actual_code = normalize_outcome(actual)
        actual_cat = category_for(actual_code)

        if predicted_code and predicted_code == actual_code:
            points = self.exact_points.get(actual_code, self.default_exact_points)
            return AtBatScore(points, True, False, actual_cat)

        predicted_cat = _explicit_category(predicted_category) or category_for(predicted_code)
        if predicted_cat != OutcomeCategory.OTHER and predicted_cat == actual_cat:
            points = self.category_points.get(actual_cat, self.default_category_points)
            return AtBatScore(points, False, True, actual_cat)

        return AtBatScore(0, False, False, actual_cat)

    def pitcher_points(self, prediction: PitcherPrediction, actual: PitcherActuals) -> int:
        """
        Sum of per-stat bands. Innings compare in outs, with both sides read
        in baseball notation ("6.1" is 19 outs).
        """
        outs_diff = abs(innings_to_outs(prediction.predicted_ip) - actual.outs)
        return (
            _band_points(outs_diff, self.innings_bands)
            + _band_points(abs(prediction.predicted_hits - actual.hits), self.hits_bands)
            + _band_points(abs(prediction.predicted_earned_runs - actual.earned_runs), self.earned_runs_bands)
            + _band_points(abs(prediction.predicted_walks - actual.walks), self.walks_bands)
            + _band_points(abs(prediction.predicted_strikeouts - actual.strikeouts), self.strikeouts_bands)
        )


_CATEGORY_VALUES = frozenset(c.value for c in OutcomeCategory)


def _explicit_category(raw: Optional[str]) -> Optional[OutcomeCategory]:
    if raw and raw in _CATEGORY_VALUES:
        return OutcomeCategory(raw)
    return None


DEFAULT_SCORING = ScoringTable(
    exact_points=MappingProxyType({
        "home_run": 23,
        "triple": 18,
        "double": 10,
        "single": 4,
        "walk": 3,
        "intent_walk": 3,
        "strikeout": 2,
        "hit_by_pitch": 2,
    }),
    category_points=MappingProxyType({
        OutcomeCategory.HIT: 2,
        OutcomeCategory.WALK: 3,
        OutcomeCategory.OUT: 1,
        OutcomeCategory.HIT_BY_PITCH: 2,
    }),
)
