"""
Plate-appearance outcome codes and their categories.

Codes follow the provider's ``result.eventType`` vocabulary (snake_case).
Category matching is what earns partial credit on an at-bat prediction.
"""
from __future__ import annotations

import re
from typing import Optional

from shared.models.enums import OutcomeCategory

_CATEGORY_BY_OUTCOME: dict[str, OutcomeCategory] = {}


def _register(category: OutcomeCategory, *codes: str) -> None:
    for code in codes:
        _CATEGORY_BY_OUTCOME[code] = category


_register(OutcomeCategory.HIT, "single", "double", "triple", "home_run")
_register(OutcomeCategory.WALK, "walk", "intent_walk")
_register(
    OutcomeCategory.OUT,
    "strikeout",
    "strike_out",
    "strikeout_double_play",
    "strikeout_triple_play",
    "field_out",
    "ground_out",
    "fly_out",
    "pop_out",
    "line_out",
    "fielders_choice",
    "fielders_choice_out",
    "force_out",
    "grounded_into_double_play",
    "grounded_into_triple_play",
    "double_play",
    "triple_play",
)
_register(
    OutcomeCategory.SACRIFICE,
    "sac_fly",
    "sac_bunt",
    "sac_fly_double_play",
    "sac_bunt_double_play",
)
_register(
    OutcomeCategory.ERROR,
    "error",
    "field_error",
    "catcher_interf",
    "catcher_interference",
    "batter_interference",
    "fan_interference",
)
_register(OutcomeCategory.HIT_BY_PITCH, "hit_by_pitch")
_register(
    OutcomeCategory.BASERUNNING,
    "pickoff_1b",
    "pickoff_2b",
    "pickoff_3b",
    "pickoff_error_1b",
    "pickoff_error_2b",
    "pickoff_error_3b",
    "pickoff_caught_stealing_2b",
    "pickoff_caught_stealing_3b",
    "pickoff_caught_stealing_home",
    "stolen_base",
    "stolen_base_2b",
    "stolen_base_3b",
    "stolen_base_home",
    "caught_stealing",
    "caught_stealing_2b",
    "caught_stealing_3b",
    "caught_stealing_home",
    "defensive_indiff",
    "wild_pitch",
    "passed_ball",
    "balk",
    "other_advance",
    "runner_double_play",
)
_register(
    OutcomeCategory.ADMINISTRATIVE,
    "batter_timeout",
    "mound_visit",
    "no_pitch",
    "offensive_substitution",
    "defensive_substitution",
    "defensive_switch",
    "pitching_substitution",
    "umpire_substitution",
    "game_advisory",
    "injury",
    "ejection",
)

# Checked in order against a lowercased play description.
_DESCRIPTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), code)
    for pattern, code in (
        (r"\bhomers\b|\bhome run\b|\bgrand slam\b", "home_run"),
        (r"\btriples\b", "triple"),
        (r"\bdoubles\b|\bground-rule double\b", "double"),
        (r"\bsingles\b", "single"),
        (r"\bintentionally walks\b", "intent_walk"),
        (r"\bwalks\b|\bbase on balls\b", "walk"),
        (r"\bstrikes out\b|\bcalled out on strikes\b", "strikeout"),
        (r"\bhit by pitch\b", "hit_by_pitch"),
        (r"\bsacrifice fly\b|\bsac fly\b", "sac_fly"),
        (r"\bsacrifice bunt\b|\bsac bunt\b", "sac_bunt"),
        (r"\bgrounds into a double play\b", "grounded_into_double_play"),
        (r"\bfielder'?s choice\b", "fielders_choice"),
        (r"\bforce out\b|\bforce-out\b", "force_out"),
        (r"\bgrounds out\b|\bground out\b", "field_out"),
        (r"\bflies out\b|\bfly out\b", "field_out"),
        (r"\bpops out\b|\bpop out\b", "field_out"),
        (r"\blines out\b|\bline out\b", "field_out"),
        (r"\bcatcher interference\b", "catcher_interf"),
        (r"\bfielding error\b|\bthrowing error\b|\bon an error\b", "field_error"),
    )
)


def normalize_outcome(raw: Optional[str]) -> Optional[str]:
    """Provider event text ("Home Run", "home_run", "Strikeout") to a code."""
    if not raw:
        return None
    code = re.sub(r"[^a-z0-9]+", "_", raw.strip().lower()).strip("_")
    return code or None


def outcome_from_description(description: Optional[str]) -> Optional[str]:
    if not description:
        return None
    text = description.lower()
    for pattern, code in _DESCRIPTION_PATTERNS:
        if pattern.search(text):
            return code
    return None


def category_for(outcome: Optional[str]) -> OutcomeCategory:
    if not outcome:
        return OutcomeCategory.OTHER
    return _CATEGORY_BY_OUTCOME.get(normalize_outcome(outcome) or "", OutcomeCategory.OTHER)
