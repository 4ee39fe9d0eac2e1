"""
Starting pitcher substitution detection.

The provider sends no substitution event, so the change is inferred from
box-score accumulation: once any other pitcher on the starter's side has
recorded an out, allowed a hit or struck someone out, the starter is out
of the game and the starting line is frozen.

Known limitation: a reliever who has entered but not yet recorded an out,
hit or strikeout is not detected. The next poll picks it up.
"""
from __future__ import annotations

from typing import Optional

from shared.models.domain import BoxscoreTeam, GameSnapshot, PitcherLine
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def _has_pitched(line: PitcherLine) -> bool:
    return line.outs > 0 or line.hits > 0 or line.strikeouts > 0


class SubstitutionDetector:
    """Answers "is the starter still pitching?" for one snapshot."""

    def __init__(self, tracked_team_id: int) -> None:
        self.tracked_team_id = tracked_team_id

    def _side(self, snapshot: GameSnapshot, pitcher_id: Optional[int]) -> Optional[BoxscoreTeam]:
        if pitcher_id is None:
            return snapshot.side_for_team(self.tracked_team_id)
        for side in (snapshot.boxscore.home, snapshot.boxscore.away):
            starter = side.starter()
            if starter is not None and starter.person_id == pitcher_id:
                return side
        return None

    def starting_pitcher(
        self, snapshot: GameSnapshot, pitcher_id: Optional[int] = None
    ) -> Optional[PitcherLine]:
        side = self._side(snapshot, pitcher_id)
        return side.starter() if side is not None else None

    def has_starting_pitcher_changed(
        self, snapshot: GameSnapshot, pitcher_id: Optional[int] = None
    ) -> bool:
        """
        True once a reliever has accumulated stats on the starter's side.

        Without ``pitcher_id`` the tracked team's starter is checked; with it,
        the side that ``pitcher_id`` started for. Missing or malformed box
        score data yields False, never an exception.
        """
        try:
            side = self._side(snapshot, pitcher_id)
            if side is None:
                return False
            starter = side.starter()
            if starter is None:
                return False
            return any(
                _has_pitched(line)
                for line in side.pitchers
                if line.person_id != starter.person_id
            )
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug(
                "substitution_check_unreadable",
                game_pk=getattr(snapshot, "game_pk", None),
                error=str(exc),
            )
            return False
