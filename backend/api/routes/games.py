"""
Game state and resolution endpoints.

GET  /v1/games/current/state     - Snapshot of the tracked team's current game.
GET  /v1/games/{game_pk}/state   - Snapshot of one game.
POST /v1/games/{game_pk}/resolve - Resolve that game's pending predictions now.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from shared.models.domain import ResolutionRun, SnapshotRead

from api.dependencies import get_control
from scheduler.control import ControlSurface

router = APIRouter(prefix="/v1/games", tags=["games"])


@router.get("/current/state")
async def current_game_state(control: ControlSurface = Depends(get_control)) -> SnapshotRead:
    """
    Current game for the tracked team: today's game if there is one,
    otherwise the most recent game in the lookback window.
    """
    read = await control.get_game_state()
    if read is None:
        raise HTTPException(status_code=404, detail="No game found for the tracked team")
    return read


@router.get("/{game_pk}/state")
async def game_state(
    game_pk: int,
    control: ControlSurface = Depends(get_control),
) -> SnapshotRead:
    read = await control.get_game_state(game_pk)
    if read is None:
        raise HTTPException(status_code=404, detail=f"Game {game_pk} not found")
    return read


@router.post("/{game_pk}/resolve")
async def resolve_game(
    game_pk: int,
    control: ControlSurface = Depends(get_control),
) -> ResolutionRun:
    """
    Resolve pending predictions for ``game_pk`` against a fresh (or stale
    fallback) snapshot. Safe to call repeatedly; already resolved rows
    are never touched again.
    """
    return await control.resolve_predictions(game_pk)
