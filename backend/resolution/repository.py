"""
Prediction persistence.

Resolution writes are optimistic conditional updates guarded by
``resolved_at IS NULL``: whichever run commits first wins, a concurrent
run's update matches zero rows and is reported as not applied.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol, Sequence

from sqlalchemy import Update, select, update
from sqlalchemy.exc import SQLAlchemyError

from shared.errors import PersistenceError
from shared.models.domain import (
    AtBatPrediction,
    PitcherPrediction,
    Prediction,
    outs_to_innings,
)
from shared.models.orm import AtBatPredictionORM, PitcherPredictionORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from resolution.evaluator import Evaluation, Pending, Void

logger = get_logger(__name__)

Decision = tuple[Prediction, Evaluation]


class PredictionStore(Protocol):
    async def load_pending(self, game_pk: int) -> list[Prediction]: ...

    async def apply_resolutions(
        self, decisions: Sequence[Decision], resolved_at: datetime
    ) -> list[bool]: ...


def build_resolution_update(
    prediction: Prediction, evaluation: Evaluation, resolved_at: datetime
) -> Update:
    """UPDATE ... SET <outcome> WHERE id = :id AND resolved_at IS NULL."""
    if isinstance(evaluation, Pending):
        raise ValueError("pending evaluations are never persisted")

    if isinstance(prediction, AtBatPrediction):
        table = AtBatPredictionORM
        if isinstance(evaluation, Void):
            values = {"is_void": True, "is_correct": False, "points_earned": 0}
        else:
            values = {
                "actual_outcome": evaluation.outcome,
                "actual_category": evaluation.category.value if evaluation.category else None,
                "is_correct": bool(evaluation.is_correct),
                "is_partial_credit": evaluation.is_partial_credit,
                "points_earned": evaluation.points,
            }
    else:
        table = PitcherPredictionORM
        if isinstance(evaluation, Void) or evaluation.actuals is None:
            values = {"is_void": True, "points_earned": 0}
        else:
            actual = evaluation.actuals
            values = {
                "actual_ip": Decimal(outs_to_innings(actual.outs)),
                "actual_hits": actual.hits,
                "actual_earned_runs": actual.earned_runs,
                "actual_walks": actual.walks,
                "actual_strikeouts": actual.strikeouts,
                "points_earned": evaluation.points,
            }

    return (
        update(table)
        .where(table.id == prediction.id, table.resolved_at.is_(None))
        .values(resolved_at=resolved_at, **values)
        .execution_options(synchronize_session=False)
    )


class PredictionRepository:
    """SQLAlchemy-backed store for at-bat and pitcher predictions."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def load_pending(self, game_pk: int) -> list[Prediction]:
        """All unresolved predictions of both kinds for ``game_pk``."""
        try:
            async with self._db.read_session() as session:
                at_bats = (
                    await session.execute(
                        select(AtBatPredictionORM)
                        .where(
                            AtBatPredictionORM.game_pk == game_pk,
                            AtBatPredictionORM.resolved_at.is_(None),
                        )
                        .order_by(AtBatPredictionORM.at_bat_index, AtBatPredictionORM.created_at)
                    )
                ).scalars().all()
                pitchers = (
                    await session.execute(
                        select(PitcherPredictionORM)
                        .where(
                            PitcherPredictionORM.game_pk == game_pk,
                            PitcherPredictionORM.resolved_at.is_(None),
                        )
                        .order_by(PitcherPredictionORM.created_at)
                    )
                ).scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("load_pending", str(exc)) from exc

        pending: list[Prediction] = [AtBatPrediction.model_validate(row) for row in at_bats]
        pending.extend(PitcherPrediction.model_validate(row) for row in pitchers)
        return pending

    async def apply_resolutions(
        self, decisions: Sequence[Decision], resolved_at: datetime
    ) -> list[bool]:
        """
        Persist every decision in one transaction.

        Returns one flag per decision: False when another run resolved that
        prediction first. Any database failure rolls the whole batch back.
        """
        applied: list[bool] = []
        try:
            async with self._db.write_session() as session:
                for prediction, evaluation in decisions:
                    result = await session.execute(
                        build_resolution_update(prediction, evaluation, resolved_at)
                    )
                    applied.append(result.rowcount == 1)
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError("apply_resolutions", str(exc)) from exc

        lost = applied.count(False)
        if lost:
            logger.info("resolution_conflicts", conflicts=lost, attempted=len(applied))
        return applied
