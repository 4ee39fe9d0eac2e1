"""
Prediction resolver.
Loads a game's unresolved predictions, evaluates each against one snapshot
and persists every decided one with a conditional update.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

from shared.models.domain import GameSnapshot, ResolutionReport, utcnow
from shared.utils.logging import get_logger
from shared.utils.metrics import POINTS_AWARDED, PREDICTIONS_RESOLVED

from resolution.evaluator import Pending, PredictionEvaluator, Resolved
from resolution.repository import Decision, PredictionStore

logger = get_logger(__name__)


class PredictionResolver:
    def __init__(
        self,
        store: PredictionStore,
        evaluator: PredictionEvaluator,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._evaluator = evaluator
        self._clock = clock

    async def resolve_pending(self, game_pk: int, snapshot: GameSnapshot) -> ResolutionReport:
        """
        Resolve what ``snapshot`` can decide. Predictions still pending are
        left for a later run; running twice on the same snapshot resolves
        nothing the second time.

        Raises:
            PersistenceError: Loading or writing failed; nothing was applied.
        """
        started = time.perf_counter()
        pending = await self._store.load_pending(game_pk)

        decisions: list[Decision] = []
        still_pending = 0
        for prediction in pending:
            evaluation = self._evaluator.evaluate(prediction, snapshot)
            if isinstance(evaluation, Pending):
                still_pending += 1
                continue
            decisions.append((prediction, evaluation))

        report = ResolutionReport(game_pk=game_pk, pending_count=still_pending)
        if decisions:
            applied = await self._store.apply_resolutions(decisions, resolved_at=self._clock())
            for (prediction, evaluation), ok in zip(decisions, applied):
                kind = prediction.kind.value
                if not ok:
                    report.conflict_count += 1
                    PREDICTIONS_RESOLVED.labels(kind=kind, status="conflict").inc()
                    continue
                report.resolved_count += 1
                if isinstance(evaluation, Resolved):
                    report.points_awarded += evaluation.points
                    POINTS_AWARDED.labels(kind=kind).inc(evaluation.points)
                    PREDICTIONS_RESOLVED.labels(kind=kind, status="resolved").inc()
                else:
                    report.voided_count += 1
                    PREDICTIONS_RESOLVED.labels(kind=kind, status="void").inc()

        report.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "predictions_resolved",
            game_pk=game_pk,
            state=snapshot.abstract_state.value,
            loaded=len(pending),
            resolved=report.resolved_count,
            voided=report.voided_count,
            pending=report.pending_count,
            conflicts=report.conflict_count,
            points=report.points_awarded,
            duration_ms=report.duration_ms,
        )
        return report
