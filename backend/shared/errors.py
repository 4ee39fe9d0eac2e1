"""
Error taxonomy shared by the sync and resolution services.

UpstreamError and PersistenceError are surfaced to callers; evaluation
ambiguity is never raised (evaluators return Pending instead).
"""
from __future__ import annotations

from typing import Optional


class DugoutError(Exception):
    """Base class for domain errors."""


class UpstreamError(DugoutError):
    """The statistics provider was unavailable, answered non-2xx, or sent an undecodable body."""

    def __init__(self, status: Optional[int], message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"upstream error ({status if status is not None else 'n/a'}): {message}")


class PersistenceError(DugoutError):
    """A read or write against the prediction store failed."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"persistence error during {operation}: {message}")


class UnknownJobError(DugoutError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown job: {name}")

    def __str__(self) -> str:
        return f"unknown job: {self.name}"
