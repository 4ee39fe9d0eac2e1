"""
SQLAlchemy 2.0 ORM models for Dugout.
Tables are created from this metadata by DatabaseManager.create_schema().
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AtBatPredictionORM(Base):
    __tablename__ = "at_bat_predictions"
    __table_args__ = (
        UniqueConstraint("user_id", "game_pk", "at_bat_index", name="uq_at_bat_prediction"),
        Index("ix_at_bat_predictions_pending", "game_pk", postgresql_where=text("resolved_at IS NULL")),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    game_pk: Mapped[int] = mapped_column(BigInteger, nullable=False)
    at_bat_index: Mapped[int] = mapped_column(Integer, nullable=False)
    prediction: Mapped[str] = mapped_column(String(40), nullable=False)
    prediction_category: Mapped[Optional[str]] = mapped_column(String(20))
    actual_outcome: Mapped[Optional[str]] = mapped_column(String(40))
    actual_category: Mapped[Optional[str]] = mapped_column(String(20))
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_partial_credit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_void: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    points_earned: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class PitcherPredictionORM(Base):
    __tablename__ = "pitcher_predictions"
    __table_args__ = (
        UniqueConstraint("user_id", "game_pk", "pitcher_id", name="uq_pitcher_prediction"),
        Index("ix_pitcher_predictions_pending", "game_pk", postgresql_where=text("resolved_at IS NULL")),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    game_pk: Mapped[int] = mapped_column(BigInteger, nullable=False)
    pitcher_id: Mapped[int] = mapped_column(Integer, nullable=False)
    pitcher_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    predicted_ip: Mapped[Decimal] = mapped_column(Numeric(4, 1), nullable=False)
    predicted_hits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    predicted_earned_runs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    predicted_walks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    predicted_strikeouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_ip: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 1))
    actual_hits: Mapped[Optional[int]] = mapped_column(Integer)
    actual_earned_runs: Mapped[Optional[int]] = mapped_column(Integer)
    actual_walks: Mapped[Optional[int]] = mapped_column(Integer)
    actual_strikeouts: Mapped[Optional[int]] = mapped_column(Integer)
    is_void: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    points_earned: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class SystemHealthORM(Base):
    __tablename__ = "system_health"
    __table_args__ = (
        CheckConstraint("status IN ('healthy', 'degraded', 'error')", name="chk_health_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    service_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    response_time: Mapped[Optional[int]] = mapped_column(Integer)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GameSyncLogORM(Base):
    __tablename__ = "game_sync_log"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    game_pk: Mapped[Optional[int]] = mapped_column(BigInteger)
    sync_type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(10))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    data_size: Mapped[Optional[int]] = mapped_column(Integer)
    sync_duration_ms: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PredictionResolutionLogORM(Base):
    __tablename__ = "prediction_resolution_log"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    game_pk: Mapped[int] = mapped_column(BigInteger, nullable=False)
    predictions_resolved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    predictions_voided: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conflicts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolution_duration_ms: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
