from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DrawRow(SQLModel, table=True):
    __tablename__ = "draws"
    __table_args__ = (UniqueConstraint("time_label", "number", "animal", name="uq_draw_identity"),)

    id: int | None = Field(default=None, primary_key=True)
    number: int = Field(index=True)
    animal: str
    color: str
    time_label: str
    occurred_at: datetime = Field(index=True)
    stored_at: datetime = Field(default_factory=_utcnow)


class PredictionEntry(SQLModel, table=True):
    __tablename__ = "prediction_history"
    __table_args__ = (UniqueConstraint("actual_number", "actual_time_label", name="uq_resolution_identity"),)

    id: int | None = Field(default=None, primary_key=True)
    batch_id: str = Field(index=True, unique=True)
    issued_at: datetime = Field(index=True)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    # Resolution fields (link to actual outcome)
    actual_number: int
    actual_time_label: str
    number_hit: bool
    color_hit: bool
    resolved_at: datetime


class CurrentPrediction(SQLModel, table=True):
    __tablename__ = "current_prediction"

    id: int | None = Field(default=None, primary_key=True)
    batch_id: str
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    saved_at: datetime = Field(default_factory=_utcnow, index=True)
